from __future__ import annotations

import io
import json
from pathlib import Path

from tabsearch.server import create_server, main


def test_stdio_server_routes_multiple_requests(tmp_path: Path) -> None:
    server = create_server(root=str(tmp_path))
    in_stream = io.StringIO(
        "\n".join(
            [
                json.dumps({"id": "req-1", "method": "status", "params": {}}),
                "",
                json.dumps({"id": "req-2", "method": "get_jobs", "params": {}}),
            ]
        )
        + "\n"
    )
    out_stream = io.StringIO()

    server.serve(in_stream=in_stream, out_stream=out_stream)
    server.close()
    lines = [line for line in out_stream.getvalue().splitlines() if line]

    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])
    assert first["request_id"] == "req-1"
    assert first["ok"] is True
    assert second["request_id"] == "req-2"
    assert second["result"] == {"jobs": {}}


def test_main_serves_stdin_until_eof(tmp_path: Path, monkeypatch, capsys) -> None:
    request = json.dumps({"id": 5, "method": "tabs.created", "params": {"tabId": 3}})
    monkeypatch.setattr("sys.stdin", io.StringIO(request + "\n"))

    exit_code = main(["--root", str(tmp_path), "--log-level", "ERROR"])

    assert exit_code == 0
    response = json.loads(capsys.readouterr().out.strip())
    assert response == {"ok": True, "request_id": "5", "result": {}, "warnings": []}
    assert (tmp_path / ".tabsearch" / "state.json").exists()
