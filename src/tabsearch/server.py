"""STDIO server entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from tabsearch.config import CliOverrides, ServerConfig, load_effective_config
from tabsearch.engine import (
    ContentCoordinator,
    EngineError,
    LookupMissError,
    ObjectStore,
    SearchEngine,
)
from tabsearch.gateway import Call, IndexingGateway, InvalidRequestError, MethodRegistry
from tabsearch.host import ActivationFailureError, InMemoryHost
from tabsearch.logging import (
    AuditEvent,
    JsonlAuditLogger,
    configure_logging,
    sanitize_params,
    utc_timestamp,
)
from tabsearch.methods import (
    register_engine_methods,
    register_lifecycle_methods,
    register_status_methods,
)
from tabsearch.state import PersistenceUnavailableError, StateStore, TabTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]
    sender_tab_id: int | None = None


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="tabsearch")
    parser.add_argument("--root", required=False, default=".")
    parser.add_argument("--config", required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--snippet-size", type=int, required=False, default=None)
    parser.add_argument("--max-results", type=int, required=False, default=None)
    parser.add_argument(
        "--strict-highlight",
        action="store_true",
        default=None,
        help="Highlight every result navigation, not only snippets with matches.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        required=False,
        default=None,
    )
    return parser


class StdioServer:
    """JSON-lines server routing each request to one registered method."""

    def __init__(self, config: ServerConfig, host: InMemoryHost | None = None) -> None:
        self._config = config
        self._host = host if host is not None else InMemoryHost()
        self._audit_logger = JsonlAuditLogger(path=config.audit_path)
        self._objects = ObjectStore(config.objects_path)
        self._coordinator = ContentCoordinator(
            objects=self._objects,
            engine=SearchEngine(),
            engine_root=config.engine_root,
            default_lang=config.engine.default_lang,
            snippet_size=config.engine.snippet_size,
        )
        self._coordinator.open()
        self._store = StateStore(config.state_path, purge=self._coordinator.purge)
        self._tracker = TabTracker(self._store)
        if not self._tracker.ensure_loaded():
            logger.warning("tracker state at %s is not durable", config.state_path)
        self._gateway = IndexingGateway(
            self._tracker,
            self._host,
            strict=config.highlight.strict,
            highlight_marker=config.highlight.marker,
        )
        self._registry = MethodRegistry()
        self._gateway.register(self._registry)
        register_lifecycle_methods(self._registry, self._tracker, self._host)
        register_engine_methods(
            self._registry, self._coordinator, max_results=config.engine.max_results
        )
        register_status_methods(
            self._registry,
            self._tracker,
            self._coordinator,
            config,
            read_audit_entries=self._audit_logger.read,
        )
        self._fallback_request_counter = 0

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def host(self) -> InMemoryHost:
        return self._host

    @property
    def tracker(self) -> TabTracker:
        return self._tracker

    @property
    def coordinator(self) -> ContentCoordinator:
        return self._coordinator

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def close(self) -> None:
        """Flush the default search database and release storage handles."""
        try:
            self._coordinator.commit()
        except EngineError as error:
            logger.warning("final commit failed: %s", error)
        self._objects.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                method="invalid_json",
                params={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                method="invalid_request",
                params={},
                response=parsed,
            )
            return parsed

        request = parsed
        response = self.dispatch(request)
        self.log_request(
            request_id=request.request_id,
            method=request.method,
            params=request.params,
            response=response,
        )
        return response

    def dispatch(self, request: Request) -> dict[str, object]:
        """Run one request and map its failure, if any, to an error envelope."""
        call = Call(params=request.params, sender_tab_id=request.sender_tab_id)
        try:
            result = self._registry.dispatch(request.method, call)
        except InvalidRequestError as error:
            return self.error_response(request.request_id, error.code, error.message)
        except LookupMissError as error:
            return self.error_response(request.request_id, "LOOKUP_MISS", str(error))
        except EngineError as error:
            return self.error_response(request.request_id, "ENGINE_ERROR", str(error))
        except PersistenceUnavailableError as error:
            return self.error_response(
                request.request_id, "PERSISTENCE_UNAVAILABLE", error.reason
            )
        except ActivationFailureError as error:
            return self.error_response(request.request_id, "ACTIVATION_FAILURE", error.reason)
        except Exception:
            logger.exception("unhandled error while serving %s", request.method)
            return self.error_response(
                request.request_id,
                "INTERNAL_ERROR",
                "Unhandled server error while executing method.",
            )

        warnings = _extract_result_warnings(result)
        return self.success_response(
            request_id=request.request_id,
            result=result,
            warnings=warnings,
        )

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})
        sender = payload.get("sender", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request params must be an object.",
            )
        if not isinstance(sender, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request sender must be an object.",
            )
        sender_tab_id = sender.get("tab_id")
        if sender_tab_id is not None and (
            not isinstance(sender_tab_id, int) or isinstance(sender_tab_id, bool)
        ):
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request sender.tab_id must be an integer.",
            )

        return Request(
            request_id=request_id,
            method=method,
            params=params,
            sender_tab_id=sender_tab_id,
        )

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize deterministic fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        """Generate deterministic fallback request IDs for invalid/missing IDs."""
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "error": {"code": code, "message": message},
        }

    def log_request(
        self,
        request_id: str,
        method: str,
        params: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Log one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            method=method,
            ok=bool(response.get("ok", False)),
            error_code=error_code,
            metadata=sanitize_params(params),
        )
        try:
            self._audit_logger.append(event)
        except OSError as error:
            logger.warning("audit append failed: %s", error)


def create_server(
    root: str = ".",
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    host: InMemoryHost | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None:
        overrides = CliOverrides(
            config_path=overrides.config_path,
            data_dir=Path(data_dir).resolve(),
            strict=overrides.strict,
            snippet_size=overrides.snippet_size,
            max_results=overrides.max_results,
            log_level=overrides.log_level,
        )
    config = load_effective_config(root=Path(root).resolve(), overrides=overrides)
    return StdioServer(config=config, host=host)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the tab search server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        config_path=Path(args.config).resolve() if args.config is not None else None,
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        strict=args.strict_highlight,
        snippet_size=args.snippet_size,
        max_results=args.max_results,
        log_level=args.log_level,
    )
    server = create_server(root=args.root, cli_overrides=overrides)
    configure_logging(server.config.log_level)
    try:
        server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    finally:
        server.close()
    return 0


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    warnings: list[str] = []
    for item in raw:
        if isinstance(item, str):
            warnings.append(item)
    return warnings


if __name__ == "__main__":
    raise SystemExit(main())
