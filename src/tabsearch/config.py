"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "tabsearch.toml"
DATA_DIR_NAME = ".tabsearch"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

SNIPPET_SIZE_CAP = 10_000
MAX_RESULTS_CAP = 1_000


@dataclass(slots=True, frozen=True)
class EngineConfig:
    """Search engine defaults applied when a request leaves them out."""

    default_lang: str = "english"
    snippet_size: int = 300
    max_results: int = 30


@dataclass(slots=True, frozen=True)
class HighlightConfig:
    """When a search navigation should ask the tab to highlight matches."""

    strict: bool = False
    marker: str = "<b>"


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    root: Path
    data_dir: Path
    engine: EngineConfig
    highlight: HighlightConfig
    log_level: str = "WARNING"

    @property
    def state_path(self) -> Path:
        return self.data_dir / "state.json"

    @property
    def objects_path(self) -> Path:
        return self.data_dir / "objects.sqlite3"

    @property
    def engine_root(self) -> Path:
        return self.data_dir / "engine"

    @property
    def audit_path(self) -> Path:
        return self.data_dir / "audit.jsonl"

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for status responses."""
        return {
            "root": str(self.root),
            "data_dir": str(self.data_dir),
            "engine": {
                "default_lang": self.engine.default_lang,
                "snippet_size": self.engine.snippet_size,
                "max_results": self.engine.max_results,
            },
            "highlight": {
                "strict": self.highlight.strict,
                "marker": self.highlight.marker,
            },
            "log_level": self.log_level,
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    config_path: Path | None = None
    data_dir: Path | None = None
    strict: bool | None = None
    snippet_size: int | None = None
    max_results: int | None = None
    log_level: str | None = None


def default_config(root: Path) -> ServerConfig:
    """Build default config for a given working root."""
    resolved_root = root.resolve()
    return ServerConfig(
        root=resolved_root,
        data_dir=resolved_root / DATA_DIR_NAME,
        engine=EngineConfig(),
        highlight=HighlightConfig(),
    )


def load_config_file(path: Path) -> dict[str, object]:
    """Load an optional TOML config file."""
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def merge_config(
    base: ServerConfig, payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, config file, then CLI/startup overrides."""
    storage_payload = _get_table(payload, "storage")
    engine_payload = _get_table(payload, "engine")
    highlight_payload = _get_table(payload, "highlight")
    logging_payload = _get_table(payload, "logging")

    data_dir = base.data_dir
    if "data_dir" in storage_payload:
        raw_data_dir = storage_payload["data_dir"]
        if not isinstance(raw_data_dir, str) or not raw_data_dir:
            raise ValueError("Config field 'storage.data_dir' must be a non-empty string.")
        candidate = Path(raw_data_dir)
        data_dir = candidate if candidate.is_absolute() else base.root / candidate

    default_lang = base.engine.default_lang
    if "default_lang" in engine_payload:
        default_lang = _non_empty_str(engine_payload["default_lang"], "engine.default_lang")
    snippet_size = _optional_positive_int_with_cap(
        engine_payload.get("snippet_size"),
        "engine.snippet_size",
        base.engine.snippet_size,
        SNIPPET_SIZE_CAP,
    )
    max_results = _optional_positive_int_with_cap(
        engine_payload.get("max_results"),
        "engine.max_results",
        base.engine.max_results,
        MAX_RESULTS_CAP,
    )

    strict = base.highlight.strict
    if "strict" in highlight_payload:
        raw_strict = highlight_payload["strict"]
        if not isinstance(raw_strict, bool):
            raise ValueError("Config field 'highlight.strict' must be a boolean.")
        strict = raw_strict
    marker = base.highlight.marker
    if "marker" in highlight_payload:
        marker = _non_empty_str(highlight_payload["marker"], "highlight.marker")

    log_level = base.log_level
    if "level" in logging_payload:
        log_level = _log_level(logging_payload["level"], "logging.level")

    merged = ServerConfig(
        root=base.root,
        data_dir=data_dir,
        engine=EngineConfig(
            default_lang=default_lang,
            snippet_size=snippet_size,
            max_results=max_results,
        ),
        highlight=HighlightConfig(strict=strict, marker=marker),
        log_level=log_level,
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    snippet_size = _optional_positive_int_with_cap(
        overrides.snippet_size,
        "overrides.snippet_size",
        config.engine.snippet_size,
        SNIPPET_SIZE_CAP,
    )
    max_results = _optional_positive_int_with_cap(
        overrides.max_results,
        "overrides.max_results",
        config.engine.max_results,
        MAX_RESULTS_CAP,
    )
    log_level = config.log_level
    if overrides.log_level is not None:
        log_level = _log_level(overrides.log_level, "overrides.log_level")
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        root=config.root,
        data_dir=data_dir.resolve(),
        engine=EngineConfig(
            default_lang=config.engine.default_lang,
            snippet_size=snippet_size,
            max_results=max_results,
        ),
        highlight=HighlightConfig(
            strict=overrides.strict if overrides.strict is not None else config.highlight.strict,
            marker=config.highlight.marker,
        ),
        log_level=log_level,
    )


def load_effective_config(root: Path, overrides: CliOverrides | None = None) -> ServerConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    resolved_root = root.resolve()
    effective_overrides = overrides or CliOverrides()
    base = default_config(resolved_root)
    config_path = effective_overrides.config_path or resolved_root / CONFIG_FILE_NAME
    payload = load_config_file(config_path)
    return merge_config(base, payload, effective_overrides)


def _non_empty_str(value: object, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value


def _log_level(value: object, name: str) -> str:
    if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
        raise ValueError(f"Config field '{name}' must be one of {', '.join(LOG_LEVELS)}.")
    return value.upper()


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
