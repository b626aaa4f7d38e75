"""Structured request audit logging."""

from .audit import AuditEvent, JsonlAuditLogger, configure_logging, sanitize_params, utc_timestamp

__all__ = [
    "AuditEvent",
    "JsonlAuditLogger",
    "configure_logging",
    "sanitize_params",
    "utc_timestamp",
]
