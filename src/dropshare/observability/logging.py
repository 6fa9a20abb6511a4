"""Structured logging for dropshare.

Every stdlib ``logging`` record is rendered through structlog, so the
service logs one JSON object per line (or console output when
``LOG_FORMAT`` is not ``json``).  Two context variables are stamped onto
each entry:

  request_id  set by the request middleware
  share       redacted share prefix, bound by the share services while
              they work on one share

Audit events go to the ``dropshare.audit`` logger, which always renders
JSON and may be pointed at its own stream so audit lines can be shipped
separately from operational logs.

Usage::

    from dropshare.observability.logging import configure_logging

    configure_logging()  # once, at process startup
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, TextIO

import structlog

AUDIT_LOGGER_NAME = "dropshare.audit"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
share_ctx: ContextVar[str | None] = ContextVar("share", default=None)

# Keys that must never reach a log sink even if a caller passes them.
_SECRET_KEYS = frozenset({"password", "password_hash", "handle", "token", "share_id"})

_configured = False


@contextmanager
def bind_share(prefix: str) -> Iterator[None]:
    """Tag log entries emitted inside the block with a share prefix."""
    token = share_ctx.set(prefix)
    try:
        yield
    finally:
        share_ctx.reset(token)


def _add_context(logger, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    share = share_ctx.get()
    if share is not None:
        event_dict.setdefault("share", share)
    return event_dict


def _drop_secrets(logger, method_name: str, event_dict: dict) -> dict:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "<redacted>"
    return event_dict


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            _add_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ExtraAdder(),
            _drop_secrets,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    stream: TextIO | None = None,
    audit_stream: TextIO | None = None,
) -> None:
    """Install the structlog formatter on the root and audit loggers.

    Args:
        level: Level name. Defaults to ``LOG_LEVEL`` or INFO.
        json_output: JSON lines when True, console rendering when False.
            Defaults to ``LOG_FORMAT == "json"``.
        stream: Operational log stream. Defaults to stdout.
        audit_stream: Where ``dropshare.audit`` writes. Defaults to
            ``stream``. Audit lines are JSON regardless of ``json_output``.

    Safe to call more than once; only the first call takes effect.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"
    stream = stream or sys.stdout

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_formatter(renderer))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    audit_handler = logging.StreamHandler(audit_stream or stream)
    audit_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.handlers.clear()
    audit.addHandler(audit_handler)
    audit.setLevel(logging.INFO)
    audit.propagate = False

    # Request lines come from our middleware; per-call client chatter is noise.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def reset_logging() -> None:
    """Undo configure_logging() so it can run again. Used by tests."""
    global _configured
    _configured = False
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.handlers.clear()
    audit.propagate = True
    audit.setLevel(logging.NOTSET)
