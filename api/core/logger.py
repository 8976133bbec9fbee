"""structlog setup for the API, the CLI and Alembic.

Every record, whether it comes from ``get_logger`` or from a stdlib logger
(uvicorn, SQLAlchemy, Alembic, Pillow), leaves through one stdout handler and
one renderer:

    LOG_FORMAT=json     one JSON object per line
    LOG_FORMAT=console  coloured key/value lines
    unset               JSON when OTEL_EXPORTER_OTLP_ENDPOINT is set

Events are dotted names with keyword context::

    logger = get_logger(__name__)
    logger.info("certificate.issued", certificate_id="CERT-...", event_id="evt_1")
"""

import logging
import os
import sys

import structlog
from opentelemetry import trace
from structlog.types import EventDict, Processor

QUIET_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "PIL": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def _telemetry_configured() -> bool:
    return bool(os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"))


def add_trace_ids(
    _logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Copy the active span's trace and span IDs onto the event."""
    if not _telemetry_configured():
        return event_dict

    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def drop_color_message(
    _logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """uvicorn passes a pre-coloured copy of its message as an extra."""
    event_dict.pop("color_message", None)
    return event_dict


def log_level_from_env() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def use_json_output() -> bool:
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format in ("json", "console"):
        return log_format == "json"
    return _telemetry_configured()


def _renderer(as_json: bool) -> Processor:
    if as_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging() -> None:
    """Route structlog and stdlib logging through a single stdout handler.

    Safe to call more than once; the root logger's handlers are replaced.
    """
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_trace_ids,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # stdlib records keep their extra= fields as event keys
            foreign_pre_chain=[
                *shared,
                structlog.stdlib.ExtraAdder(),
                drop_color_message,
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(use_json_output()),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level_from_env())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


bind_contextvars = structlog.contextvars.bind_contextvars
clear_contextvars = structlog.contextvars.clear_contextvars
