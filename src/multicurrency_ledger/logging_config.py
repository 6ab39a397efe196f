"""structlog setup for the ledger.

Ledger events and stdlib records (uvicorn, httpx) share one set of handlers
through ``structlog.stdlib.ProcessorFormatter``.
The console renders pretty output or JSON per ``MCL_LOG_FORMAT``; the
optional ``MCL_LOG_FILE`` always receives JSON lines.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from multicurrency_ledger.config import Settings, get_settings

# Each logs one INFO line per request.
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _service_fields(settings: Settings) -> Processor:
    def add_service_fields(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("environment", settings.environment.value)
        return event_dict

    return add_service_fields


def shared_processors(settings: Settings) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_fields(settings),
    ]


def build_formatter(settings: Settings, as_json: bool) -> logging.Formatter:
    """Formatter rendering both structlog events and foreign stdlib records."""
    renderers: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta
    ]
    if as_json:
        renderers += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers.append(structlog.dev.ConsoleRenderer(colors=settings.debug))
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors(settings),
        processors=renderers,
    )


def configure_logging(settings: Settings | None = None) -> None:
    """Install the ledger's handlers on the root logger.

    Called from the API lifespan. Safe to call again; handlers are replaced,
    not stacked.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.value)

    structlog.configure(
        processors=[
            *shared_processors(settings),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(build_formatter(settings, settings.log_format == "json"))
    handlers: list[logging.Handler] = [console]

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(build_formatter(settings, as_json=True))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(level)

    floor = logging.DEBUG if settings.debug else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, floor))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually ``get_logger(__name__)``."""
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind log context for the duration of a block.

    Keys already bound outside the block get their old values back on exit,
    so a job run nested in a request keeps the request's ids.

    Example:
        with LogContext(job_run_id=run_id, valid_date="2026-01-15"):
            logger.info("rate_refresh_started")
    """

    def __init__(self, **kwargs: Any) -> None:
        self._bound = structlog.contextvars.bound_contextvars(**kwargs)

    def __enter__(self) -> "LogContext":
        self._bound.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._bound.__exit__(*exc_info)
