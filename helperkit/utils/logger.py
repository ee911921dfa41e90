"""
structlog setup for helperkit.

Every event carries the app name and environment plus whatever is bound with
`operation_context`. Context bound there is stored in contextvars, so it also
reaches log lines emitted from asyncio tasks started inside the block (each
entry task of `transform_all`, for instance).

Development renders to the console; other environments emit JSON lines.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from helperkit.core.config import settings


def _add_app_context(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("app", settings.APP_NAME)
    event_dict.setdefault("env", settings.APP_ENV)
    return event_dict


def _level() -> int:
    level = logging.getLevelName(settings.LOG_LEVEL)
    return level if isinstance(level, int) else logging.INFO


def build_processors(json_logs: bool) -> List[Processor]:
    """Processor chain shared by `configure_logging` and tests."""
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_app_context,
    ]
    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(json_logs: Optional[bool] = None) -> None:
    """
    Route structlog through stdlib logging at `settings.LOG_LEVEL`.

    Args:
        json_logs: Force JSON (True) or console (False) output. Defaults to
            console in development and JSON everywhere else.
    """
    if json_logs is None:
        json_logs = not settings.is_development

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=_level())
    structlog.configure(
        processors=build_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def operation_context(operation: str, **fields: Any) -> Iterator[None]:
    """Bind `operation` and extra fields to every log line inside the block."""
    with structlog.contextvars.bound_contextvars(operation=operation, **fields):
        yield


def add_transform_context(key: Any, stage: str) -> Dict[str, Any]:
    """Fields for a log line about one entry of a keyed transform."""
    return {"entry_key": str(key), "stage": stage}
