"""Structured logging setup.

Every engine module logs through ``structlog.get_logger(__name__)`` with
key-value context (``execution_id``, ``container_id``, ``language``). This
module wires those loggers to the standard library so uvicorn, docker-py and
the engine share one output stream.
"""

# Standard library imports
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

# Third-party imports
import structlog

# Local application imports
from .._version import __version__
from ..config import settings
from ..config.logging import LoggingConfig

SERVICE_NAME = "codeexec"

# Event keys that would carry untrusted submission text
REDACTED_KEYS = frozenset({"code", "stdin", "input", "source"})

LIBRARY_LOGGERS = ("docker", "urllib3", "uvicorn.access")


def add_service_context(logger, method_name, event_dict):
    """Stamp every entry with the service name and version."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def redact_submission(logger, method_name, event_dict):
    """Replace submission text with its length."""
    for key in REDACTED_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, (str, bytes)):
            event_dict[key] = f"<{len(value)} chars redacted>"
    return event_dict


def build_processors(config: LoggingConfig) -> list:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_submission,
        add_service_context,
    ]
    if config.use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog and the root logger from ``config`` (default: settings)."""
    config = config or settings.logging

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=config.level_number)

    structlog.configure(
        processors=build_processors(config),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if config.file:
        add_file_handler(config)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(config.library_level_number)


def add_file_handler(config: LoggingConfig) -> logging.Handler:
    """Mirror log output to a size-rotated file."""
    path = Path(config.file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(config.level_number)
    logging.getLogger().addHandler(handler)
    return handler
