"""
Logging Setup.

structlog on top of the standard library: modules get a structlog logger
from `get_logger(__name__)`, and every record, including those emitted by
third-party stdlib loggers, passes through the same processor chain before
reaching the root handlers.

Settings come from the validated `logging` section of the app config
(config/settings/logging.yaml); arguments to `setup_logging()` take
precedence. Two outputs are available:

    console - stderr, rendered as JSON or as coloured key=value lines
    file    - rotating JSONL file under the project root

Records carry timestamp, level, logger, event, func_name and lineno.
Callers that log on behalf of another component (the mirror writer, the
widget reader) name it with `log_with_source()`.

Usage:
    from notekeeper.core.logging import get_logger, setup_logging

    setup_logging(level="DEBUG", format_type="console")
    logger = get_logger(__name__)
    logger.info("Note created", extra={"note_id": note_id})
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import Processor

from notekeeper.core.config import find_project_root, get_app_config
from notekeeper.core.config_schema import FileHandlerSchema

# Chatty libraries that stay at WARNING regardless of the app level.
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def _resolve_log_path(configured_path: str) -> Path:
    """Log file location, relative to the project root."""
    return find_project_root() / configured_path


def _processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]


def _formatter(renderer: Processor, chain: list[Processor]) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=chain)


def _file_handler(settings: FileHandlerSchema, formatter: logging.Formatter) -> logging.Handler:
    path = _resolve_log_path(settings.path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Install the structlog pipeline and replace the root handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        format_type: 'json' or 'console' for the stderr output
        enable_console: Write to stderr
        enable_file_logging: Write JSONL to the configured file

    Unset arguments fall back to logging.yaml.
    """
    settings = get_app_config().logging
    handlers = settings.handlers
    level = level or settings.level
    format_type = format_type or settings.format
    if enable_console is None:
        enable_console = handlers.console.enabled
    if enable_file_logging is None:
        enable_file_logging = handlers.file.enabled

    chain = _processors()
    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    as_json = _formatter(structlog.processors.JSONRenderer(), chain)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        if format_type == "console":
            console.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=True), chain))
        else:
            console.setFormatter(as_json)
        root.addHandler(console)

    if enable_file_logging:
        root.addHandler(_file_handler(handlers.file, as_json))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """structlog logger for `name`, usually the module's __name__."""
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log `message` at `level`, tagged with the component it concerns.

    Raises:
        AttributeError: If level is not a logger method

    Example:
        log_with_source(logger, "mirror", "info", "Mirror synced", notes=3)
    """
    getattr(logger, level.lower())(message, source=source, **kwargs)
