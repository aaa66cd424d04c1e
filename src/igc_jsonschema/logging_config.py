"""Process-wide logging setup: structlog rendering on top of the standard logging module."""
import logging as py_logging
import sys

import structlog

from .config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Configures stdlib logging and structlog once for the whole run.

    Log lines go to stderr (and to ``config.file`` when set) so that command
    output on stdout stays machine-readable.
    """
    handlers: list[py_logging.Handler] = [py_logging.StreamHandler(sys.stderr)]
    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(py_logging.FileHandler(config.file, encoding="utf-8"))

    py_logging.basicConfig(
        level=getattr(py_logging, config.level.upper(), py_logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=config.file is None and sys.stderr.isatty())
            if config.format.lower() == "console"
            else structlog.processors.JSONRenderer(sort_keys=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(__name__).debug("Logging configured.", logging_level=config.level, logging_format=config.format)
