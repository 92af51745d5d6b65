"""Structured logging for gwipt using structlog."""

import logging
import os

import structlog
from structlog.types import FilteringBoundLogger


def get_log_level() -> int:
    """Get root log level from LOG_LEVEL env."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


# Configure structlog based on environment
def configure_structlog():
    """Configure structlog with pretty or JSON output based on LOG_FORMAT env.

    Stdlib logging is routed through structlog so library output (openai,
    watchdog, httpx) shares the same renderer and level controls.
    """
    log_format = os.getenv("LOG_FORMAT", "pretty").lower()
    log_colors_env = os.getenv("LOG_COLORS", "true").lower()
    log_colors = log_colors_env in ("true", "1", "yes", "on")

    # Pretty output keeps the short local wall-clock stamp of a terminal tool
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="iso")
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_colors)
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False)

    # Root logger + handler with ProcessorFormatter
    logging.root.handlers = []
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                timestamper,
            ],
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(get_log_level())

    logging.captureWarnings(True)

    # Library log levels (inherited fmt via ProcessorFormatter)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    # structlog pipeline; wrap_for_formatter hands off to ProcessorFormatter above
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            timestamper,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog on module import
configure_structlog()


def get_logger(name: str, level: int | None = None) -> FilteringBoundLogger:
    """Get a configured structlog logger."""
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(level if level is not None else get_log_level())
    return structlog.get_logger(name)


# Global logger instances
logger = get_logger("gwipt")
git_logger = get_logger("gwipt.git")
llm_logger = get_logger("gwipt.llm")
watch_logger = get_logger("gwipt.watch")
