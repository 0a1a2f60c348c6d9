"""
Diagnostic event logging.

Engine steps emit structured events (``ask:provider:resolve``,
``primer:rebuild:failure`` and so on) as JSON lines through structlog.
"""

import logging
from typing import Any, Dict

import structlog


structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger("memoir_engine.diagnostic")


def log_diagnostic(level: str, step: str, **payload: Any) -> None:
    """
    Emit one diagnostic event.

    Args:
        level: "log" for progress events, "error" for failures
        step: Event name, colon separated (e.g. "ask:provider:success")
        **payload: Extra fields rendered into the JSON line
    """
    if level == "error":
        logger.error(step, **payload)
    else:
        logger.info(step, **payload)


def describe_error(err: BaseException) -> Dict[str, str]:
    return {"name": type(err).__name__, "message": str(err)}


def configure_logging(level: int = logging.INFO) -> None:
    """Route stdlib logging (and so structlog events) to stderr at ``level``."""
    logging.basicConfig(level=level, format="%(message)s")
