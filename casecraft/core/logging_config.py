import logging
import sys
from typing import Optional

from casecraft.core.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Libraries that log every request or connection at INFO.
QUIET_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "openai",
    "multipart",
)

_configured = False


def configure_logging(level_override: Optional[str] = None) -> None:
    """
    Send log records to stdout, once per process.

    ``debug`` in settings lowers the casecraft loggers to DEBUG without
    touching third-party loggers.
    """
    global _configured

    if _configured:
        return

    settings = get_settings()
    level = (level_override or settings.log_level).upper()

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout)

    if settings.debug:
        logging.getLogger("casecraft").setLevel(logging.DEBUG)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={"level": level, "environment": settings.environment},
    )
    _configured = True
