import logging
from pathlib import Path
from typing import Optional
from devshell.core.models import FrameworkSettings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

_HANDLER_NAME = "devshell-framework-log"


def configure_file_logging(settings: FrameworkSettings) -> Optional[Path]:
    """
    Send the ``devshell`` logger tree to the framework log file at the configured level.

    Returns the log file path, or None when the log directory cannot be created.
    Calling it again replaces the previous handler instead of stacking a new one.
    """
    log_file = settings.log_file
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        return None

    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger("devshell")
    for existing in list(logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logger.removeHandler(existing)
            existing.close()

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return log_file
