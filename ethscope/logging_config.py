import logging
import logging.handlers
import os
from datetime import datetime

from ethscope.config import Settings


def setup_logging(settings: Settings) -> str:
    """Send everything to a per-run log file and only errors to stderr.

    The terminal belongs to the dashboard, so the console handler stays quiet.
    Returns the log file path.
    """
    os.makedirs(settings.log_dir, exist_ok=True)
    log_file = os.path.join(settings.log_dir, f"{datetime.now().strftime('%Y%m%d%H%M')}.log")

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s")
    )
    file_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.DEBUG))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    console_handler.setLevel(logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # urllib3 logs every connection at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_file
