import logging
import os
from logging.handlers import TimedRotatingFileHandler


# ===========================================================================================================
# Logger Configuration
# ===========================================================================================================

BASE_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "../..")
)
LOG_DIR  = os.environ.get("CIMIS_IRRIGATION_LOG_DIR", os.path.join(BASE_DIR, "runtime", "logs"))
LOG_FILE = os.path.join(LOG_DIR, "irrigation_log.log")

ROTATION_WHEN = 'midnight'  # Rotate logs at midnight
ROTATION_INTERVAL = 1      # Rotate every day
ROTATION_BACKUP_COUNT = 30  # Keep last 30 log files


# Ensure log directory exists
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR, exist_ok=True)

# Formatter - common format for all handlers
formatter = logging.Formatter('%(asctime)s | %(name)s | %(levelname)s | %(message)s')


# Rotating File Handler - rotates logs daily, keeps 30 files
file_handler = TimedRotatingFileHandler(
    LOG_FILE,
    when=ROTATION_WHEN,
    interval=ROTATION_INTERVAL,
    backupCount=ROTATION_BACKUP_COUNT,
    encoding='utf-8',
    delay=True                          # Delay file creation until first log write
)

file_handler.setFormatter(formatter)
file_handler.setLevel(logging.DEBUG)

# Console Handler - logs INFO and above to stderr
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
console_handler.setLevel(logging.INFO)



def get_logger(name: str) -> logging.Logger:
    """Returns a logger with the specified name, configured with file and console handlers."""
    logger = logging.getLogger(name)
    if not logger.handlers:  # Prevent duplicate handlers
        logger.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        logger.addHandler(console_handler)
        logger.propagate = False  # Prevent log duplication up the hierarchy
    return logger


def set_log_level(level: str, enabled: bool = True) -> None:
    """Applies the configured log level to the console handler. Disabled logging silences the console only."""
    if not enabled:
        console_handler.setLevel(logging.CRITICAL + 1)
        return
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
