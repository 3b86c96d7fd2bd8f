# Logging setup for SAMPi
# Rotating sampi.log, optional stderr echo and an ERROR hook for a supervisor

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, List, Optional, Union

# Default log directory (project root / log)
LOG_DIR = Path(__file__).resolve().parent.parent / "log"
LOG_FILE_NAME = "sampi.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers that drown the parser detail at DEBUG
QUIET_LOGGERS = ("urllib3",)

AlertCallback = Callable[[str, str], None]


class ErrorAlertHandler(logging.Handler):
    """Passes every ERROR and CRITICAL record to alert(message, level_name).

    Lets whatever launched the agent notice a dead serial port or an
    unwritable output directory without tailing sampi.log.
    """

    def __init__(self, alert: AlertCallback):
        super().__init__(level=logging.ERROR)
        self.alert = alert

    def emit(self, record: logging.LogRecord):
        try:
            self.alert(self.format(record), record.levelname)
        except Exception:
            self.handleError(record)


def setup_logging(
    log_dir: Union[str, Path, None] = None,
    verbose: bool = False,
    console: bool = True,
    alert: Optional[AlertCallback] = None,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> Path:
    """
    Send every logger to <log_dir>/sampi.log, and to stderr if console is set.
    verbose lowers the level to DEBUG. Handlers from an earlier call are
    replaced. Returns the log file path.
    """
    log_path = Path(log_dir or LOG_DIR) / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: List[logging.Handler] = [
        RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"),
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if alert:
        handlers.append(ErrorAlertHandler(alert))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path
