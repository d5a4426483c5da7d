"""Logging setup for the stampedit editing engine.

The engine never configures logging on import. An embedding application
calls setup_logging_from_settings() (or setup_logging()) once at startup.

Records emitted while an edit session is active carry an
``edit_session_id`` attribute, taken from a context variable so that
concurrent sessions on one event loop do not tag each other's records.
"""

import contextvars
import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional


NO_SESSION = "-"

LOG_FORMAT = (
    '%(asctime)s - %(name)s - %(levelname)s - [session %(edit_session_id)s] - '
    '[%(filename)s:%(lineno)d] - %(message)s'
)
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Libraries the engine drives that log per request or per decode
QUIET_LOGGERS = ('httpx', 'httpcore', 'PIL')

_edit_session_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "edit_session_id", default=NO_SESSION
)


def current_edit_session() -> str:
    """Session id bound to the running context, or NO_SESSION."""
    return _edit_session_id.get()


@contextmanager
def edit_session(session_id: str) -> Iterator[str]:
    """Bind session_id to log records emitted in the current context."""
    token = _edit_session_id.set(session_id)
    try:
        yield session_id
    finally:
        _edit_session_id.reset(token)


class EditSessionFilter(logging.Filter):
    """Stamps each record with the edit session bound to its context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "edit_session_id"):
            record.edit_session_id = _edit_session_id.get()
        return True


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(EditSessionFilter())
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_dir: str = "logs",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
):
    """Install console and optional rotating file handlers on the root logger.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        log_to_file: Also write stampedit_<date>.log and an errors-only file
        log_dir: Directory for log files, created if missing
        max_bytes: Maximum size of each log file before rotation
        backup_count: Number of rotated files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_make_handler(logging.StreamHandler(sys.stdout), numeric_level))

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d')

        root_logger.addHandler(_make_handler(
            RotatingFileHandler(
                log_path / f"stampedit_{stamp}.log",
                maxBytes=max_bytes,
                backupCount=backup_count
            ),
            numeric_level
        ))
        root_logger.addHandler(_make_handler(
            RotatingFileHandler(
                log_path / f"stampedit_errors_{stamp}.log",
                maxBytes=max_bytes,
                backupCount=backup_count
            ),
            logging.ERROR
        ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={logging.getLevelName(numeric_level)}, "
        f"file_logging={log_to_file}"
    )


def setup_logging_from_settings(settings: Optional[object] = None):
    """Configure logging from STAMPEDIT_LOG_LEVEL, STAMPEDIT_LOG_TO_FILE and STAMPEDIT_LOG_DIR."""
    if settings is None:
        from stampedit.config import get_settings
        settings = get_settings()

    setup_logging(
        log_level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR
    )
