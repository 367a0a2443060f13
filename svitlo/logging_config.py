"""
Logger setup shared by the bot, the cron runner and the API.

Timestamps are rendered in the configured fixed UTC offset. Lines logged
inside chat_logging(chat_id) are prefixed with "chat_<id> | ".
"""

import os
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

import pytz

from svitlo.config import UA_TZ_OFFSET_MIN

LOG_FORMAT = '%(asctime)s | %(chat_id)s%(levelname)s:%(name)s:%(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
BACKUP_DAYS = 7

_chat_id: ContextVar[Optional[str]] = ContextVar('log_chat_id', default=None)


def current_chat() -> Optional[str]:
    return _chat_id.get()


@contextmanager
def chat_logging(chat_id: Union[int, str, None]) -> Iterator[None]:
    """Attributes log lines inside the block to chat_id (None leaves them bare)."""
    token = _chat_id.set(None if chat_id is None else str(chat_id))
    try:
        yield
    finally:
        _chat_id.reset(token)


def _add_chat_prefix(record: logging.LogRecord) -> bool:
    chat_id = _chat_id.get()
    record.chat_id = f"chat_{chat_id} | " if chat_id is not None else ""
    return True


def local_time(*args):
    """Current time in the configured offset, as a struct_time for Formatter.converter."""
    return datetime.now(pytz.FixedOffset(UA_TZ_OFFSET_MIN)).timetuple()


def _level_from_env() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _build_formatter() -> logging.Formatter:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    formatter.converter = local_time
    return formatter


def _file_handler(log_dir: str, name: str) -> Optional[logging.Handler]:
    """Daily rotated <log_dir>/<name>.log, one file per process."""
    path = Path(log_dir)
    filename = path / f"{name}.log"
    try:
        path.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=filename, when='midnight', backupCount=BACKUP_DAYS, encoding='utf-8',
        )
    except OSError as e:
        print(f"File logging to {filename} disabled: {e}", file=sys.stderr)
        return None
    handler.suffix = "%Y-%m-%d"
    return handler


def setup_logging(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configures logger `name`: stdout always, plus a rotated file when
    log_dir is given. Calling it again replaces the handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_level_from_env())
    logger.propagate = False
    logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        file_handler = _file_handler(log_dir, name)
        if file_handler:
            handlers.append(file_handler)

    formatter = _build_formatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(_add_chat_prefix)
        logger.addHandler(handler)

    # aiogram logs every handled update at INFO
    logging.getLogger('aiogram.event').setLevel(logging.WARNING)
    return logger
