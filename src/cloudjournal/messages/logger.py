"""
Logging for cloudjournal - short, color-coded lines an operator can scan.

Every logger under ``cloudjournal.shipper.<stream>`` is tagged with the
destination stream, so when several agents share a console (or a journal)
it is obvious which one resumed, backed off or stopped. Lines go to stdout
and, when ``CLOUDJOURNAL_LOG_DIR`` is set, to ``cloudjournal.log`` in that
directory as well.
"""
import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

import colorama

colorama.init()

LOG_DIR_ENV = "CLOUDJOURNAL_LOG_DIR"
LOG_FORMAT = "%(asctime)s  %(stream_name)s%(message)s"
DATE_FORMAT = "%H:%M:%S"

_SHIPPER_PREFIX = "cloudjournal.shipper."
_level = logging.INFO


def _get_event_loop_time() -> float:
    """
    Loop time inside a coroutine, monotonic time anywhere else.

    Both clocks are ``time.monotonic()`` for the default event loop, so
    values taken in either context can be subtracted from each other.
    """
    try:
        return asyncio.get_running_loop().time()
    except RuntimeError:
        return time.monotonic()


def _stream_tag(logger_name: str) -> str:
    """cloudjournal.shipper.host-1.sink -> host-1"""
    stream = logger_name[len(_SHIPPER_PREFIX):]
    for suffix in (".home", ".sink"):
        if stream.endswith(suffix):
            return stream[: -len(suffix)]
    return stream


class ColorFormatter(logging.Formatter):
    """Adds the white ``[stream]`` tag and colors START/OK lines."""

    PREFIX_COLORS = {
        "START": colorama.Fore.BLUE,
        "OK": colorama.Fore.GREEN,
    }
    LEVEL_COLORS = {
        logging.WARNING: colorama.Fore.YELLOW,
        logging.ERROR: colorama.Fore.RED,
    }

    def __init__(self, fmt=None, datefmt=None, use_color: bool = True):
        super().__init__(fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record):
        # Handlers share the record; decorate a copy
        record = logging.makeLogRecord(record.__dict__)
        reset = colorama.Style.RESET_ALL if self.use_color else ""
        if record.name.startswith(_SHIPPER_PREFIX):
            tag = _stream_tag(record.name)
            white = colorama.Fore.WHITE if self.use_color else ""
            record.stream_name = f"{white}[{tag}]{reset} "
        else:
            record.stream_name = ""

        color = self.PREFIX_COLORS.get(getattr(record, "color_prefix", None))
        if color is None:
            color = self.LEVEL_COLORS.get(record.levelno)
        if color is not None and self.use_color:
            record.msg = f"{color}{record.msg}{reset}"

        return super().format(record)


def _build_handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    log_dir = os.environ.get(LOG_DIR_ENV)
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_file = logging.FileHandler(path / "cloudjournal.log", encoding="utf-8")
        log_file.setFormatter(
            ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT, use_color=False)
        )
        handlers.append(log_file)

    for handler in handlers:
        handler.setLevel(logging.DEBUG)
    return handlers


class ShipperLogger:
    """
    Thin wrapper over a standard library logger.

    Handlers are attached the first time a name is used; later wrappers for
    the same name share them. Records don't propagate to the root logger,
    so a host application's logging setup doesn't print them twice.
    """

    BATCH_TEMPLATE = "Shipped {:,} records in {:.2f}s ({:,.0f} records/s)"

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            self.logger.setLevel(_level)
            for handler in _build_handlers():
                self.logger.addHandler(handler)
            self.logger.propagate = False

    def info(self, msg: str, color_prefix: Optional[str] = None) -> None:
        extra = {"color_prefix": color_prefix} if color_prefix else None
        self.logger.info(msg, extra=extra)

    def start(self, msg: str) -> None:
        """Log the line that opens an agent run."""
        self.info(f"START {msg}", color_prefix="START")

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)


def set_level(level: int) -> None:
    """Set the level for every cloudjournal logger, existing and future."""
    global _level
    _level = level
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("cloudjournal") and isinstance(existing, logging.Logger):
            existing.setLevel(level)


def get_logger(name: str) -> ShipperLogger:
    """Get a configured logger instance."""
    return ShipperLogger(name)
