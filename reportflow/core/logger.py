from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from .settings import default_root


_LOGGER: logging.Logger | None = None


def _file_handler(log_dir: Path, fmt: logging.Formatter) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_dir / "app.log", maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    handler.setFormatter(fmt)
    return handler


def _redirect(logger: logging.Logger, log_dir: Path) -> None:
    target = str((log_dir / "app.log").resolve())
    for handler in list(logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            if handler.baseFilename == target:
                return
            logger.removeHandler(handler)
            handler.close()
            logger.addHandler(_file_handler(log_dir, handler.formatter or logging.Formatter()))
            return


def get_logger(log_dir: Path | None = None) -> logging.Logger:
    """Return the configured application logger writing to <root>/logs/app.log.

    Creates the directory if needed. Uses rotating file handler. Passing a
    different ``log_dir`` later moves the file handler there.
    """
    global _LOGGER
    if _LOGGER is not None:
        if log_dir is not None:
            _redirect(_LOGGER, Path(log_dir))
        return _LOGGER

    base = default_root() / "logs" if log_dir is None else Path(log_dir)

    logger = logging.getLogger("reportflow")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.addHandler(_file_handler(base, fmt))

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    logger.addHandler(console)

    _LOGGER = logger
    return logger
