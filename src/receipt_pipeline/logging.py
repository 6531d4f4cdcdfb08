import logging
import os
from typing import Optional


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s (%(threadName)s): %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_CONFIGURED_ATTR = "_receipt_pipeline_configured"


def _coerce_level(value: Optional[str]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Logger for one pipeline stage (``preprocess``, ``ocr``, ``ai``, ``orchestrator`` ...).

    Stage loggers live under ``receipt_pipeline.`` and do not propagate, so a
    host embedding the pipeline controls them through LOG_LEVEL / LOG_FILE or
    :func:`set_level` without touching its own root logger. Records carry the
    thread name to tell concurrent receipt uploads apart.
    """
    logger = logging.getLogger(f"receipt_pipeline.{name}")
    if getattr(logger, _CONFIGURED_ATTR, False):
        return logger

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    logger.setLevel(level)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            logger.warning("LOG_FILE could not be opened; continuing without file logging")

    logger.propagate = False
    setattr(logger, _CONFIGURED_ATTR, True)
    return logger


def set_level(level: str) -> None:
    """Apply ``level`` to every pipeline logger created so far (used by the CLI --verbose flag)."""
    resolved = _coerce_level(level)
    for name, logger in logging.root.manager.loggerDict.items():
        if not name.startswith("receipt_pipeline.") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(resolved)
        for handler in logger.handlers:
            handler.setLevel(resolved)
