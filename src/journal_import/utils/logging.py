from __future__ import annotations

import logging

from journal_import.config.settings import get_settings

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_CONFIGURED = False

# pdfplumber logs every parsed PDF object through pdfminer at DEBUG.
NOISY_LOGGERS = ("pdfminer", "openai", "httpx")


def configure_logging(level: str | int | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved: str | int = level if level is not None else get_settings().log_level
    logging.basicConfig(level=resolved, format=_DEFAULT_FORMAT)
    floor = max(logging.getLogger().getEffectiveLevel(), logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(floor)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
