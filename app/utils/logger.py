"""로깅 설정 모듈.

Centralized logging configuration.
All modules should use `get_logger(__name__)` to obtain a logger instance.
When Axiom credentials are configured, records are also shipped to Axiom.

The first `get_logger` call configures the process root logger: it adds a
stdout handler and sets the level from LOG_LEVEL. Repository modules call it
at import time, so importing any of them has that side effect.
"""

import logging
import sys

from axiom_py import Client as AxiomClient
from axiom_py.logging import AxiomHandler

from app.config import settings

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_initialized = False


def _init_logging() -> None:
    """루트 로거를 한 번만 설정합니다 (Configure the root logger once)."""
    global _initialized
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())
    root.addHandler(handler)

    # Axiom 미설정시 콘솔만 사용 — Console only if Axiom not configured
    if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
        client = AxiomClient(token=settings.AXIOM_API_TOKEN)
        root.addHandler(AxiomHandler(client, settings.AXIOM_DATASET))

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """모듈 로거를 반환합니다.

    Return a named logger, configuring the root logger on first use.

    Args:
        name: 로거 이름, 보통 __name__ (Logger name, usually __name__)

    Returns:
        logging.Logger: 설정된 로거 (Configured logger)
    """
    _init_logging()
    return logging.getLogger(name)
