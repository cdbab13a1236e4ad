import logging
import sys
from typing import Iterable, Optional

from app.utils.logging_redaction import install_redaction_filter

# Per-request and per-poll chatter; warnings still surface
_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default", "sqlalchemy.engine")


def setup_logging(level: str = "INFO", secrets: Iterable[Optional[str]] = ()) -> None:
    """
    Configure centralized application logging.

    `secrets` are literal values (bot token, relay credentials) scrubbed from
    every record on top of the built-in patterns.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    install_redaction_filter(secrets)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
