"""
Logging Utilities for deckforge

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union


# Patterns for secret masking (credentials in URLs, headers, env dumps)
SECRET_PATTERNS = [
    (re.compile(r"(API_KEY|TOKEN|SECRET|PASSWORD|PASS|AUTH)[=:]\s*['\"]?([^'\"\ \n]+)", re.I), r"\1=***"),
    (re.compile(r"(Bearer|token)\s+([a-zA-Z0-9_\-\.]+)", re.I), r"\1 ***"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "sk-***"),
]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def mask_secrets(text: str) -> str:
    """
    Mask secrets in text before logging.

    Args:
        text: Raw text that may contain secrets

    Returns:
        Text with secrets replaced by ***
    """
    masked = text
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


class SecretMaskingFilter(logging.Filter):
    """Rewrites every record message through mask_secrets()."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_secrets(record.getMessage())
        record.args = None
        return True


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure the root logger for command-line use.

    Args:
        level: Logging level name or number
        log_file: Optional file receiving the same records as stderr
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.addFilter(SecretMaskingFilter())

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
