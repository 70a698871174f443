"""
Shared logging helpers for the screening engine

SECURITY: Sender names are user input. Everything that reaches a log line
goes through sanitize_for_logging to prevent log injection.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from aml_screening.config_manager import LoggingConfig

_CONTROL_CHARS = re.compile(r'[\r\n\x00-\x1f\x7f-\x9f]')
_WHITESPACE = re.compile(r'\s+')


def sanitize_for_logging(text: Optional[str], max_length: int = 500) -> str:
    """Sanitize user input for safe logging, preventing log injection

    Removes newlines, carriage returns, and other control characters
    that could be used to inject fake log entries.

    Args:
        text: User input text
        max_length: Maximum length kept

    Returns:
        Sanitized text safe for logging
    """
    if not text:
        return ''
    sanitized = _CONTROL_CHARS.sub(' ', str(text))
    sanitized = _WHITESPACE.sub(' ', sanitized).strip()
    if len(sanitized) > max_length:
        return sanitized[:max_length] + "...(truncated)"
    return sanitized


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging handlers from the logging section of config.yaml"""
    config = config or LoggingConfig()
    handlers = []

    if config.console:
        handlers.append(logging.StreamHandler())
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        handlers=handlers
    )
