"""
Utility functions for file system operations, string sanitization and logging.

This module provides helper functions for:
- Sanitizing user-provided strings before they are drawn into a PDF
- Ensuring directory creation with proper error handling
- Building collision-free tokens for temporary file names
- Configuring the standard library logger
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import time
from pathlib import Path

# Characters stripped from user strings: markup and quoting characters
SANITIZE_PATTERN = re.compile(r"[<>'\"`;]")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def sanitize_string(value: str | None) -> str:
    """
    Remove markup and quoting characters from a user-provided string.

    Args:
        value: The original string; ``None`` and non-strings become ``""``

    Returns:
        The string without any of ``< > ' " ` ;``

    Example:
        >>> sanitize_string("<b>Contract 'A'</b>;")
        "bContract A/b"
    """
    if not value or not isinstance(value, str):
        return ""
    return SANITIZE_PATTERN.sub("", value)


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    This is a safe idempotent operation that won't fail if the directory
    already exists.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def unique_token() -> str:
    """
    Build a token that is unique across threads and processes.

    Combines a nanosecond timestamp, the process id and 64 random bits, so two
    requests started in the same nanosecond still get different names.
    """
    return f"{time.time_ns()}-{os.getpid()}-{secrets.token_hex(8)}"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(handler, "_contract_pdf_service", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._contract_pdf_service = True  # type: ignore[attr-defined]
        root.addHandler(handler)
