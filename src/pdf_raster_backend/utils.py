"""
Utility functions for file system operations, identifiers and logging.

This module provides helper functions for:
- Sanitizing caller-provided directory identifiers for filesystem usage
- Ensuring directory creation
- Clearing the upload directory and per-document output directories
- Configuring the package logger
"""

from __future__ import annotations

import logging
import re
import sys
import time
from pathlib import Path

logger = logging.getLogger(__name__)

# Pattern to match characters that are not safe for filesystem paths
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def generate_directory_id() -> str:
    """Server-side default directory identifier: epoch time in milliseconds."""
    return str(int(time.time() * 1000))


def sanitize_directory_id(directory_id: str | int | None) -> str:
    """
    Turn a caller-supplied directory identifier into a safe path component.

    Unsafe characters are replaced with hyphens and leading dots or separators
    are stripped so the identifier can never escape its parent directory.
    Case is preserved.

    Args:
        directory_id: The identifier submitted with the upload, if any

    Returns:
        A filesystem-safe identifier, or a freshly generated one if nothing
        usable remains

    Example:
        >>> sanitize_directory_id("42")
        "42"
        >>> sanitize_directory_id("../etc")
        "etc"
    """
    if directory_id is None:
        return generate_directory_id()
    cleaned = SANITIZE_PATTERN.sub("-", str(directory_id).strip())
    cleaned = cleaned.strip("-_.")
    return cleaned or generate_directory_id()


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def clean_directory_images(output_root: Path, directory_id: str) -> int:
    """
    Delete previously rendered pages for one directory identifier.

    Args:
        output_root: Root of the image output tree
        directory_id: Identifier whose subdirectory should be emptied

    Returns:
        Number of files removed (0 if the directory does not exist)

    Raises:
        OSError: If a file cannot be removed
    """
    target = output_root / directory_id
    if not target.is_dir():
        return 0

    removed = 0
    for entry in target.iterdir():
        if entry.is_file():
            entry.unlink()
            removed += 1
    logger.info("Cleaned image directory for ID %s (%d files)", directory_id, removed)
    return removed


def cleanup_input_directory(input_root: Path) -> int:
    """
    Delete every file in the upload directory.

    The image output tree is left untouched.

    Args:
        input_root: Directory holding uploaded PDFs

    Returns:
        Number of files removed

    Raises:
        OSError: If listing or removing fails
    """
    if not input_root.exists():
        return 0

    removed = 0
    for entry in input_root.iterdir():
        if entry.is_file():
            entry.unlink()
            removed += 1
    logger.info("Cleaned PDF input directory %s (%d files)", input_root, removed)
    return removed


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger (once) and set its level."""
    package_logger = logging.getLogger("pdf_raster_backend")
    package_logger.setLevel(str(level).upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    return package_logger
