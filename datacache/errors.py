"""Error types for datacache."""

from pathlib import Path
from typing import Optional


class DataCacheError(Exception):
    """Base class for all datacache errors."""


class ConfigurationError(DataCacheError, ValueError):
    """Invalid arguments or configuration (missing loader, bad policy names...)."""


class LoadError(DataCacheError):
    """The loader failed and there was no earlier snapshot to fall back on."""

    def __init__(self, message: str, cache_name: Optional[str] = None):
        super().__init__(message)
        self.cache_name = cache_name


class InventoryParseError(DataCacheError):
    """A file matches the cache naming pattern but its timestamp is unreadable."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


def create_user_friendly_error(error: Exception) -> str:
    """Turn an exception into a short message for the command line.

    Args:
        error: Exception to describe

    Returns:
        Human readable message
    """
    if isinstance(error, DataCacheError):
        return str(error)
    if isinstance(error, FileNotFoundError):
        return f"File not found: {error.filename}"
    if isinstance(error, PermissionError):
        return f"Permission denied: {error.filename}"
    if isinstance(error, (ImportError, AttributeError)):
        return f"Could not import loader: {error}"
    return f"{type(error).__name__}: {error}"
