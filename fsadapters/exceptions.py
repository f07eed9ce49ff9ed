from typing import Optional


class StorageError(Exception):
    """Base error for storage operations.

    Attributes
    ----------
    path : str, optional
        Path the failed operation was called with.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class StorageFileNotFoundError(StorageError):
    """Target does not exist where the operation requires it."""


class StoragePermissionError(StorageError):
    """Medium refused access to the target."""


class StorageConfigurationError(StorageError):
    """Adapter configuration is missing or invalid."""
