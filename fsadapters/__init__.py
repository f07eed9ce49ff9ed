from fsadapters.adapter import AsyncAdapter
from fsadapters.exceptions import (
    StorageConfigurationError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
)
from fsadapters.local import AsyncLocalAdapter
from fsadapters.memory import AsyncMemoryAdapter
from fsadapters.s3 import AsyncS3Adapter
from fsadapters.utils.emulate import emulate_directories
from fsadapters.utils.entry import Entry
from fsadapters.utils.prefix import PathPrefixer

__all__ = [
    'AsyncAdapter',
    'AsyncLocalAdapter',
    'AsyncMemoryAdapter',
    'AsyncS3Adapter',
    'Entry',
    'PathPrefixer',
    'StorageConfigurationError',
    'StorageError',
    'StorageFileNotFoundError',
    'StoragePermissionError',
    'emulate_directories',
]
