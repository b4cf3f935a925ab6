"""
File operation utilities for the diff_utils package.

This module provides the storage backends the apply pipeline reads from and writes to.
"""

from .storage import (
    FileStorage,
    LocalFileStorage,
    InMemoryFileStorage,
    StorageError,
    StorageNotFoundError,
    StorageExistsError,
    atomic_write,
)
