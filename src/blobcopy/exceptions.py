# src/blobcopy/exceptions.py
"""Custom exceptions for the blobcopy application."""


class BlobCopyError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(BlobCopyError):
    """Raised for configuration-related issues, like an unresolved object name."""

    pass


class BackendError(BlobCopyError):
    """Raised when the storage backend fails in a way that ends the run."""

    pass


class CopyConflictError(BlobCopyError):
    """Raised by a backend when a copy is already pending onto the destination."""

    pass
