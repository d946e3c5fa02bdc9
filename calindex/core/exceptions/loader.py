"""Loader-related exceptions."""


class LoaderException(Exception):
    """Base exception for export file loading errors."""
    pass


class SourcePathNotFoundError(LoaderException):
    """Raised when a file or directory to load does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path not found: {path}")


class FileSizeExceededError(LoaderException):
    """Raised when an export file exceeds the maximum size limit."""

    def __init__(self, filename: str, size: int, max_size: int):
        self.filename = filename
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File '{filename}' exceeds maximum size: {size} bytes (max: {max_size} bytes)"
        )
