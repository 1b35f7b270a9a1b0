"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MingwDlError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MingwDlError):
    """Raised for issues related to configuration loading or validation."""


class FetchError(MingwDlError):
    """Raised when release metadata cannot be retrieved from the remote source."""


class DecodeError(MingwDlError):
    """Raised when the release metadata payload is malformed."""


class OperationInProgressError(MingwDlError):
    """Raised when a download is started while another one is still running."""


class TransferError(MingwDlError):
    """Raised when a download fails because of an I/O or network problem."""


class TransferCancelledError(TransferError):
    """Raised when a download is aborted because cancellation was requested."""


class ExtractError(MingwDlError):
    """Base class for failures while unpacking a downloaded archive."""


class ArchiveOpenError(ExtractError):
    """Raised when an archive cannot be opened or its format is not supported."""


class ArchiveReadError(ExtractError):
    """Raised when reading entry headers or entry data fails."""


class ArchiveWriteError(ExtractError):
    """Raised when entry data cannot be written to disk."""


class PathTraversalError(ExtractError):
    """
    Raised when an archive entry resolves outside of the extraction directory.
    """


class ExtractIOError(ExtractError):
    """Raised when the extraction directory cannot be created."""
