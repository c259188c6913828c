"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class LcpkgError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(LcpkgError):
    """Raised for issues related to configuration loading or validation."""


class InvalidURLError(LcpkgError):
    """Raised when a saved link does not hold a usable http(s) URL."""


class LinkNotFoundError(LcpkgError):
    """Raised when a link reference does not match any saved link."""


class DownloadError(LcpkgError):
    """Raised when the transfer of a remote package fails."""


class DestinationError(LcpkgError):
    """Raised when the download destination directory cannot be created."""


class MoveError(LcpkgError):
    """Raised when a downloaded file cannot be moved into its destination."""


class ExportError(LcpkgError):
    """Raised when an export cannot be staged."""


class BundleCopyError(ExportError):
    """Raised when the application bundle cannot be staged for export."""


class ContainerCopyError(ExportError):
    """Raised when a present container data folder fails to copy."""


class ArchiveCreationError(ExportError):
    """Raised when the staged export cannot be compressed into an archive."""
