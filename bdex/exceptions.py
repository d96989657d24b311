"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class BdexError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(BdexError):
    """Raised for issues related to configuration loading or validation."""


class StreamStalled(OSError):
    """
    Raised by a readable stream when no bytes arrived in time but the
    connection is still alive. Consumers are expected to wait and read again.
    """


class PayloadDecodeError(BdexError):
    """Raised when a PNG container cannot be decoded into its payload."""


class InsufficientDataError(PayloadDecodeError):
    """Raised when the image ends before the declared payload length is read."""


class ManifestError(BdexError):
    """Raised when the manifest image cannot be fetched, decoded or parsed."""


class BlockIntegrityError(BdexError):
    """Raised when a freshly fetched block does not match its declared hash."""


class MissingBlockError(BdexError):
    """Raised when a block file expected by the merger is not on disk."""


class OutputExistsError(BdexError):
    """Raised when the output file already exists before a run starts."""


class IncompleteDownloadError(BdexError):
    """Raised when one or more blocks exhausted their retry budget."""

    def __init__(self, failed_hashes: list[str]):
        self.failed_hashes = failed_hashes
        super().__init__(
            f"{len(failed_hashes)} block(s) could not be downloaded. "
            "Run the same command again to resume."
        )


class FileIntegrityError(BdexError):
    """Raised when the merged file fails a post-merge integrity check."""
