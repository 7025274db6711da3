"""Exception types raised inside the scanner server."""

from __future__ import annotations


class ScannerServerError(RuntimeError):
    """Base class for errors raised by the scanner server."""


class ConfigurationUnavailable(ScannerServerError):
    """The client could not supply settings for a resource."""

    def __init__(self, uri: str, reason: str = ""):
        message = f"configuration unavailable for {uri}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.uri = uri
        self.reason = reason


class DocumentNotOpen(ScannerServerError):
    def __init__(self, uri: str):
        super().__init__(f"document is not open: {uri}")
        self.uri = uri


class ScannerNotConfigured(ScannerServerError):
    """`Scanner.run()` was called before `Scanner.configure()`."""
