"""scanner-server package root."""

from scanner_server.exceptions import (
    ConfigurationUnavailable,
    DocumentNotOpen,
    ScannerNotConfigured,
    ScannerServerError,
)

__all__ = [
    "__version__",
    "ConfigurationUnavailable",
    "DocumentNotOpen",
    "ScannerNotConfigured",
    "ScannerServerError",
]

__version__ = "0.1.0"
