"""
Exception hierarchy for the contract PDF service.

Every error carries an HTTP status code and a public message. The public
message is what the caller sees; ``message`` and ``details`` may hold
internal detail and are only logged, except for validation errors whose
details are returned to the caller.
"""

from __future__ import annotations

from typing import Any, List, Optional


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ConfigurationError(ServiceError):
    """Raised when settings are invalid at start-up."""


class ValidationError(ServiceError):
    """Malformed or missing input. Details are safe to return to the caller."""

    status_code = 400
    public_message = "Invalid request"


class ProcessingError(ServiceError):
    """Base class for failures while transforming a document."""

    public_message = "Failed to process PDF"


class EncryptionError(ProcessingError):
    """Encryption backend or temp file I/O failed."""

    public_message = "Failed to encrypt PDF"


class WatermarkError(ProcessingError):
    """The PDF could not be parsed or stamped."""

    public_message = "Failed to add watermark"


class MetadataError(ProcessingError):
    """The PDF metadata could not be written."""

    public_message = "Failed to add metadata"
