"""Error taxonomy for the Plant Report service.

Every error carries the HTTP status code the route boundary should answer
with.  The exception handler in :mod:`plantreport.api.main` converts any
:class:`PlantReportError` into a ``{"error": message}`` JSON body.

For server-side failures ``public_message`` is what the client sees; the
original message (and the chained cause) only reaches the log.
"""

from __future__ import annotations


class PlantReportError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    public_message: str | None = None

    def __init__(self, message: str, *, public_message: str | None = None) -> None:
        super().__init__(message)
        if public_message is not None:
            self.public_message = public_message

    @property
    def client_message(self) -> str:
        """Message safe to return in a response body."""
        return self.public_message or str(self)


class ValidationError(PlantReportError):
    """Required input is missing or malformed.

    The message is intended to be displayed directly to the user.
    """

    status_code = 400


class StorageUnavailable(PlantReportError):
    """The object store was never initialized."""

    status_code = 500
    public_message = "Storage not initialized"


class StorageError(PlantReportError):
    """A read, write or delete against the object store failed."""

    status_code = 500
    public_message = "Storage operation failed"


class FileNotFound(StorageError):
    """No stored file exists for the requested identifier."""

    status_code = 404
    public_message = None


class UpstreamError(PlantReportError):
    """The generative-AI service call failed."""

    status_code = 500
    public_message = "An error occurred while analyzing the image"


class RenderError(PlantReportError):
    """PDF generation failed."""

    status_code = 500
    public_message = "PDF generation failed"
