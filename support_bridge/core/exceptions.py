from typing import Optional
from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Exception raised when a resource is not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """Exception raised when a lookup matches more than one resource."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UnauthorizedError(HTTPException):
    """Exception raised when authentication fails."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class RelayFailedError(HTTPException):
    """Exception raised when an inbound event could not be relayed."""

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class SupportBridgeError(Exception):
    """Base class for relay errors that never reach HTTP clients directly."""


class ConfigurationError(SupportBridgeError):
    """A required setting is missing or malformed."""


class PathTemplateError(ConfigurationError):
    """A document path template is invalid or cannot be rendered/parsed."""


class DeliveryError(SupportBridgeError):
    """Slack or the document store rejected a relay operation."""


class ProvisioningError(SupportBridgeError):
    """Index creation failed for a reason other than the index already existing."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
