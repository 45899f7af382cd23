# Error taxonomy for the ideas API
# Each error knows the HTTP status it maps to and what the client may see

from typing import Dict, Optional

GENERIC_ERROR_MESSAGE = "Failed to process request."


class IdeaRaterError(Exception):
    """Base class for errors surfaced by the ideas API."""
    status_code = 500
    expose_message = False

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}

    @property
    def public_message(self) -> str:
        return self.message if self.expose_message else GENERIC_ERROR_MESSAGE


class ValidationError(IdeaRaterError):
    """Empty, oversized or malformed input."""
    status_code = 400
    expose_message = True


class ConfigurationError(IdeaRaterError):
    """Required server configuration is missing."""
    status_code = 500

    @property
    def public_message(self) -> str:
        return "Server is not configured."


class AuthorizationError(IdeaRaterError):
    status_code = 401
    expose_message = True


class MethodNotAllowedError(IdeaRaterError):
    status_code = 405
    expose_message = True

    def __init__(self, allowed):
        super().__init__("Method not allowed.", headers={"Allow": ", ".join(allowed)})


class ExternalServiceError(IdeaRaterError):
    """The rating service failed, timed out or returned an error status."""


class InvalidRatingError(IdeaRaterError):
    """The rating service answered but no rating could be read from it."""
