"""
Error types raised by the show finder core.

Every error carries a ``user_message`` that the UI can show as-is next to a
retry button.
"""


class ShowFinderError(Exception):
    """Base class for all show finder errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message=None, user_message=None):
        super().__init__(message or self.default_message)
        self.user_message = user_message or message or self.default_message


class ConfigurationError(ShowFinderError):
    """A required setting (such as the API key) is missing."""

    default_message = "The app is not configured. Set GEMINI_API_KEY and reload."


# Extraction errors

class EmptyResponseError(ShowFinderError):
    default_message = "No data received from AI. The model response was empty."


class MalformedPayloadError(ShowFinderError):
    default_message = "Invalid JSON received from AI model."


class UnexpectedShapeError(MalformedPayloadError):
    default_message = "Response JSON was not an array."


# Model boundary

class ModelCallError(ShowFinderError):
    """Raised by the model client for HTTP, transport and decoding failures."""

    default_message = "The AI model request failed."

    def __init__(self, message=None, status_code=None):
        super().__init__(message)
        self.status_code = status_code


# Service-level errors

class QueryTimeoutError(ShowFinderError):
    default_message = "The request timed out. The service may be under high load. Please try again."


class CallFailedError(ShowFinderError):
    default_message = "Could not fetch data. Please try again later."


class AllSourcesFailedError(ShowFinderError):
    default_message = "Could not load content from any streaming service. Please try again."

    def __init__(self, failures):
        """
        Args:
            failures: Mapping of catalog name to the exception it raised
        """
        names = ", ".join(failures)
        super().__init__(f"All catalogs failed: {names}")
        self.user_message = self.default_message
        self.failures = dict(failures)


# Storage boundary

class StorageError(ShowFinderError):
    default_message = "Cache storage is unavailable."


class StorageFullError(StorageError):
    default_message = "Cache storage is full."
