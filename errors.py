"""
Error taxonomy for the health advisor.

Every error carries a short, user-facing message in ``str(err)``; callers at
the UI boundary show it as-is.
"""


class AdvisorError(Exception):
    default_message = "An error occurred. Please try again."

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# --- input shape, raised before any external call ---
class ValidationError(AdvisorError):
    default_message = "Some of the information entered is not valid."


class InvalidEmail(ValidationError):
    default_message = "Please enter a valid email address."


class WeakCredential(ValidationError):
    default_message = "Password should be at least 6 characters."


class MissingName(ValidationError):
    default_message = "Please enter your name."


class AnalysisInProgress(ValidationError):
    default_message = "An analysis is already running. Please wait for it to finish."


# --- accounts ---
class AuthError(AdvisorError):
    default_message = "Authentication failed."


class DuplicateEmail(AuthError):
    default_message = "This email is already registered. Please sign in instead."


class InvalidCredential(AuthError):
    default_message = "Incorrect password. Please try again."


class NotFound(AuthError):
    default_message = "No account found with this email."


# --- advisory provider ---
class ProviderError(AdvisorError):
    default_message = "The advisory service could not complete the request. Please try again."


class ProviderUnavailable(ProviderError):
    default_message = "Advisory service is not configured. Set OPENAI_API_KEY and try again."


class EmptyResponse(ProviderError):
    default_message = "No response from the advisory service. Please try again."


class SchemaViolation(ProviderError):
    default_message = "The advisory service returned an unexpected response. Please try again."


# --- persistence ---
class StorageError(AdvisorError):
    default_message = "Stored data could not be read."
