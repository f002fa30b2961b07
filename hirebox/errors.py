"""
Errors - Typed failures for HireBox

Every error raised across a service boundary derives from HireBoxError and
carries the HTTP status the API layer answers with.
"""


class HireBoxError(Exception):
    """Base class for all HireBox errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {
            "error": {
                "type": self.__class__.__name__,
                "message": self.message,
                "status": self.status_code,
            }
        }


# ---------------------------------------------------------------------------
# Configuration / auth
# ---------------------------------------------------------------------------


class NotFoundError(HireBoxError):
    """No OAuth credentials found."""

    status_code = 404


class ReauthRequiredError(HireBoxError):
    """Stored refresh token is no longer valid; the account must be reconnected."""

    status_code = 401


class CredentialRefreshError(HireBoxError):
    """Token endpoint rejected the refresh request."""

    status_code = 502


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class ProviderError(HireBoxError):
    """Mail provider request failed."""

    status_code = 502

    def __init__(self, message: str = "", status: int = None):
        super().__init__(message)
        self.status = status


class TransientProviderError(ProviderError):
    """Mail provider request failed with a retryable error."""

    status_code = 503

    def __init__(self, message: str = "", status: int = None, retry_after: float = None):
        super().__init__(message, status=status)
        self.retry_after = retry_after


class ModelUnavailableError(HireBoxError):
    """Scoring model could not be reached."""

    status_code = 503


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


class JobNotFoundError(HireBoxError):
    """Job not found."""

    status_code = 404


class JobHasApplicationsError(HireBoxError):
    """Job still has applications."""

    status_code = 409


class ApplicationNotFoundError(HireBoxError):
    """Application not found."""

    status_code = 404


class NoPendingApplicationsError(HireBoxError):
    """No unsent shortlisted applications found."""

    status_code = 409


class ShortlistLockedError(HireBoxError):
    """Application has already been sent; shortlist status is final."""

    status_code = 409
