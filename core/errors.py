"""
core/errors.py -- Error taxonomy for the ESCC Report API.

Every failure a caller can observe is one of the ReportApiError subclasses
below. Each carries the HTTP status, a machine-readable code and a
user-facing message; api/main.py turns them into the shared ErrorResponse
envelope. Raw driver, SQLAlchemy or JWT exceptions never reach the caller.

CredentialDecodeError is deliberately NOT a ReportApiError. It is raised by
the transcoder and always converted into CredentialMismatch by the session
service, so a corrupt stored credential looks exactly like a wrong password.
"""

from __future__ import annotations

# Error code reported for a password mismatch after validate-login succeeded.
PASSWORD_MISMATCH_CODE = -14004


class ReportApiError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        error_code: int | None = None,
        login_attempts: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.login_attempts = login_attempts
        if status_code is not None:
            self.status_code = status_code


class ValidationInputError(ReportApiError):
    """The caller sent a missing or unusable field."""

    status_code = 400
    code = "validation_error"


class UnknownFilterValue(ValidationInputError):
    """A report filter label has no wire value."""

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"Unrecognized value for {field}: {value!r}")
        self.field = field
        self.value = value


class CredentialMismatch(ReportApiError):
    status_code = 401
    code = "bad_credentials"


class AccountRestricted(ReportApiError):
    """Disabled account, too many attempts, or an IP restriction.

    Status is 401 for validate-login rejections and 403 for the
    login-restriction check; callers pass status_code explicitly for the latter.
    """

    status_code = 401
    code = "account_restricted"


class TokenExpired(ReportApiError):
    status_code = 401
    code = "token_expired"


class TokenInvalid(ReportApiError):
    status_code = 401
    code = "token_invalid"


class NotFound(ReportApiError):
    status_code = 404
    code = "not_found"


class UpstreamFailure(ReportApiError):
    """The external store was unreachable or failed unexpectedly."""

    status_code = 500
    code = "upstream_failure"

    def __init__(self, message: str = "Internal server error.") -> None:
        super().__init__(message)


class CredentialDecodeError(ValueError):
    """A stored credential could not be read under the legacy text layer."""
