"""
auth/session.py -- Login and refresh orchestration.

SessionService drives one login attempt through a fixed sequence of stored
procedure calls and, on success, mints an access/refresh token pair:

  ValidatingCredentials   validate_login(username, ip)
        |                   error_code != 0 -> CredentialMismatch / AccountRestricted (401)
  CheckingPassword        transcoder.decode(stored) == raw password?
        |                   no -> record_failed_attempt (best effort), CredentialMismatch -14004 (401)
  CheckingIPRestrictions  apply_login_restrictions(username, ip)
        |                   error_code != 0 -> AccountRestricted (403)
  ResolvingUserId         resolve_user_id(username)
        |
  IssuingTokens           TokenIssuer.issue_pair(claims)

Each store call is its own round trip. Nothing is rolled back when a later step
fails: audit rows written by the procedures stay written.

The service holds no per-request state, so one instance is shared by every
request. Both collaborators are injected; tests pass a fake store.

Error boundary: anything a store call raises that is not already one of ours
is logged and re-raised as UpstreamFailure. Token errors surface as
TokenExpired / TokenInvalid.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from auth import transcoder
from auth.tokens import TokenIssuer
from core.errors import (
    PASSWORD_MISMATCH_CODE,
    AccountRestricted,
    CredentialDecodeError,
    CredentialMismatch,
    ReportApiError,
    UpstreamFailure,
)
from core.models import LoginResult, LoginValidation, SessionClaims, TokenPair

logger = logging.getLogger("escc.auth")

FAILED_ATTEMPT_COMMENT = "failed login attempt"
FAILED_ATTEMPT_ACCESS_CODE = "no code"

# validate-login error codes with a dedicated message. Anything else falls
# back to "Login error: <code>".
_VALIDATE_LOGIN_ERRORS: dict[int, tuple[type[ReportApiError], str]] = {
    1: (CredentialMismatch, "Invalid username or password"),
    2: (AccountRestricted, "Account is disabled"),
    3: (AccountRestricted, "Too many login attempts"),
}


class CredentialStore(Protocol):
    """The subset of ProcedureStore the login flow needs."""

    def validate_login(self, username: str, ip_address: str) -> LoginValidation: ...

    def apply_login_restrictions(self, username: str, ip_address: str) -> Optional[int]: ...

    def resolve_user_id(self, username: str) -> int: ...

    def record_failed_attempt(self, username: str, ip_address: str, comments: str, access_code: str) -> None: ...


def password_matches(encoded_credential: bytes | None, password: str) -> bool:
    """Compare a stored legacy credential with the raw password the user typed.

    Only the stored side is transcoded. A credential that cannot be decoded is
    a plain mismatch; the reason is logged, never returned.
    """
    try:
        stored = transcoder.decode(encoded_credential)
    except CredentialDecodeError:
        logger.warning("Stored credential could not be decoded; treating as mismatch")
        return False
    return stored == password


class SessionService:
    def __init__(self, store: CredentialStore, tokens: TokenIssuer) -> None:
        self._store = store
        self._tokens = tokens

    def _call(self, operation: str, fn, *args):
        """Run one store call, translating unexpected failures to UpstreamFailure."""
        try:
            return fn(*args)
        except ReportApiError:
            raise
        except Exception as exc:
            logger.exception("External store call %s failed", operation)
            raise UpstreamFailure() from exc

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: str, password: str, ip_address: str) -> LoginResult:
        """Authenticate username/password from ip_address and issue a token pair."""
        validation: LoginValidation = self._call("validate-login", self._store.validate_login, username, ip_address)
        attempts = validation.login_attempts or 0

        if validation.error_code != 0:
            error_cls, message = _VALIDATE_LOGIN_ERRORS.get(
                validation.error_code, (AccountRestricted, f"Login error: {validation.error_code}")
            )
            logger.info("Login rejected for %s by validate-login (code %s)", username, validation.error_code)
            raise error_cls(message, error_code=validation.error_code, login_attempts=attempts)

        if not password_matches(validation.encoded_credential, password):
            self._record_failed_attempt(username, ip_address)
            logger.info("Login failed for %s: password mismatch", username)
            raise CredentialMismatch(
                "Invalid username or password",
                error_code=PASSWORD_MISMATCH_CODE,
                login_attempts=attempts,
            )

        restriction = self._call(
            "apply-login-restrictions", self._store.apply_login_restrictions, username, ip_address
        )
        if restriction != 0:
            logger.info("Login blocked for %s from %s (code %s)", username, ip_address, restriction)
            raise AccountRestricted(
                "Access denied - IP blocked or login restrictions",
                error_code=restriction,
                status_code=403,
            )

        user_id = self._call("resolve-user-id", self._store.resolve_user_id, username)

        claims = SessionClaims(
            user_id=user_id,
            username=username,
            user_work_email=validation.user_work_email,
            source_ip_address=ip_address,
        )
        logger.info("Login succeeded for %s (user_id=%d)", username, user_id)
        return LoginResult(tokens=self._tokens.issue_pair(claims), claims=claims, login_attempts=attempts)

    def _record_failed_attempt(self, username: str, ip_address: str) -> None:
        """Write the audit row. Its failure never changes the login outcome."""
        try:
            self._store.record_failed_attempt(
                username, ip_address, FAILED_ATTEMPT_COMMENT, FAILED_ATTEMPT_ACCESS_CODE
            )
        except Exception:
            logger.exception("Could not record failed login attempt for %s", username)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a valid refresh token for a new pair with the same claims.

        Claims are copied forward as-is; the store is not consulted, so a
        changed work email only shows up after the next full login.
        """
        claims = self._tokens.decode_refresh_token(refresh_token)
        return self._tokens.issue_pair(claims)
