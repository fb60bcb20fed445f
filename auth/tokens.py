"""
auth/tokens.py -- Access and refresh token minting and verification.

Security design decisions:
  JWT: python-jose with HS256. Both tokens carry the same identity claims
       (userId, username, userWorkEmail, sourceIPAddress) plus exp. They are
       told apart by their signing secret only: an access token never
       verifies as a refresh token and vice versa.

  Lifetimes: access 1 hour, refresh 7 days by default (Settings). There is no
       revocation list -- expiry is the only way a token stops working.

  Secrets: taken from the Settings object handed to TokenIssuer at
       construction. Settings validates length and distinctness at startup;
       nothing here reads the environment.

Verification raises TokenExpired for an elapsed exp and TokenInvalid for
everything else (bad signature, malformed token, wrong claim shape), so the
refresh route can tell the user to log in again rather than just "invalid".

Layer rule: no imports from api/ or store/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import Settings
from core.errors import TokenExpired, TokenInvalid
from core.models import SessionClaims, TokenPair

logger = logging.getLogger("escc.auth")

_ALGORITHM = "HS256"


class TokenIssuer:
    """Mint and verify the two bearer tokens from one Settings object."""

    def __init__(self, settings: Settings) -> None:
        self._access_secret = settings.access_token_secret
        self._refresh_secret = settings.refresh_token_secret
        self.access_ttl = timedelta(seconds=settings.access_token_ttl_seconds)
        self.refresh_ttl = timedelta(seconds=settings.refresh_token_ttl_seconds)

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(claims: SessionClaims, secret: str, ttl: timedelta) -> str:
        payload = claims.to_jwt_claims()
        payload["exp"] = datetime.now(timezone.utc) + ttl
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def create_access_token(self, claims: SessionClaims) -> str:
        return self._encode(claims, self._access_secret, self.access_ttl)

    def create_refresh_token(self, claims: SessionClaims) -> str:
        return self._encode(claims, self._refresh_secret, self.refresh_ttl)

    def issue_pair(self, claims: SessionClaims) -> TokenPair:
        """Mint a fresh access + refresh pair carrying the same claims."""
        return TokenPair(
            access_token=self.create_access_token(claims),
            refresh_token=self.create_refresh_token(claims),
        )

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(token: str, secret: str, expired_message: str, invalid_message: str) -> SessionClaims:
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired(expired_message) from exc
        except JWTError as exc:
            raise TokenInvalid(invalid_message) from exc
        try:
            return SessionClaims.from_jwt_claims(payload)
        except (KeyError, TypeError) as exc:
            logger.warning("Signed token with unexpected claim shape rejected")
            raise TokenInvalid(invalid_message) from exc

    def decode_access_token(self, token: str) -> SessionClaims:
        return self._decode(
            token,
            self._access_secret,
            "Access token has expired. Please login again.",
            "Invalid access token.",
        )

    def decode_refresh_token(self, token: str) -> SessionClaims:
        return self._decode(
            token,
            self._refresh_secret,
            "Refresh token has expired. Please login again.",
            "Invalid refresh token.",
        )
