"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The job report routes accept only an access token in the
`Authorization: Bearer <token>` header. There are no cookies and no API keys:
clients keep the pair returned by POST /login and call POST /refresh-token
when the access token expires.

get_current_claims() raises TokenInvalid (401) when the header is missing or
the token does not verify, and TokenExpired (401) when it has expired. The
exception handlers in api/main.py render both.

Layer rule: no imports from api/ or store/. auth/dependencies.py may import
from fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.tokens import TokenIssuer
from core.errors import TokenInvalid
from core.models import SessionClaims


def bearer_token(request: Request) -> str | None:
    """Return the raw token from the Authorization header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid access token and return its claims.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: SessionClaims = Depends(get_current_claims)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise TokenInvalid("Access token required.")
    tokens: TokenIssuer = request.app.state.tokens
    return tokens.decode_access_token(token)
