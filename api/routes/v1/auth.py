"""
api/routes/v1/auth.py -- Login and token refresh endpoints.

Routes:
  POST /login          -- username/password login; returns token + refresh_token
  POST /refresh-token  -- exchange a refresh token for a new pair

Both are public (they are how a client gets a token in the first place).

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] A stored credential that cannot be decoded is reported exactly like a
       wrong password. SessionService guarantees this -- never inline the check.
  [M5] Cache-Control: no-store on every login/refresh response, success or not.
  Missing or over-long fields are rejected with 400 before any stored procedure runs.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    MAX_CREDENTIAL_LENGTH,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    UserInfo,
)
from auth.session import SessionService
from core.errors import ValidationInputError

router = APIRouter()

_FALLBACK_IP = "127.0.0.1"


def client_ip(request: Request) -> str:
    """Best-effort caller address passed to the login procedures.

    Prefers the socket peer; falls back to the first X-Forwarded-For hop, then
    X-Real-IP, then loopback.
    """
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or _FALLBACK_IP


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(login_rate_limit)  # [H2] applied by SlowAPIMiddleware via the endpoint name
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and issue an access/refresh pair.

    Failures (400/401/403/500) are raised as ReportApiError subclasses and
    rendered by the handler in api/main.py.
    """
    if not body.username or not body.password:
        raise ValidationInputError("Username and password are required.")
    if len(body.username) > MAX_CREDENTIAL_LENGTH or len(body.password) > MAX_CREDENTIAL_LENGTH:
        raise ValidationInputError(f"Username and password must be at most {MAX_CREDENTIAL_LENGTH} characters.")

    sessions: SessionService = request.app.state.sessions
    result = sessions.login(body.username, body.password, client_ip(request))

    return _no_store(
        JSONResponse(
            status_code=200,
            content=LoginResponse(
                user=UserInfo.from_claims(result.claims, result.login_attempts),
                token=result.tokens.access_token,
                refresh_token=result.tokens.refresh_token,
            ).model_dump(by_alias=True),
        )
    )


@router.post("/refresh-token", response_model=RefreshResponse)
def refresh_token(request: Request, body: RefreshRequest) -> JSONResponse:
    """Verify a refresh token and return a brand-new token pair with the same claims."""
    if not body.refresh_token:
        raise ValidationInputError("Refresh token is required.")

    sessions: SessionService = request.app.state.sessions
    pair = sessions.refresh(body.refresh_token)

    return _no_store(
        JSONResponse(
            status_code=200,
            content=RefreshResponse(token=pair.access_token, refresh_token=pair.refresh_token).model_dump(),
        )
    )
