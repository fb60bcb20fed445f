"""
API request and response models for the ESCC Report API.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in core/models.py, which own the
internal representation. Route handlers map between the two.

Field names on the wire are camelCase (userId, loginAttempts, totalPages ...)
because existing report clients already depend on them. The exceptions are
`token` / `refresh_token` on the login and refresh responses, which those
clients also read verbatim.
"""

from datetime import date
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.models import Page, SessionClaims


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


# Longest username or password POST /login accepts.
MAX_CREDENTIAL_LENGTH = 255


class LoginRequest(BaseModel):
    """Request body for POST /login.

    Both fields are optional and unbounded at the schema level so a missing or
    over-long one produces our 400 validation_error rather than a generic 422.
    The route enforces MAX_CREDENTIAL_LENGTH.
    """

    username: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(BaseModel):
    """Request body for POST /refresh-token."""

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: int
    username: str
    user_work_email: Optional[str]
    login_attempts: int = 0

    @classmethod
    def from_claims(cls, claims: SessionClaims, login_attempts: int) -> "UserInfo":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            user_work_email=claims.user_work_email,
            login_attempts=login_attempts,
        )


class LoginResponse(BaseModel):
    """Response body for a successful POST /login."""

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    user: UserInfo
    token: str
    refresh_token: str


class RefreshResponse(BaseModel):
    """Response body for a successful POST /refresh-token."""

    model_config = ConfigDict(frozen=True)

    token: str
    refresh_token: str


# ---------------------------------------------------------------------------
# Job reports
# ---------------------------------------------------------------------------


class JobSearchRequest(BaseModel):
    """Request body for POST /jobs/search.

    Labels (filterRange, jobStatus, sortBy, sortDirection) are validated by
    core.filters.build_job_search so an unknown label yields a 400 naming the
    offending field.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    job_id: Optional[str] = Field(default=None, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    filter_range: Optional[str] = None
    job_status: Union[str, list[str], None] = None
    sort_by: Optional[str] = None
    sort_direction: Optional[str] = None
    project_manager: Optional[str] = Field(default=None, max_length=1000)
    cust_cntct_ids: Optional[str] = Field(default=None, max_length=500)


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    offset: int
    limit: int
    total: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def from_page(cls, page: Page) -> "Pagination":
        return cls(
            offset=page.offset,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
            current_page=page.current_page,
            has_next_page=page.has_next_page,
            has_previous_page=page.has_previous_page,
        )


class JobSearchResponse(BaseModel):
    """Response for POST /jobs/search. success is False when nothing matched."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    data: list[dict[str, Any]]
    pagination: Pagination


class JobDetailResponse(BaseModel):
    """Response for GET /job/{id}."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "Job details retrieved successfully"
    data: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Errors, health, root
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    errorCode and loginAttempts are only present on login failures.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    error_code: Optional[int] = None
    login_attempts: Optional[int] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    components: dict[str, str]


class WelcomeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Welcome to ESCC Report API"
