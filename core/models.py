from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Login / session
# ---------------------------------------------------------------------------


@dataclass
class LoginValidation:
    """Outputs of the validate-login procedure (SP_IS_VALID_LOGIN_NAME)."""

    # None when the procedure left @ErrorCode NULL; only 0 means valid.
    error_code: Optional[int]
    encoded_credential: Optional[bytes] = None
    login_attempts: int = 0
    user_work_email: Optional[str] = None


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by both the access and the refresh token.

    The JWT claim names are camelCase because existing clients read them
    directly out of the decoded token.
    """

    user_id: int
    username: str
    user_work_email: Optional[str]
    source_ip_address: str

    def to_jwt_claims(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "userWorkEmail": self.user_work_email,
            "sourceIPAddress": self.source_ip_address,
        }

    @classmethod
    def from_jwt_claims(cls, payload: dict[str, Any]) -> "SessionClaims":
        """Build claims from a decoded JWT payload. Raises KeyError/TypeError on a bad shape."""
        user_id = payload["userId"]
        username = payload["username"]
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(username, str):
            raise TypeError("userId must be an int and username a str")
        return cls(
            user_id=user_id,
            username=username,
            user_work_email=payload.get("userWorkEmail"),
            source_ip_address=payload.get("sourceIPAddress", ""),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass
class LoginResult:
    tokens: TokenPair
    claims: SessionClaims
    login_attempts: int = 0


# ---------------------------------------------------------------------------
# Job reports
# ---------------------------------------------------------------------------


@dataclass
class JobSearchCriteria:
    """Normalized uspS_JobReport parameters. None means "not sent" except for
    sort_by / sort_direction, which the procedure always receives."""

    job_id: Optional[str] = None
    date_range_filter: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    job_status: Optional[str] = None  # comma-joined wire values
    sort_by: Optional[int] = None
    sort_direction: Optional[int] = None
    project_manager: Optional[str] = None
    cust_cntct_ids: Optional[str] = None


@dataclass
class Page:
    """One slice of a result set plus the numbers a pager needs."""

    items: list[dict[str, Any]] = field(default_factory=list)
    offset: int = 0
    limit: int = 50
    total: int = 0
    total_pages: int = 0
    current_page: int = 1
    has_next_page: bool = False
    has_previous_page: bool = False
