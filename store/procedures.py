"""
store/procedures.py -- SQLAlchemy client for the ESCC stored procedures.

The database owns all login and report logic. This module only knows how to
call each named procedure with typed parameters and hand back its OUTPUT
values or rows as plain Python data. It never builds SQL from user input:
procedure and parameter names are constants, every value is a bound
parameter with an explicit SQL type.

OUTPUT parameters are read with the usual SQL Server batch idiom -- declare
local variables, EXEC ... OUTPUT into them, then SELECT them back as a single
row. SET NOCOUNT ON keeps row-count messages from hiding that result set.

Pattern: Repository. ProcedureStore is constructed once in the API lifespan
and injected wherever it is needed (SessionService, the job routes), so tests
can swap in a fake with the same methods.

Resource model:
  - one bounded QueuePool per process (pool_size + max_overflow);
  - pre-ping so connections dropped by the server are replaced transparently;
  - explicit connect (login) and per-statement timeouts for pyodbc, so a hung
    procedure fails instead of blocking a worker forever.

Any SQLAlchemy / driver error is logged and re-raised as UpstreamFailure.

Usage:
    store = ProcedureStore.from_settings(get_settings())
    result = store.validate_login("jdoe", "10.0.0.5")
    rows = store.search_jobs(JobSearchCriteria(job_id="J-1001"))
    store.close()
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import DateTime, Integer, String, bindparam, create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from core.config import Settings
from core.errors import UpstreamFailure
from core.models import JobSearchCriteria, LoginValidation

logger = logging.getLogger("escc.store")

# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

_VALIDATE_LOGIN = text(
    """
    SET NOCOUNT ON;
    DECLARE @Password VARBINARY(50), @ErrorCode INT, @LoginAttempts INT, @UserWorkEmail VARCHAR(50);
    EXEC SP_IS_VALID_LOGIN_NAME
        @UserName = :username,
        @IPAddress = :ip_address,
        @Password = @Password OUTPUT,
        @ErrorCode = @ErrorCode OUTPUT,
        @LoginAttempts = @LoginAttempts OUTPUT,
        @UserWorkEmail = @UserWorkEmail OUTPUT;
    SELECT @Password AS password, @ErrorCode AS error_code,
           @LoginAttempts AS login_attempts, @UserWorkEmail AS user_work_email;
    """
).bindparams(
    bindparam("username", type_=String(20)),
    bindparam("ip_address", type_=String(20)),
)

_LOGIN_ACTIONS = text(
    """
    SET NOCOUNT ON;
    DECLARE @ErrorCode INT;
    EXEC SP_DO_LOGIN_ACTIONS @UserName = :username, @IPAddress = :ip_address, @ErrorCode = @ErrorCode OUTPUT;
    SELECT @ErrorCode AS error_code;
    """
).bindparams(
    bindparam("username", type_=String(20)),
    bindparam("ip_address", type_=String(20)),
)

_GET_USER_ID = text(
    """
    SET NOCOUNT ON;
    DECLARE @UserId INT;
    EXEC SP_GET_USER_ID @LoginName = :username, @UserId = @UserId OUTPUT;
    SELECT @UserId AS user_id;
    """
).bindparams(bindparam("username", type_=String(20)))

_FAILED_ATTEMPT = text(
    """
    SET NOCOUNT ON;
    EXEC usp_Login_Failed_Attempt
        @UserName = :username,
        @IPAddress = :ip_address,
        @Comments = :comments,
        @AccessCode = :access_code;
    """
).bindparams(
    bindparam("username", type_=String(20)),
    bindparam("ip_address", type_=String(20)),
    bindparam("comments", type_=String(1000)),
    bindparam("access_code", type_=String(50)),
)

_JOB_BY_ID = text("SET NOCOUNT ON; EXEC uspS_ReportModuleSelectedIDsByID @ID = :job_id;").bindparams(
    bindparam("job_id", type_=Integer())
)

# (procedure parameter, JobSearchCriteria attribute, SQL type, always sent)
_JOB_SEARCH_PARAMS: list[tuple[str, str, Any, bool]] = [
    ("StrJobId", "job_id", String(50), False),
    ("StrDateRangeFilter", "date_range_filter", String(50), False),
    ("StartDate", "start_date", DateTime(), False),
    ("EndDate", "end_date", DateTime(), False),
    ("StrJobStatus", "job_status", String(50), False),
    ("StrSortBy", "sort_by", Integer(), True),
    ("StrSortDirection", "sort_direction", Integer(), True),
    ("StrProjectManager", "project_manager", String(1000), False),
    ("Strcust_cntct_ids", "cust_cntct_ids", String(500), False),
]


def build_job_search_call(criteria: JobSearchCriteria) -> tuple[TextClause, dict[str, Any]]:
    """Return the uspS_JobReport statement and its bound values.

    Optional parameters are left out of the EXEC entirely when unset so the
    procedure applies its own defaults. Sort parameters are always passed,
    as NULL when the caller did not choose one.
    """
    assignments: list[str] = []
    binds = []
    values: dict[str, Any] = {}
    for proc_param, attr, sql_type, always in _JOB_SEARCH_PARAMS:
        value = getattr(criteria, attr)
        if value is None and not always:
            continue
        if attr == "date_range_filter" and value is not None:
            value = str(value)
        assignments.append(f"@{proc_param} = :{attr}")
        binds.append(bindparam(attr, type_=sql_type))
        values[attr] = value
    sql = "SET NOCOUNT ON; EXEC uspS_JobReport " + ", ".join(assignments) + ";"
    return text(sql).bindparams(*binds), values


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _statement_timeout_listener(seconds: int):
    def _set_timeout(dbapi_conn, connection_record) -> None:
        """Apply the per-statement timeout to every new pyodbc connection."""
        dbapi_conn.timeout = seconds

    return _set_timeout


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProcedureStore:
    """Typed calls to the named stored procedures.

    Every method is a single independent round trip in its own transaction.
    """

    def __init__(
        self,
        db_url: str,
        connect_timeout: int = 60,
        request_timeout: int = 60,
        pool_size: int = 10,
        max_overflow: int = 190,
        pool_recycle: int = 2400,
    ) -> None:
        url = make_url(db_url)
        engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
        connect_args: dict[str, Any] = {}
        if url.get_backend_name() != "sqlite":
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=pool_recycle)
        if url.get_driver_name() == "pyodbc":
            connect_args["timeout"] = connect_timeout
        self.engine: Engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        if url.get_driver_name() == "pyodbc":
            event.listen(self.engine, "connect", _statement_timeout_listener(request_timeout))
        logger.info("Procedure store configured for %s", url.render_as_string(hide_password=True))

    @classmethod
    def from_settings(cls, settings: Settings) -> ProcedureStore:
        return cls(
            settings.database_url,
            connect_timeout=settings.db_connect_timeout,
            request_timeout=settings.db_request_timeout,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_outputs(self, procedure: str, statement: TextClause, params: dict[str, Any]) -> dict[str, Any]:
        """Run an OUTPUT-parameter batch and return its single result row."""
        logger.debug("EXEC %s", procedure)
        try:
            with self.engine.begin() as conn:
                row = conn.execute(statement, params).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("Stored procedure %s failed: %s", procedure, exc)
            raise UpstreamFailure() from exc
        if row is None:
            logger.error("Stored procedure %s returned no OUTPUT row", procedure)
            raise UpstreamFailure()
        return dict(row)

    def _fetch_rows(self, procedure: str, statement: TextClause, params: dict[str, Any]) -> list[dict[str, Any]]:
        logger.debug("EXEC %s %s", procedure, sorted(params))
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(statement, params).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("Stored procedure %s failed: %s", procedure, exc)
            raise UpstreamFailure() from exc
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Login procedures
    # ------------------------------------------------------------------

    def validate_login(self, username: str, ip_address: str) -> LoginValidation:
        """SP_IS_VALID_LOGIN_NAME -> error code, stored credential, attempts, work email."""
        row = self._fetch_outputs(
            "SP_IS_VALID_LOGIN_NAME",
            _VALIDATE_LOGIN,
            {"username": username, "ip_address": ip_address},
        )
        password = row.get("password")
        return LoginValidation(
            error_code=row.get("error_code"),
            encoded_credential=bytes(password) if password is not None else None,
            login_attempts=row.get("login_attempts") or 0,
            user_work_email=row.get("user_work_email"),
        )

    def apply_login_restrictions(self, username: str, ip_address: str) -> Optional[int]:
        """SP_DO_LOGIN_ACTIONS -> 0 when this user may log in from ip_address. NULL stays None."""
        row = self._fetch_outputs(
            "SP_DO_LOGIN_ACTIONS",
            _LOGIN_ACTIONS,
            {"username": username, "ip_address": ip_address},
        )
        return row.get("error_code")

    def resolve_user_id(self, username: str) -> int:
        row = self._fetch_outputs("SP_GET_USER_ID", _GET_USER_ID, {"username": username})
        user_id = row.get("user_id")
        if user_id is None:
            logger.error("SP_GET_USER_ID returned NULL for an authenticated login")
            raise UpstreamFailure()
        return int(user_id)

    def record_failed_attempt(self, username: str, ip_address: str, comments: str, access_code: str) -> None:
        logger.debug("EXEC usp_Login_Failed_Attempt")
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _FAILED_ATTEMPT,
                    {
                        "username": username,
                        "ip_address": ip_address,
                        "comments": comments,
                        "access_code": access_code,
                    },
                )
        except SQLAlchemyError as exc:
            logger.error("Stored procedure usp_Login_Failed_Attempt failed: %s", exc)
            raise UpstreamFailure() from exc

    # ------------------------------------------------------------------
    # Report procedures
    # ------------------------------------------------------------------

    def get_job(self, job_id: int) -> list[dict[str, Any]]:
        """uspS_ReportModuleSelectedIDsByID -> detail rows for one job (empty if unknown)."""
        return self._fetch_rows("uspS_ReportModuleSelectedIDsByID", _JOB_BY_ID, {"job_id": job_id})

    def search_jobs(self, criteria: JobSearchCriteria) -> list[dict[str, Any]]:
        """uspS_JobReport -> every matching row. Paging is the caller's job."""
        statement, params = build_job_search_call(criteria)
        return self._fetch_rows("uspS_JobReport", statement, params)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if a pooled connection can run a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
