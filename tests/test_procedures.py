"""Unit tests for store/procedures.py.

The statement builder is checked directly. ProcedureStore is exercised
against an in-memory SQLite engine for ping/close, and against a mocked
engine for result mapping and error translation -- SQL Server itself is
never contacted.
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.session import SessionService
from auth.tokens import TokenIssuer
from core.config import Settings
from core.errors import AccountRestricted, UpstreamFailure
from core.models import JobSearchCriteria
from store.procedures import ProcedureStore, build_job_search_call


def _issuer() -> TokenIssuer:
    return TokenIssuer(
        Settings(_env_file=None, debug=False, access_token_secret="a" * 40, refresh_token_secret="r" * 40)
    )


def _mock_store() -> tuple[ProcedureStore, MagicMock]:
    store = ProcedureStore("sqlite://")
    store.engine = MagicMock()
    conn = store.engine.begin.return_value.__enter__.return_value
    return store, conn


class TestBuildJobSearchCall:
    def test_only_sort_params_when_empty(self):
        statement, values = build_job_search_call(JobSearchCriteria())
        sql = str(statement)
        assert sql.startswith("SET NOCOUNT ON; EXEC uspS_JobReport ")
        assert "@StrSortBy = :sort_by" in sql
        assert "@StrSortDirection = :sort_direction" in sql
        assert "@StrJobId" not in sql
        assert values == {"sort_by": None, "sort_direction": None}

    def test_set_fields_are_bound(self):
        criteria = JobSearchCriteria(
            job_id="J-1",
            date_range_filter=3,
            start_date=date(2024, 2, 1),
            job_status="1,2",
            sort_by=2,
            sort_direction=0,
            cust_cntct_ids="5",
        )
        statement, values = build_job_search_call(criteria)
        sql = str(statement)
        assert "@StrJobId = :job_id" in sql
        assert "@StrDateRangeFilter = :date_range_filter" in sql
        assert "@StartDate = :start_date" in sql
        assert "@EndDate" not in sql
        assert "@Strcust_cntct_ids = :cust_cntct_ids" in sql
        assert values["date_range_filter"] == "3"
        assert values["job_status"] == "1,2"
        assert values["sort_by"] == 2
        assert values["sort_direction"] == 0

    def test_user_text_never_reaches_sql(self):
        statement, values = build_job_search_call(JobSearchCriteria(project_manager="x'; DROP TABLE jobs;--"))
        assert "DROP" not in str(statement)
        assert values["project_manager"] == "x'; DROP TABLE jobs;--"


class TestProcedureStore:
    def test_ping_sqlite(self):
        store = ProcedureStore("sqlite://")
        assert store.ping() is True
        store.close()

    def test_ping_failure_returns_false(self):
        store = ProcedureStore("sqlite://")
        store.engine = MagicMock()
        store.engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
        assert store.ping() is False

    def test_validate_login_maps_outputs(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {
            "password": bytearray(b"}om|o~\x00"),
            "error_code": 0,
            "login_attempts": 3,
            "user_work_email": "a@b.c",
        }
        result = store.validate_login("jdoe", "10.0.0.1")
        assert result.error_code == 0
        assert result.encoded_credential == b"}om|o~\x00"
        assert result.login_attempts == 3
        assert result.user_work_email == "a@b.c"
        _, params = conn.execute.call_args[0]
        assert params == {"username": "jdoe", "ip_address": "10.0.0.1"}

    def test_validate_login_null_outputs(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {
            "password": None,
            "error_code": 1,
            "login_attempts": None,
            "user_work_email": None,
        }
        result = store.validate_login("nobody", "10.0.0.1")
        assert result.error_code == 1
        assert result.encoded_credential is None
        assert result.login_attempts == 0

    def test_missing_output_row_is_upstream_failure(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = None
        with pytest.raises(UpstreamFailure):
            store.apply_login_restrictions("jdoe", "10.0.0.1")

    def test_null_user_id_is_upstream_failure(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {"user_id": None}
        with pytest.raises(UpstreamFailure):
            store.resolve_user_id("jdoe")

    def test_resolve_user_id(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {"user_id": 42}
        assert store.resolve_user_id("jdoe") == 42

    def test_driver_error_is_upstream_failure(self):
        store, conn = _mock_store()
        conn.execute.side_effect = OperationalError("EXEC", {}, Exception("timeout"))
        with pytest.raises(UpstreamFailure) as exc_info:
            store.get_job(1001)
        assert "timeout" not in exc_info.value.message

    def test_record_failed_attempt_params(self):
        store, conn = _mock_store()
        store.record_failed_attempt("jdoe", "10.0.0.1", "failed login attempt", "no code")
        _, params = conn.execute.call_args[0]
        assert params == {
            "username": "jdoe",
            "ip_address": "10.0.0.1",
            "comments": "failed login attempt",
            "access_code": "no code",
        }

    def test_search_jobs_returns_plain_dicts(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.all.return_value = [{"Job_ID": "1"}, {"Job_ID": "2"}]
        rows = store.search_jobs(JobSearchCriteria(job_id="1"))
        assert rows == [{"Job_ID": "1"}, {"Job_ID": "2"}]
        _, params = conn.execute.call_args[0]
        assert params["job_id"] == "1"

    def test_validate_login_keeps_null_error_code(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {
            "password": None,
            "error_code": None,
            "login_attempts": 2,
            "user_work_email": None,
        }
        assert store.validate_login("jdoe", "10.0.0.1").error_code is None

    def test_login_restrictions_keeps_null_error_code(self):
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.return_value = {"error_code": None}
        assert store.apply_login_restrictions("jdoe", "10.0.0.1") is None


class TestLoginAgainstProcedureStore:
    """SessionService over a real ProcedureStore whose engine is mocked."""

    # "ab" shifted up by 10, NUL-terminated.
    _STORED = b"kl\x00"

    def _service(self, *rows) -> tuple[SessionService, MagicMock]:
        store, conn = _mock_store()
        conn.execute.return_value.mappings.return_value.first.side_effect = list(rows)
        return SessionService(store, _issuer()), conn

    def test_success(self):
        service, _ = self._service(
            {"password": self._STORED, "error_code": 0, "login_attempts": 0, "user_work_email": "u@x"},
            {"error_code": 0},
            {"user_id": 5},
        )
        assert service.login("u", "ab", "10.0.0.1").claims.user_id == 5

    def test_null_restriction_code_blocks_login(self):
        service, conn = self._service(
            {"password": self._STORED, "error_code": 0, "login_attempts": 0, "user_work_email": "u@x"},
            {"error_code": None},
            {"user_id": 5},
        )
        with pytest.raises(AccountRestricted) as exc_info:
            service.login("u", "ab", "10.0.0.1")
        assert exc_info.value.status_code == 403
        assert conn.execute.call_count == 2

    def test_null_validate_login_code_rejects(self):
        service, conn = self._service(
            {"password": self._STORED, "error_code": None, "login_attempts": 3, "user_work_email": None},
        )
        with pytest.raises(AccountRestricted) as exc_info:
            service.login("u", "ab", "10.0.0.1")
        assert exc_info.value.status_code == 401
        assert exc_info.value.login_attempts == 3
        assert conn.execute.call_count == 1
