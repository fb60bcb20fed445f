"""
core/filters.py -- Closed enumerations for the job report filters.

The report procedure takes small integer/string codes for status, date range
and sort options. Clients send human labels ("In Progress", "Job_Start_Date",
"descending"). Each enum below is the closed set of accepted labels, and
wire_value is a total mapping from every member to the code the procedure
expects. An unrecognized label raises UnknownFilterValue instead of turning
into a silent NULL parameter.

build_job_search() applies the per-field rules (trimming, the 1900-01-01
"no date" sentinel, status lists) and returns the JobSearchCriteria that
store/procedures.py binds into uspS_JobReport.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Iterable, Optional, Union

from core.errors import UnknownFilterValue
from core.models import JobSearchCriteria

# The legacy UI posts 1900-01-01 when a date picker is left empty.
NO_DATE = date(1900, 1, 1)


class JobStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    FORWARDED_TO_ACCOUNTANT = "Forwarded to Accountant"
    BILLED_AND_CLOSED = "Billed and Closed"
    CLOSED = "Closed"
    ALL = "All"

    @property
    def wire_value(self) -> str:
        return _JOB_STATUS_WIRE[self]


_JOB_STATUS_WIRE: dict[JobStatus, str] = {
    JobStatus.IN_PROGRESS: "1",
    JobStatus.FORWARDED_TO_ACCOUNTANT: "2",
    JobStatus.BILLED_AND_CLOSED: "-1",
    JobStatus.CLOSED: "-2",
    JobStatus.ALL: "1,2,-1,-2",
}


class DateRangeFilter(str, Enum):
    NONE = "None"
    START_DATE = "StartDate"
    END_DATE = "EndDate"
    ALL = "All"

    @property
    def wire_value(self) -> int:
        return _DATE_RANGE_WIRE[self]


_DATE_RANGE_WIRE: dict[DateRangeFilter, int] = {
    DateRangeFilter.NONE: 0,
    DateRangeFilter.START_DATE: 1,
    DateRangeFilter.END_DATE: 2,
    DateRangeFilter.ALL: 3,
}


class SortField(str, Enum):
    JOB_ID = "Job_ID"
    JOB_START_DATE = "Job_Start_Date"
    JOB_END_DATE = "Job_End_Date"
    STATUS_CODE = "Status_Code"
    PROJECT_MANAGER = "Project_Manager"

    @property
    def wire_value(self) -> int:
        return _SORT_FIELD_WIRE[self]


_SORT_FIELD_WIRE: dict[SortField, int] = {
    SortField.JOB_ID: 1,
    SortField.JOB_START_DATE: 2,
    SortField.JOB_END_DATE: 3,
    SortField.STATUS_CODE: 4,
    SortField.PROJECT_MANAGER: 5,
}


class SortDirection(str, Enum):
    ASCENDING = "Ascending"
    DESCENDING = "Descending"

    @property
    def wire_value(self) -> int:
        return _SORT_DIRECTION_WIRE[self]


_SORT_DIRECTION_WIRE: dict[SortDirection, int] = {
    SortDirection.ASCENDING: 1,
    SortDirection.DESCENDING: 0,
}


# ---------------------------------------------------------------------------
# Label lookup
# ---------------------------------------------------------------------------


def parse_label(enum_cls: type[Enum], field: str, label: object, case_insensitive: bool = False) -> Enum:
    """Return the member of enum_cls whose value is label. Raises UnknownFilterValue."""
    if isinstance(label, str):
        for member in enum_cls:
            if member.value == label or (case_insensitive and member.value.lower() == label.lower()):
                return member
    raise UnknownFilterValue(field, label)


def job_status_codes(labels: Union[str, Iterable[str]]) -> Optional[str]:
    """Map one status label or a list of labels to the comma-joined wire string."""
    if isinstance(labels, str):
        labels = [labels]
    codes = [parse_label(JobStatus, "jobStatus", label).wire_value for label in labels]
    return ",".join(codes) or None


def build_job_search(
    job_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    filter_range: Optional[str] = None,
    job_status: Union[str, list[str], None] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    project_manager: Optional[str] = None,
    cust_cntct_ids: Optional[str] = None,
) -> JobSearchCriteria:
    """Validate raw search fields and translate them to procedure parameters.

    Every label is checked before anything is returned, so a bad request never
    reaches the store.
    """
    criteria = JobSearchCriteria()

    if job_id and job_id.strip():
        criteria.job_id = job_id.strip()

    if filter_range:
        wire = parse_label(DateRangeFilter, "filterRange", filter_range).wire_value
        # DateRangeFilter.NONE (0) means "no date filter" and is not sent.
        criteria.date_range_filter = wire or None

    if start_date and start_date != NO_DATE:
        criteria.start_date = start_date
    if end_date and end_date != NO_DATE:
        criteria.end_date = end_date

    if job_status:
        criteria.job_status = job_status_codes(job_status)

    if sort_by:
        criteria.sort_by = parse_label(SortField, "sortBy", sort_by).wire_value
    if sort_direction:
        criteria.sort_direction = parse_label(
            SortDirection, "sortDirection", sort_direction, case_insensitive=True
        ).wire_value

    if project_manager:
        criteria.project_manager = project_manager
    if cust_cntct_ids:
        criteria.cust_cntct_ids = cust_cntct_ids

    return criteria
