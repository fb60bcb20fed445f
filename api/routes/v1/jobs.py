"""
api/routes/v1/jobs.py -- Job report endpoints backed by the report procedures.

Routes:
  GET  /job/{job_id}   -- detail rows for one job (uspS_ReportModuleSelectedIDsByID)
  POST /jobs/search    -- filtered, sorted job list (uspS_JobReport), paged here

The procedures return the full result set; offset/limit slicing happens in
core.pagination. Filter labels are validated before the store is called.
"""

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import limiter
from api.models import JobDetailResponse, JobSearchRequest, JobSearchResponse, Pagination
from auth.dependencies import get_current_claims
from core.errors import NotFound
from core.filters import build_job_search
from core.pagination import paginate
from store.procedures import ProcedureStore

# Auth policy:
# - GET  /job/{job_id}: requires a valid access token
# - POST /jobs/search:  requires a valid access token
# Router-level dependency enforces auth; the handlers do not repeat it.
router = APIRouter(dependencies=[Depends(get_current_claims)])


@limiter.limit("120/minute")
@router.get("/job/{job_id}", response_model=JobDetailResponse)
def get_job(request: Request, job_id: int) -> JobDetailResponse:
    """Return every detail row the report module holds for job_id."""
    store: ProcedureStore = request.app.state.store
    rows = store.get_job(job_id)
    if not rows:
        raise NotFound("Job not found")
    return JobDetailResponse(data=rows)


@limiter.limit("120/minute")
@router.post("/jobs/search", response_model=JobSearchResponse)
def search_jobs(
    request: Request,
    body: JobSearchRequest,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=1000),
) -> JobSearchResponse:
    """Run the job report with the given filters and return one page of rows.

    success is False (with an empty page) when the report matched nothing.
    """
    criteria = build_job_search(
        job_id=body.job_id,
        start_date=body.start_date,
        end_date=body.end_date,
        filter_range=body.filter_range,
        job_status=body.job_status,
        sort_by=body.sort_by,
        sort_direction=body.sort_direction,
        project_manager=body.project_manager,
        cust_cntct_ids=body.cust_cntct_ids,
    )

    store: ProcedureStore = request.app.state.store
    page = paginate(store.search_jobs(criteria), offset=offset, limit=limit)

    if page.total == 0:
        return JobSearchResponse(
            success=False,
            message="No items found",
            data=[],
            pagination=Pagination.from_page(page),
        )
    return JobSearchResponse(
        success=True,
        message="Jobs found successfully",
        data=page.items,
        pagination=Pagination.from_page(page),
    )
