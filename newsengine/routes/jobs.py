"""
Job routes: status, manual triggers, run history and schedule changes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import verify_api_key
from ..config import get_scheduler
from ..exceptions import InvalidCronExpressionError
from ..jobs import Scheduler
from ..schemas import (
    JobRunResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobTriggerResponse,
    ScheduleUpdateRequest,
    SchedulerStatusResponse,
)

router = APIRouter(
    prefix="/jobs",
    tags=["jobs"],
    dependencies=[Depends(verify_api_key)]
)


def _require_job(scheduler: Scheduler, job_name: str):
    try:
        return scheduler.get_job(job_name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_name}")


@router.get("/status")
async def get_jobs_status(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> SchedulerStatusResponse:
    """Status of every scheduled job."""
    status = scheduler.get_status()
    return SchedulerStatusResponse(
        enabled=status["enabled"],
        initialized=status["initialized"],
        jobs=[JobStatusResponse.from_status(job) for job in status["jobs"]],
    )


@router.get("/history")
async def get_job_history(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
    job_name: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    include_logs: bool = False,
) -> list[JobRunResponse]:
    """Recorded runs, most recent first."""
    runs = scheduler.get_history(job_name, limit)
    return [JobRunResponse.from_db(run, include_logs=include_logs) for run in runs]


@router.post("/reconcile")
async def reconcile_stale_runs(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
    older_than_minutes: int = Query(default=60, ge=1),
) -> dict:
    """Mark runs left RUNNING by a crashed process as FAILED."""
    return {"reconciled": scheduler.reconcile_stale_runs(older_than_minutes)}


@router.get("/{job_name}/stats")
async def get_job_stats(
    job_name: str,
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> JobStatsResponse:
    _require_job(scheduler, job_name)
    return JobStatsResponse(job_name=job_name, **scheduler.get_job_stats(job_name))


@router.post("/{job_name}/trigger")
async def trigger_job(
    job_name: str,
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> JobTriggerResponse:
    """Run a job now and wait for its result."""
    _require_job(scheduler, job_name)
    result = await scheduler.trigger_job(job_name)
    if result is None:
        return JobTriggerResponse(job_name=job_name, skipped=True)
    return JobTriggerResponse(
        job_name=job_name,
        success=result.success,
        run_id=result.run_id,
        stats=result.stats,
        error=result.error,
    )


@router.put("/{job_name}/schedule")
async def update_job_schedule(
    job_name: str,
    request: ScheduleUpdateRequest,
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> JobStatusResponse:
    """Change a job's cron schedule."""
    _require_job(scheduler, job_name)
    try:
        scheduler.reschedule(job_name, request.schedule)
    except InvalidCronExpressionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JobStatusResponse.from_status(scheduler.get_job(job_name).status())
