from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from leadsweep.api.dependencies import get_batch_error_logger
from leadsweep.db.session import get_db
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.usage_tracker import build_usage_report

router = APIRouter()


@router.get("/usage")
async def get_usage(db: Session = Depends(get_db)):
    """Per-job, monthly and lifetime usage replayed from the run logs."""
    return build_usage_report(db)


@router.get("/errors")
async def get_errors(
    date: Optional[str] = Query(None, description="Date in YYYY-MM-DD format (UTC)"),
    job_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    error_logger: ErrorLogger = Depends(get_batch_error_logger),
):
    """Upstream errors that aborted batches, newest first."""
    if job_id:
        errors = error_logger.get_errors_for_job(job_id, date)[offset:offset + limit]
    else:
        errors = error_logger.get_errors(date, limit=limit, offset=offset)
    return {
        "summary": error_logger.get_error_summary(date),
        "errors": errors,
    }
