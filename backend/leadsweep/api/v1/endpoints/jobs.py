from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
import logging

from leadsweep.db.session import get_db
from leadsweep.models.job import Job
from leadsweep.models.job_result import JobResult
from leadsweep.models.signal import Signal
from leadsweep.schemas.batch import CancelJobRequest, CancelJobResponse
from leadsweep.schemas.job import JobCreateRequest, JobDetailResponse, JobListItem, JobResponse
from leadsweep.schemas.lead import ContactResponse, JobResultResponse, LeadResponse, SignalResponse
from leadsweep.services.job_cursor import cancel_job, get_job
from leadsweep.services.run_log import append_run_log

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(request: JobCreateRequest, db: Session = Depends(get_db)):
    """Create a queued job from a plan; collection batches drive it from there."""
    plan = request.plan
    job = Job(
        user_prompt=request.prompt,
        plan=plan.model_dump(),
        target_firm_count=plan.target_firm_count,
        max_searches=plan.max_searches,
        allow_reinclude=plan.toggles.allow_reinclude,
    )
    db.add(job)
    db.flush()
    append_run_log(db, job.id, "job_created", geo_mode=plan.geo_mode, keywords=plan.keywords)
    db.commit()
    db.refresh(job)

    logger.info(f"Created job {job.id} target={job.target_firm_count}")
    return job


@router.get("", response_model=List[JobListItem])
async def list_jobs(
    db: Session = Depends(get_db),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    query = db.query(Job)
    if status_filter:
        query = query.filter(Job.status == status_filter)
    return query.order_by(desc(Job.created_at)).offset(offset).limit(limit).all()


@router.post("/cancel", response_model=CancelJobResponse)
async def cancel(request: CancelJobRequest, db: Session = Depends(get_db)):
    job = get_job(db, request.job_id)
    cancel_job(db, job)
    return CancelJobResponse(ok=True, job_id=job.id, canceled=job.canceled)


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job_detail(job_id: str, db: Session = Depends(get_db)):
    return get_job(db, job_id)


@router.get("/{job_id}/results", response_model=List[JobResultResponse])
async def get_job_results(
    job_id: str,
    db: Session = Depends(get_db),
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
):
    """Leads surfaced by the job with their primary contact and signals."""
    get_job(db, job_id)
    rows = (
        db.query(JobResult)
        .filter(JobResult.job_id == job_id)
        .order_by(JobResult.created_at, JobResult.id)
        .offset(offset)
        .limit(limit)
        .all()
    )

    signals_by_lead = {}
    lead_ids = [row.lead_id for row in rows]
    if lead_ids:
        for signal in (
            db.query(Signal)
            .filter(Signal.lead_id.in_(lead_ids))
            .order_by(Signal.created_at)
            .all()
        ):
            signals_by_lead.setdefault(signal.lead_id, []).append(signal)

    return [
        JobResultResponse(
            job_id=row.job_id,
            lead_id=row.lead_id,
            lead=LeadResponse.model_validate(row.lead),
            primary_contact=ContactResponse.model_validate(row.primary_contact) if row.primary_contact else None,
            signals=[SignalResponse.model_validate(s) for s in signals_by_lead.get(row.lead_id, [])],
        )
        for row in rows
    ]
