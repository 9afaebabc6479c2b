from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from leadsweep.db.session import get_db
from leadsweep.models.contact import EmailStatus
from leadsweep.models.job import Job, StageStatus
from leadsweep.models.job_result import JobResult
from leadsweep.schemas.estimate import EstimateRequest
from leadsweep.services.enrichment import clamp_leads_per_company
from leadsweep.services.estimators import (
    estimate_ads_library_cost,
    estimate_enrichment_cost,
    estimate_verification_cost,
)
from leadsweep.services.job_cursor import get_job

router = APIRouter()

# Primary contacts in these states still need a verification call
UNVERIFIED_STATES = (EmailStatus.UNVERIFIED.value, EmailStatus.UNKNOWN.value, EmailStatus.NONE.value)


def _job_rows(db: Session, request: EstimateRequest) -> List[JobResult]:
    query = db.query(JobResult).filter(JobResult.job_id == request.job_id)
    if request.selected_lead_ids:
        query = query.filter(JobResult.lead_id.in_(request.selected_lead_ids))
    return query.all()


def _store_estimate(db: Session, job: Job, stage: str, estimate) -> None:
    job.set_stage_value(stage, "estimate", estimate.model_dump(mode="json"))
    # An estimate never rewinds a stage that has already run
    if job.stage_value(stage, "status") in (StageStatus.IDLE.value, StageStatus.ESTIMATED.value):
        job.set_stage_value(stage, "status", StageStatus.ESTIMATED.value)
    db.commit()


@router.post("/verification")
async def estimate_verification(request: EstimateRequest, db: Session = Depends(get_db)):
    job = get_job(db, request.job_id)
    count = sum(
        1 for row in _job_rows(db, request)
        if row.primary_contact is not None
        and row.primary_contact.email
        and row.primary_contact.email_status in UNVERIFIED_STATES
    )
    estimate = estimate_verification_cost(count)
    _store_estimate(db, job, "verification", estimate)
    return {"estimate": estimate, "selected_count": count}


@router.post("/enrichment")
async def estimate_enrichment(request: EstimateRequest, db: Session = Depends(get_db)):
    job = get_job(db, request.job_id)
    count = len(_job_rows(db, request))
    estimate = estimate_enrichment_cost(
        company_count=count,
        leads_per_company=clamp_leads_per_company(request.leads_per_company),
        mode=request.mode,
    )
    _store_estimate(db, job, "enrichment", estimate)
    return {"estimate": estimate, "selected_count": count}


@router.post("/ads-library")
async def estimate_ads_library(request: EstimateRequest, db: Session = Depends(get_db)):
    job = get_job(db, request.job_id)
    count = len(_job_rows(db, request))
    estimate = estimate_ads_library_cost(count)
    _store_estimate(db, job, "ads_scan", estimate)
    return {"estimate": estimate, "selected_count": count}
