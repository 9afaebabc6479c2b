"""
Job lifecycle and cursor.

    queued -> running -> completed
       \\________\\______> failed   (cancel request, or a fatal error)

Cancellation is recorded as failed + failure_reason="canceled". It is
cooperative: a running batch finishes, and the next invocation sees the
terminal status and returns done without touching anything.

Each (job, stage) pair also has an advisory lease row so that two
overlapping invocations cannot both read the same cursor/spend snapshot.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadsweep.core.config import settings
from leadsweep.core.errors import CallerError, JobNotFoundError
from leadsweep.models.job import CANCEL_MESSAGE, FailureReason, Job, JobStatus
from leadsweep.models.stage_lease import StageLease
from leadsweep.services.run_log import append_run_log

logger = logging.getLogger(__name__)

COLLECTION_STAGE = "collection"


def get_job(db: Session, job_id: Optional[str]) -> Job:
    if not job_id:
        raise CallerError("jobId is required")
    job = db.query(Job).filter(Job.id == job_id).first()
    if job is None:
        raise JobNotFoundError(job_id)
    return job


def is_terminal(job: Job) -> bool:
    return job.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


def is_canceled(job: Job) -> bool:
    return job.canceled


def mark_started(job: Job) -> None:
    """queued -> running; started_at is set on the first batch only."""
    if job.status == JobStatus.QUEUED.value:
        job.status = JobStatus.RUNNING.value
    if job.started_at is None:
        job.started_at = datetime.utcnow()


def mark_completed(job: Job) -> None:
    job.status = JobStatus.COMPLETED.value
    job.finished_at = datetime.utcnow()


def mark_failed(job: Job, message: str, reason: FailureReason = FailureReason.ERROR) -> None:
    job.status = JobStatus.FAILED.value
    job.failure_reason = reason.value
    job.error_log = message
    job.finished_at = datetime.utcnow()


def advance_cursor(
    segment_offset: int,
    keyword_offset: int,
    keyword_count: int,
) -> Tuple[int, int]:
    """Next keyword; past the last keyword, wrap to 0 and move to the next segment."""
    keyword_offset += 1
    if keyword_offset >= keyword_count:
        keyword_offset = 0
        segment_offset += 1
    return segment_offset, keyword_offset


def cancel_job(db: Session, job: Job) -> Job:
    """Flip a job to failed/canceled. Idempotent; a completed job stays completed."""
    if job.status == JobStatus.COMPLETED.value or job.canceled:
        return job
    mark_failed(job, CANCEL_MESSAGE, FailureReason.CANCELED)
    append_run_log(db, job.id, "job_canceled", reason="user_request")
    db.commit()
    logger.info(f"Job {job.id} canceled")
    return job


# ============================================
# ADVISORY LEASE PER (JOB, STAGE)
# ============================================

def acquire_lease(db: Session, job_id: str, stage: str) -> Optional[str]:
    """
    Claim the (job, stage) lease. Returns a token, or None if another
    invocation holds an unexpired lease.
    """
    now = datetime.utcnow()
    token = str(uuid.uuid4())
    expires_at = now + timedelta(seconds=settings.BATCH_LEASE_SECONDS)

    # Take over a lease abandoned by a crashed invocation
    taken = (
        db.query(StageLease)
        .filter(StageLease.job_id == job_id, StageLease.stage == stage, StageLease.expires_at < now)
        .update({"token": token, "expires_at": expires_at}, synchronize_session=False)
    )
    if taken:
        db.commit()
        logger.warning(f"Took over expired {stage} lease for job {job_id}")
        return token

    try:
        db.add(StageLease(job_id=job_id, stage=stage, token=token, expires_at=expires_at))
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    return token


def release_lease(db: Session, job_id: str, stage: str, token: str) -> None:
    db.query(StageLease).filter(
        StageLease.job_id == job_id,
        StageLease.stage == stage,
        StageLease.token == token,
    ).delete(synchronize_session=False)
    db.commit()


@contextmanager
def stage_lease(db: Session, job_id: str, stage: str) -> Iterator[bool]:
    """
    Hold the (job, stage) lease for the duration of the block.

    Yields False when the lease is busy. On an exception inside the block,
    uncommitted work is rolled back before the lease is released; whatever
    the block already committed stays.
    """
    token = acquire_lease(db, job_id, stage)
    if token is None:
        logger.info(f"{stage} batch already in progress for job {job_id}")
        yield False
        return
    try:
        yield True
    except BaseException:
        db.rollback()
        raise
    finally:
        release_lease(db, job_id, stage, token)
