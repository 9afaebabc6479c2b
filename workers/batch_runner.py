#!/usr/bin/env python3
"""
Collection Batch Runner

Background worker that drives collection for active jobs:
- Sweeps queued/running jobs, oldest first
- Runs one collection batch per job per sweep
- Sleeps RUNNER_POLL_INTERVAL seconds between sweeps

A configuration error fails the job (it cannot succeed on retry). An
upstream error is logged and the job is simply picked up again on the next
sweep.
"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from leadsweep.core.config import settings
from leadsweep.core.errors import ConfigurationError, UpstreamError
from leadsweep.db.session import SessionLocal
from leadsweep.models.job import Job, JobStatus
from leadsweep.services.collection import CollectionStage
from leadsweep.services.crawler import crawl_website
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.job_cursor import mark_failed
from leadsweep.services.places_client import PlacesClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (JobStatus.QUEUED.value, JobStatus.RUNNING.value)


def active_job_ids(db: Session, limit: int) -> list:
    rows = (
        db.query(Job.id)
        .filter(Job.status.in_(ACTIVE_STATUSES))
        .order_by(Job.created_at)
        .limit(limit)
        .all()
    )
    return [job_id for (job_id,) in rows]


async def run_job_batch(
    db: Session,
    job_id: str,
    places: PlacesClient,
    crawler=crawl_website,
    error_logger: Optional[ErrorLogger] = None,
) -> bool:
    """Run one batch for a job. Returns True when the job reports done."""
    stage = CollectionStage(db, places=places, crawler=crawler, error_logger=error_logger)
    try:
        result = await stage.run_batch(job_id)
    except ConfigurationError as e:
        logger.error(f"Job {job_id} failed: {e.message}")
        db.rollback()
        job = db.query(Job).filter(Job.id == job_id).first()
        if job is not None:
            mark_failed(job, e.message)
            db.commit()
        return True
    except UpstreamError as e:
        logger.warning(f"Job {job_id} batch aborted by {e.provider}: {e.message}; retrying next sweep")
        return False

    logger.info(
        f"Job {job_id}: progress {result.progress_count}/{result.target} "
        f"done={result.done} reason={result.reason}"
    )
    return result.done


async def run_sweep(
    session_factory: Callable[[], Session] = SessionLocal,
    places: Optional[PlacesClient] = None,
    crawler=crawl_website,
    error_logger: Optional[ErrorLogger] = None,
) -> int:
    """One pass over active jobs. Returns the number of batches run."""
    owns_places = places is None
    places = places or PlacesClient()

    db = session_factory()
    try:
        job_ids = active_job_ids(db, settings.RUNNER_MAX_BATCHES_PER_SWEEP)
    finally:
        db.close()

    batches = 0
    try:
        for job_id in job_ids:
            db = session_factory()
            try:
                await run_job_batch(db, job_id, places, crawler, error_logger)
                batches += 1
            except Exception as e:
                logger.exception(f"Unexpected error running job {job_id}: {e}")
            finally:
                db.close()
    finally:
        if owns_places:
            await places.close()
    return batches


async def main():
    """Main worker loop."""
    logger.info("Collection batch runner starting...")
    logger.info(f"Poll interval: {settings.RUNNER_POLL_INTERVAL}s")

    while True:
        try:
            ran = await run_sweep()
            if ran:
                logger.info(f"Sweep finished: {ran} batch(es)")
        except KeyboardInterrupt:
            logger.info("Worker shutting down...")
            break
        except Exception as e:
            logger.exception(f"Error in main loop: {e}")
        await asyncio.sleep(settings.RUNNER_POLL_INTERVAL)


if __name__ == "__main__":
    asyncio.run(main())
