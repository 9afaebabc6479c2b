import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leadsweep.models.run_log import JobRunLog

logger = logging.getLogger(__name__)


def append_run_log(db: Session, job_id: str, event: str, **payload: Any) -> JobRunLog:
    """
    Append one entry to a job's run log.

    The row is added to the session but not committed; it becomes durable
    with the caller's next commit, together with the state it describes.
    """
    entry = JobRunLog(job_id=job_id, event=event, payload=_jsonable(payload), ts=datetime.utcnow())
    db.add(entry)
    logger.info(f"[job {job_id}] {event} {payload}")
    return entry


def list_run_logs(db: Session, job_id: str, event: Optional[str] = None) -> List[Dict[str, Any]]:
    query = db.query(JobRunLog).filter(JobRunLog.job_id == job_id)
    if event:
        query = query.filter(JobRunLog.event == event)
    return [row.as_dict() for row in query.order_by(JobRunLog.id).all()]


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
