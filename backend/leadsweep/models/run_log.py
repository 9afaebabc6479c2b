from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from datetime import datetime

from leadsweep.db.base import Base


class JobRunLog(Base):
    """Append-only audit trail entry for a job."""
    __tablename__ = "job_run_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    ts = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    event = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, default=dict)

    def as_dict(self) -> dict:
        return {"ts": self.ts.isoformat() if self.ts else None, "event": self.event, **(self.payload or {})}
