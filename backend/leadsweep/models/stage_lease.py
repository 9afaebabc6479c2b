"""
StageLease Model

Advisory lock row for one (job, stage) pair. A batch invocation holds the
lease while it reads and writes the job's cursor or spend state; a second
concurrent invocation fails to acquire it and returns without side effects.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey

from leadsweep.db.base import Base


class StageLease(Base):
    __tablename__ = "stage_leases"

    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    stage = Column(String(50), primary_key=True)  # collection, verification, enrichment, ads_scan
    token = Column(String(36), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<StageLease job_id={self.job_id} stage={self.stage} expires_at={self.expires_at}>"
