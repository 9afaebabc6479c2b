from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from leadsweep.db.base import Base


class JobResult(Base):
    """Which job surfaced which lead, and the lead's primary contact for that job."""
    __tablename__ = "job_results"
    __table_args__ = (UniqueConstraint("job_id", "lead_id", name="uq_job_results_job_lead"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    primary_contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    lead = relationship("Lead", lazy="joined")
    primary_contact = relationship("Contact", lazy="joined")
