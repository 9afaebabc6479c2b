from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, JSON, Text, UniqueConstraint
from datetime import datetime
import uuid

from leadsweep.db.base import Base


class AdsLibraryObservation(Base):
    """Advertising activity for a lead over one [period_start, period_end] window."""
    __tablename__ = "ads_library_observations"
    __table_args__ = (
        UniqueConstraint(
            "lead_id", "provider", "period_start", "period_end",
            name="uq_ads_observations_lead_provider_window",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True, index=True)
    provider = Column(String(50), nullable=False)
    advertiser_name = Column(String(255), nullable=True)
    ads_count_active = Column(Integer, default=0)
    ads_count_in_period = Column(Integer, default=0)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    first_seen_at = Column(String(10), nullable=True)  # YYYY-MM-DD as reported by the provider
    last_seen_at = Column(String(10), nullable=True)
    evidence_url = Column(Text, nullable=True)
    provider_response = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
