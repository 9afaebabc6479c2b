from sqlalchemy import Column, String, Integer, Float, DateTime, Boolean, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
import uuid

from leadsweep.db.base import Base


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureReason(str, Enum):
    CANCELED = "canceled"
    ERROR = "error"


class StageStatus(str, Enum):
    IDLE = "idle"
    ESTIMATED = "estimated"
    RUNNING = "running"
    COMPLETED = "completed"


# Stages that run under a spend cap; each owns {stage}_status/_spend_actual/_spend_cap/_estimate
SPEND_CAPPED_STAGES = ("verification", "enrichment", "ads_scan")

CANCEL_MESSAGE = "Canceled by user"


def _new_id() -> str:
    return str(uuid.uuid4())


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_prompt = Column(Text, nullable=True)
    plan = Column(JSON, nullable=False)  # business_type, keywords, geo_mode, geo_params, toggles, ...
    status = Column(String(50), default=JobStatus.QUEUED.value, nullable=False, index=True)  # queued, running, completed, failed
    failure_reason = Column(String(50), nullable=True)  # canceled, error
    error_log = Column(Text, nullable=True)

    # Collection progress and cursor
    target_firm_count = Column(Integer, default=0, nullable=False)
    max_searches = Column(Integer, default=100, nullable=False)
    searches_executed = Column(Integer, default=0, nullable=False)
    progress_count = Column(Integer, default=0, nullable=False)
    current_segment_offset = Column(Integer, default=0, nullable=False)
    current_keyword_offset = Column(Integer, default=0, nullable=False)
    allow_reinclude = Column(Boolean, default=False, nullable=False)

    # Verification stage
    verification_status = Column(String(50), default=StageStatus.IDLE.value, nullable=False)
    verification_spend_actual = Column(Float, default=0.0, nullable=False)
    verification_spend_cap = Column(Float, nullable=True)
    verification_estimate = Column(JSON, nullable=True)

    # Enrichment stage
    enrichment_status = Column(String(50), default=StageStatus.IDLE.value, nullable=False)
    enrichment_spend_actual = Column(Float, default=0.0, nullable=False)
    enrichment_spend_cap = Column(Float, nullable=True)
    enrichment_estimate = Column(JSON, nullable=True)

    # Ads library scan stage
    ads_scan_status = Column(String(50), default=StageStatus.IDLE.value, nullable=False)
    ads_scan_spend_actual = Column(Float, default=0.0, nullable=False)
    ads_scan_spend_cap = Column(Float, nullable=True)
    ads_scan_estimate = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    run_logs = relationship(
        "JobRunLog",
        order_by="JobRunLog.id",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def __repr__(self):
        return f"<Job id={self.id} status={self.status} progress={self.progress_count}/{self.target_firm_count}>"

    @property
    def canceled(self) -> bool:
        if self.status != JobStatus.FAILED.value:
            return False
        if self.failure_reason:
            return self.failure_reason == FailureReason.CANCELED.value
        # Rows written before failure_reason existed only carry the message
        return CANCEL_MESSAGE.lower() in (self.error_log or "").lower()

    def stage_value(self, stage: str, field: str):
        return getattr(self, f"{stage}_{field}")

    def set_stage_value(self, stage: str, field: str, value):
        setattr(self, f"{stage}_{field}", value)
