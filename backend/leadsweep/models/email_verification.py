from sqlalchemy import Column, String, Float, DateTime, ForeignKey, JSON, UniqueConstraint
from datetime import datetime
import uuid

from leadsweep.db.base import Base


class EmailVerification(Base):
    __tablename__ = "email_verifications"
    __table_args__ = (UniqueConstraint("email", "provider", name="uq_email_verifications_email_provider"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=True, index=True)
    email = Column(String(255), nullable=False)
    provider = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False)  # valid, invalid, unknown, catch_all, risky
    confidence = Column(Float, nullable=True)
    provider_response = Column(JSON, default=dict)
    verified_at = Column(DateTime(timezone=True), default=datetime.utcnow)
