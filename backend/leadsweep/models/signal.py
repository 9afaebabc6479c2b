from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from datetime import datetime
import uuid

from leadsweep.db.base import Base


class Signal(Base):
    """Evidenced observation about a lead or contact. Rows are only ever inserted."""
    __tablename__ = "signals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    signal_type = Column(String(100), nullable=False, index=True)
    signal_value = Column(Text, nullable=False)  # plain text or JSON document
    evidence_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
