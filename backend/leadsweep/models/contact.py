from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from datetime import datetime
from enum import Enum
import uuid

from leadsweep.db.base import Base


class EmailStatus(str, Enum):
    NONE = "none"
    UNVERIFIED = "unverified"
    VALID = "valid"
    INVALID = "invalid"
    RISKY = "risky"
    CATCH_ALL = "catch_all"
    UNKNOWN = "unknown"


class EmailSource(str, Enum):
    FOUND_ON_SITE = "found_on_site"
    GENERATED_PATTERN = "generated_pattern"


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    title = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    email_status = Column(String(50), default=EmailStatus.NONE.value, nullable=False, index=True)
    email_source = Column(String(50), nullable=True)  # found_on_site, generated_pattern
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    source_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    def __repr__(self):
        return f"<Contact id={self.id} name={self.full_name!r} title={self.title!r}>"
