from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime
import uuid

from leadsweep.db.base import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(500), nullable=True)
    google_place_id = Column(String(255), unique=True, nullable=True, index=True)
    google_maps_url = Column(Text, nullable=True)
    fallback_firm_hash = Column(String(64), nullable=False, index=True)  # sha256 of name|address|phone
    contact_form_url = Column(Text, nullable=True)
    emails_found = Column(JSON, default=list)  # firm-level addresses seen while crawling
    source_query = Column(String(500), nullable=True)
    source_geo_label = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Lead id={self.id} name={self.name!r}>"
