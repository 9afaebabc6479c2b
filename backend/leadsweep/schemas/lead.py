from pydantic import BaseModel, field_validator
from typing import Optional, List, Any
from datetime import datetime


class _Timestamped(BaseModel):
    created_at: Optional[str] = None

    @field_validator('created_at', mode='before')
    @classmethod
    def convert_datetime(cls, v):
        if isinstance(v, datetime):
            return v.isoformat()
        return v

    class Config:
        from_attributes = True


class ContactResponse(_Timestamped):
    id: str
    lead_id: str
    full_name: str
    first_name: Optional[str]
    last_name: Optional[str]
    title: Optional[str]
    email: Optional[str]
    email_status: str
    email_source: Optional[str]
    source_url: Optional[str]


class SignalResponse(_Timestamped):
    id: str
    lead_id: str
    contact_id: Optional[str]
    signal_type: str
    signal_value: str
    evidence_url: Optional[str]


class LeadResponse(_Timestamped):
    id: str
    name: str
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip: Optional[str]
    phone: Optional[str]
    website: Optional[str]
    google_place_id: Optional[str]
    google_maps_url: Optional[str]
    contact_form_url: Optional[str]
    emails_found: Optional[List[Any]] = []
    source_query: Optional[str]
    source_geo_label: Optional[str]


class JobResultResponse(BaseModel):
    job_id: str
    lead_id: str
    lead: LeadResponse
    primary_contact: Optional[ContactResponse] = None
    signals: List[SignalResponse] = []

    class Config:
        from_attributes = True
