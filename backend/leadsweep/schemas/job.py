from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from leadsweep.schemas.plan import ParsedPlan


class JobCreateRequest(BaseModel):
    prompt: str = ""
    plan: ParsedPlan


class JobResponse(BaseModel):
    id: str
    user_prompt: Optional[str]
    status: str
    failure_reason: Optional[str] = None
    canceled: bool = False
    error_log: Optional[str] = None
    plan: Dict[str, Any]
    target_firm_count: int
    max_searches: int
    searches_executed: int
    progress_count: int
    current_segment_offset: int
    current_keyword_offset: int
    allow_reinclude: bool
    verification_status: str
    verification_spend_actual: float
    verification_spend_cap: Optional[float]
    enrichment_status: str
    enrichment_spend_actual: float
    enrichment_spend_cap: Optional[float]
    ads_scan_status: str
    ads_scan_spend_actual: float
    ads_scan_spend_cap: Optional[float]
    created_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True


class JobDetailResponse(JobResponse):
    run_logs: List[Dict[str, Any]] = []

    @field_validator("run_logs", mode="before")
    @classmethod
    def flatten_run_logs(cls, v):
        return [entry.as_dict() if hasattr(entry, "as_dict") else entry for entry in (v or [])]


class JobListItem(BaseModel):
    id: str
    user_prompt: Optional[str]
    status: str
    failure_reason: Optional[str] = None
    progress_count: int
    target_firm_count: int
    created_at: datetime
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True
