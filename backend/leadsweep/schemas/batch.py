from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case on input; serializes as camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================
# REQUESTS
# ============================================

class CollectBatchRequest(CamelModel):
    job_id: Optional[str] = None


class StageBatchRequest(CamelModel):
    job_id: Optional[str] = None
    scope_job_ids: List[str] = Field(default_factory=list)
    selected_lead_ids: List[str] = Field(default_factory=list)
    batch_size: int = 20
    spend_cap: Optional[float] = None


class VerifyBatchRequest(StageBatchRequest):
    valid_only: bool = True
    generate_candidates: bool = False
    max_attempts_per_firm: int = 3


class EnrichBatchRequest(StageBatchRequest):
    mode: str = "budget"  # budget or deep; anything else is treated as budget
    leads_per_company: int = 3


class AdsScanBatchRequest(StageBatchRequest):
    period_days: int = 30
    min_ads: int = 1


class CancelJobRequest(CamelModel):
    job_id: Optional[str] = None


# ============================================
# RESPONSES
# ============================================

class CollectBatchResponse(CamelModel):
    done: bool
    progress_count: int
    target: int
    reason: Optional[str] = None


class StageBatchResponse(CamelModel):
    done: bool
    spend_actual: float
    spend_cap: float
    reason: Optional[str] = None
    batch_size: Optional[int] = None


class VerifyBatchResponse(StageBatchResponse):
    verified_count: int = 0


class EnrichBatchResponse(StageBatchResponse):
    processed_companies: int = 0
    lead_signals_written: int = 0
    mode: Optional[str] = None
    leads_per_company: Optional[int] = None


class AdsScanBatchResponse(StageBatchResponse):
    processed: int = 0
    threshold_matches: int = 0
    period_days: Optional[int] = None
    min_ads: Optional[int] = None


class CancelJobResponse(CamelModel):
    ok: bool
    job_id: str
    canceled: bool
