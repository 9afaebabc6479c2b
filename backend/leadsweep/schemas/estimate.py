from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from leadsweep.schemas.batch import CamelModel


class PlacesCostEstimate(BaseModel):
    textsearch_calls: int
    details_calls: int
    total_calls: int
    estimated_api_cost_usd: float


class VerificationEstimate(BaseModel):
    count_to_verify: int
    unit_cost: float
    buffer_multiplier: float
    estimated_cost: float
    generated_at: datetime


class EnrichmentEstimate(BaseModel):
    mode: str
    company_count: int
    leads_per_company: int
    expected_leads: int
    credit_cost_usd: float
    credits_per_lead: float
    credits_per_company: float
    estimated_credits_total: float
    estimated_cost_total_usd: float
    estimated_cost_per_lead_usd: float
    generated_at: datetime


class AdsLibraryEstimate(BaseModel):
    company_count: int
    unit_cost_usd: float
    buffer_multiplier: float
    estimated_cost_total_usd: float
    generated_at: datetime


class EstimateRequest(CamelModel):
    job_id: Optional[str] = None
    selected_lead_ids: List[str] = []
    mode: str = "budget"
    leads_per_company: int = 3
