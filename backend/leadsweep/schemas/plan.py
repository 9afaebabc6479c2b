from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional


GeoMode = Literal["radius", "zip_sweep", "state"]


class GeoParams(BaseModel):
    radius_miles: Optional[float] = None
    center_city_state: Optional[str] = None
    zip_list: List[str] = Field(default_factory=list)
    state_code: Optional[str] = None
    city_cluster_strategy: Optional[Literal["major_cities", "zip_clusters"]] = None


class CollectionToggles(BaseModel):
    crawl_websites: bool = True
    deep_crawl: bool = False
    decision_maker_only: bool = False
    evidence_capture: bool = True
    allow_reinclude: bool = False


class ParsedPlan(BaseModel):
    """
    Collection plan for a job. Produced by an external planner (or edited by
    hand) and stored verbatim on the job.
    """
    business_type: str = ""
    keywords: List[str]
    geo_mode: GeoMode = "radius"
    geo_params: GeoParams = Field(default_factory=GeoParams)
    target_firm_count: int = Field(default=50, ge=1)
    max_searches: int = Field(default=100, ge=1)
    toggles: CollectionToggles = Field(default_factory=CollectionToggles)

    @field_validator("keywords")
    @classmethod
    def keywords_not_empty(cls, v: List[str]) -> List[str]:
        cleaned = [k.strip() for k in v if k and k.strip()]
        if not cleaned:
            raise ValueError("at least one keyword is required")
        return cleaned
