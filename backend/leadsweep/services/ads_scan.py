"""
Ads library scan stage.

A lead with a website is pending until it has an observation for the
configured provider and the exact [period_start, period_end] window, so a
second scan of the same window neither calls the provider nor charges.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leadsweep.models.ads_observation import AdsLibraryObservation
from leadsweep.models.job_result import JobResult
from leadsweep.schemas.batch import AdsScanBatchRequest, AdsScanBatchResponse
from leadsweep.services.ads_library_client import AdsLibraryClient, AdsLookupResult, clamp_period_days, period_window
from leadsweep.services.batch_processor import BatchRun, ItemOutcome, SpendCappedBatchProcessor
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.estimators import ads_scan_unit_cost


def upsert_observation(db: Session, lead_id: str, job_id: str, result: AdsLookupResult) -> AdsLibraryObservation:
    observation = (
        db.query(AdsLibraryObservation)
        .filter(
            AdsLibraryObservation.lead_id == lead_id,
            AdsLibraryObservation.provider == result.provider,
            AdsLibraryObservation.period_start == result.period_start,
            AdsLibraryObservation.period_end == result.period_end,
        )
        .first()
    )
    if observation is None:
        observation = AdsLibraryObservation(
            lead_id=lead_id,
            provider=result.provider,
            period_start=result.period_start,
            period_end=result.period_end,
        )
        db.add(observation)

    observation.job_id = job_id
    observation.advertiser_name = result.advertiser_name
    observation.ads_count_active = result.ads_count_active
    observation.ads_count_in_period = result.ads_count_in_period
    observation.first_seen_at = result.first_seen_at
    observation.last_seen_at = result.last_seen_at
    observation.evidence_url = result.evidence_url
    observation.provider_response = result.raw
    return observation


class AdsScanProcessor(SpendCappedBatchProcessor):
    stage = "ads_scan"
    response_model = AdsScanBatchResponse

    def __init__(
        self,
        db: Session,
        client: Optional[AdsLibraryClient] = None,
        error_logger: Optional[ErrorLogger] = None,
    ):
        super().__init__(db, error_logger)
        self.client = client
        self.window = None

    def validate(self, params: AdsScanBatchRequest) -> None:
        if self.client is None:
            self.client = AdsLibraryClient()

    def begin_batch(self, params: AdsScanBatchRequest) -> None:
        # One window per invocation, even across a UTC midnight
        self.window = period_window(params.period_days)

    def unit_cost(self, params: AdsScanBatchRequest) -> float:
        return ads_scan_unit_cost()

    def select_pending(self, params: AdsScanBatchRequest, rows: List[JobResult]) -> List[JobResult]:
        with_site = [row for row in rows if row.lead is not None and row.lead.website]
        if not with_site:
            return []

        period_start, period_end = self.window
        scanned = {
            lead_id
            for (lead_id,) in self.db.query(AdsLibraryObservation.lead_id).filter(
                AdsLibraryObservation.lead_id.in_([row.lead_id for row in with_site]),
                AdsLibraryObservation.provider == self.client.provider,
                AdsLibraryObservation.period_start == period_start,
                AdsLibraryObservation.period_end == period_end,
            )
        }
        return [row for row in with_site if row.lead_id not in scanned]

    async def process_item(self, run: BatchRun, params: AdsScanBatchRequest, item: JobResult) -> ItemOutcome:
        lead = item.lead
        min_ads = max(0, params.min_ads)

        result = await self.client.lookup(
            company_name=lead.name,
            website=lead.website,
            city=lead.city,
            state=lead.state,
            period_days=params.period_days,
            window=self.window,
        )
        match = result.ads_count_in_period >= min_ads

        upsert_observation(self.db, lead.id, run.job.id, result)
        run.charge(self.unit_cost(params))
        run.bump("processed")
        if match:
            run.bump("threshold_matches")

        return ItemOutcome(log={
            "lead_name": lead.name,
            "period_days": clamp_period_days(params.period_days),
            "min_ads": min_ads,
            "ads_count_in_period": result.ads_count_in_period,
            "ads_count_active": result.ads_count_active,
            "threshold_match": match,
        })

    def build_result(self, params: AdsScanBatchRequest, run: Optional[BatchRun]) -> Dict[str, Any]:
        counters = run.counters if run else {}
        return {
            "processed": counters.get("processed", 0),
            "threshold_matches": counters.get("threshold_matches", 0),
            "period_days": clamp_period_days(params.period_days),
            "min_ads": max(0, params.min_ads),
        }
