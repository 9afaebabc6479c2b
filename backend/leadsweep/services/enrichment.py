"""
Contact enrichment stage.

For each pending lead: score its contacts, keep the top N, write one
confidence signal per kept contact, write the two company segmentation
signals, and point the job's result row at the top kept contact. The
segment_in_business_20_plus signal marks the lead as done for this stage.
"""
import json
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leadsweep.models.contact import Contact
from leadsweep.models.job_result import JobResult
from leadsweep.models.signal import Signal
from leadsweep.schemas.batch import EnrichBatchRequest, EnrichBatchResponse
from leadsweep.services.batch_processor import BatchRun, ItemOutcome, SpendCappedBatchProcessor
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.estimators import estimate_enrichment_cost, normalize_enrichment_mode
from leadsweep.services.scoring import ContactScorer, KeywordSegmentScorer, SegmentScorer, TitleContactScorer

ENRICHMENT_MARKER = "segment_in_business_20_plus"
CONTACT_SIGNAL = "enrichment_lead_confidence"
MEDICAL_SIGNAL = "segment_multi_location_medical_practice"

MAX_CONTACTS_PER_LEAD = 25


def clamp_leads_per_company(value: Optional[int]) -> int:
    return max(1, min(3, 3 if value is None else int(value)))


class EnrichmentProcessor(SpendCappedBatchProcessor):
    stage = "enrichment"
    response_model = EnrichBatchResponse

    def __init__(
        self,
        db: Session,
        contact_scorer: Optional[ContactScorer] = None,
        segment_scorer: Optional[SegmentScorer] = None,
        error_logger: Optional[ErrorLogger] = None,
    ):
        super().__init__(db, error_logger)
        self.contact_scorer = contact_scorer or TitleContactScorer()
        self.segment_scorer = segment_scorer or KeywordSegmentScorer()

    def unit_cost(self, params: EnrichBatchRequest) -> float:
        estimate = estimate_enrichment_cost(
            company_count=1,
            leads_per_company=clamp_leads_per_company(params.leads_per_company),
            mode=params.mode,
        )
        return estimate.estimated_cost_total_usd

    def select_pending(self, params: EnrichBatchRequest, rows: List[JobResult]) -> List[JobResult]:
        lead_ids = [row.lead_id for row in rows]
        if not lead_ids:
            return []
        marked = {
            lead_id
            for (lead_id,) in self.db.query(Signal.lead_id)
            .filter(Signal.lead_id.in_(lead_ids), Signal.signal_type == ENRICHMENT_MARKER)
            .distinct()
        }
        return [row for row in rows if row.lead is not None and row.lead_id not in marked]

    async def process_item(self, run: BatchRun, params: EnrichBatchRequest, item: JobResult) -> ItemOutcome:
        lead = item.lead
        mode = normalize_enrichment_mode(params.mode)
        keep = clamp_leads_per_company(params.leads_per_company)

        contacts = (
            self.db.query(Contact)
            .filter(Contact.lead_id == lead.id)
            .order_by(Contact.created_at)
            .limit(MAX_CONTACTS_PER_LEAD)
            .all()
        )
        scored = sorted(contacts, key=lambda c: self.contact_scorer.score(c.title), reverse=True)[:keep]

        for contact in scored:
            self.db.add(Signal(
                lead_id=lead.id,
                contact_id=contact.id,
                signal_type=CONTACT_SIGNAL,
                signal_value=json.dumps({
                    "full_name": contact.full_name,
                    "title": contact.title,
                    "confidence": self.contact_scorer.score(contact.title),
                    "mode": mode,
                }),
                evidence_url=lead.website,
            ))

        segment = self.segment_scorer.segment(lead.name, lead.website, lead.address, lead.city, lead.state)
        for signal_type, flag in (
            (ENRICHMENT_MARKER, segment.in_business_20_plus),
            (MEDICAL_SIGNAL, segment.multi_location_medical_practice),
        ):
            self.db.add(Signal(
                lead_id=lead.id,
                signal_type=signal_type,
                signal_value=json.dumps({"value": flag.value, "confidence": flag.confidence, "mode": mode}),
                evidence_url=flag.evidence,
            ))

        run.charge(self.unit_cost(params))
        run.bump("processed_companies")
        run.bump("lead_signals_written", len(scored))

        if scored:
            result = (
                self.db.query(JobResult)
                .filter(JobResult.job_id == run.job.id, JobResult.lead_id == lead.id)
                .first()
            )
            if result is not None:
                result.primary_contact_id = scored[0].id

        return ItemOutcome(log={"contacts_kept": len(scored), "mode": mode})

    def build_result(self, params: EnrichBatchRequest, run: Optional[BatchRun]) -> Dict[str, Any]:
        counters = run.counters if run else {}
        return {
            "processed_companies": counters.get("processed_companies", 0),
            "lead_signals_written": counters.get("lead_signals_written", 0),
            "mode": normalize_enrichment_mode(params.mode),
            "leads_per_company": clamp_leads_per_company(params.leads_per_company),
        }
