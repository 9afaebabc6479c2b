"""
Email verification stage.

Pending work is each scoped lead's primary contact that has never been
verified and has at least one candidate address. Candidates are tried in
order (stored address first, then generated patterns when enabled) until
one comes back valid or max_attempts_per_firm is used up. Every attempt is
charged one unit, whatever the outcome.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leadsweep.core.config import settings
from leadsweep.models.contact import EmailSource
from leadsweep.models.email_verification import EmailVerification
from leadsweep.models.job_result import JobResult
from leadsweep.schemas.batch import VerifyBatchRequest, VerifyBatchResponse
from leadsweep.services.batch_processor import BatchRun, ItemOutcome, SpendCappedBatchProcessor
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.permutation import candidate_emails
from leadsweep.services.verifier_client import AnymailVerifierClient, VerificationResult


def contact_candidates(row: JobResult, generate: bool) -> List[str]:
    contact = row.primary_contact
    if contact is None:
        return []
    website = row.lead.website if row.lead is not None else None
    return candidate_emails(contact.email, contact.first_name, contact.last_name, website, generate)


def upsert_verification(db: Session, contact_id: str, provider: str, result: VerificationResult) -> EmailVerification:
    record = (
        db.query(EmailVerification)
        .filter(EmailVerification.email == result.email, EmailVerification.provider == provider)
        .first()
    )
    if record is None:
        record = EmailVerification(email=result.email, provider=provider)
        db.add(record)
    record.contact_id = contact_id
    record.status = result.status
    record.confidence = result.confidence
    record.provider_response = result.provider_response
    record.verified_at = datetime.utcnow()
    return record


class VerificationProcessor(SpendCappedBatchProcessor):
    stage = "verification"
    response_model = VerifyBatchResponse

    def __init__(
        self,
        db: Session,
        client: Optional[AnymailVerifierClient] = None,
        error_logger: Optional[ErrorLogger] = None,
    ):
        super().__init__(db, error_logger)
        self.client = client

    def validate(self, params: VerifyBatchRequest) -> None:
        if self.client is None:
            self.client = AnymailVerifierClient()
        self.client.assert_configured()

    def unit_cost(self, params: VerifyBatchRequest) -> float:
        return settings.ANYMAIL_UNIT_COST_USD

    def select_pending(self, params: VerifyBatchRequest, rows: List[JobResult]) -> List[JobResult]:
        return [
            row for row in rows
            if row.primary_contact is not None
            and row.primary_contact.email_verified_at is None
            and contact_candidates(row, params.generate_candidates)
        ]

    async def process_item(self, run: BatchRun, params: VerifyBatchRequest, item: JobResult) -> ItemOutcome:
        contact = item.primary_contact
        stored = (contact.email or "").strip().lower()
        candidates = contact_candidates(item, params.generate_candidates)
        max_attempts = max(1, params.max_attempts_per_firm)
        unit_cost = self.unit_cost(params)

        attempts = 0
        final_status = None
        for email in candidates:
            if attempts >= max_attempts:
                break
            if not run.can_afford(unit_cost):
                run.cap_hit = True
                break

            result = await self.client.verify_email(email)
            attempts += 1
            run.charge(unit_cost)
            final_status = result.status

            upsert_verification(self.db, contact.id, self.client.provider, result)
            keep = result.status == "valid" or not params.valid_only
            contact.email = email if keep else None
            contact.email_status = result.status
            contact.email_source = (
                EmailSource.FOUND_ON_SITE.value if email == stored else EmailSource.GENERATED_PATTERN.value
            )
            contact.email_verified_at = datetime.utcnow()
            run.bump("verified_count")
            self.checkpoint(run)

            if result.status == "valid":
                break

        return ItemOutcome(
            processed=attempts > 0,
            log={"contact_id": contact.id, "attempts": attempts, "final_status": final_status},
        )

    def build_result(self, params: VerifyBatchRequest, run: Optional[BatchRun]) -> Dict[str, Any]:
        return {"verified_count": run.counters.get("verified_count", 0) if run else 0}
