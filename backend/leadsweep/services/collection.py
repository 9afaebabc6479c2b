"""
Collection stage: directory search -> dedup -> crawl.

One invocation runs one (keyword, segment) query:
1. search the directory and take up to BATCH_PLACE_LIMIT candidates
2. fetch details for each candidate; a failed lookup skips it
3. dedup against existing leads by place id or identity hash
4. upsert the lead, crawl its site, add contacts/signals, pick the
   primary contact and upsert the job's result row
5. log the batch, advance the cursor, decide whether the job is done

The caller keeps invoking until the result says done.
"""
import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import Session

from leadsweep.core.errors import UpstreamError
from leadsweep.models.contact import Contact, EmailSource, EmailStatus
from leadsweep.models.job import Job
from leadsweep.models.job_result import JobResult
from leadsweep.models.lead import Lead
from leadsweep.models.signal import Signal
from leadsweep.schemas.batch import CollectBatchResponse
from leadsweep.schemas.plan import ParsedPlan
from leadsweep.services.crawler import CrawlResult, crawl_website, match_email_to_contact, split_full_name
from leadsweep.services.deduplication import (
    build_fallback_firm_hash,
    choose_primary_contact,
    deduplicate_contacts,
    find_existing_lead,
)
from leadsweep.services.error_logger import ErrorLogger, get_error_logger
from leadsweep.services.estimators import estimate_places_cost
from leadsweep.services.geo import build_geo_segments, build_query, resolve_cursor
from leadsweep.services.job_cursor import (
    COLLECTION_STAGE,
    advance_cursor,
    get_job,
    is_terminal,
    mark_completed,
    mark_started,
    stage_lease,
)
from leadsweep.services.places_client import LeadCandidate, PlacesClient, assert_places_configured, to_lead_candidate
from leadsweep.services.run_log import append_run_log

logger = logging.getLogger(__name__)

BATCH_PLACE_LIMIT = 15

Crawler = Callable[..., Awaitable[CrawlResult]]


def count_job_results(db: Session, job_id: str) -> int:
    return db.query(JobResult).filter(JobResult.job_id == job_id).count()


class CollectionStage:
    def __init__(
        self,
        db: Session,
        places: Optional[PlacesClient] = None,
        crawler: Crawler = crawl_website,
        error_logger: Optional[ErrorLogger] = None,
    ):
        self.db = db
        self.places = places or PlacesClient()
        self.crawler = crawler
        self.error_logger = error_logger or get_error_logger()

    def _result(self, job: Job, done: bool, reason: Optional[str] = None) -> CollectBatchResponse:
        return CollectBatchResponse(
            done=done,
            progress_count=job.progress_count or 0,
            target=job.target_firm_count,
            reason=reason,
        )

    async def run_batch(self, job_id: Optional[str]) -> CollectBatchResponse:
        job = get_job(self.db, job_id)
        assert_places_configured(self.places.api_key)

        if is_terminal(job):
            return self._result(job, True, "job_canceled" if job.canceled else f"job_{job.status}")

        with stage_lease(self.db, job.id, COLLECTION_STAGE) as acquired:
            if not acquired:
                return self._result(job, False, "batch_in_progress")

            self.db.refresh(job)
            if is_terminal(job):
                return self._result(job, True, "job_canceled" if job.canceled else f"job_{job.status}")

            try:
                return await self._run_locked(job)
            except UpstreamError as e:
                self.error_logger.log_error(
                    job_id=job.id,
                    stage=COLLECTION_STAGE,
                    error_type="upstream_error",
                    error_message=e.message,
                    provider=e.provider,
                    extra_data={"status": e.status},
                )
                raise

    async def _run_locked(self, job: Job) -> CollectBatchResponse:
        plan = ParsedPlan.model_validate(job.plan)
        segments = build_geo_segments(plan)

        mark_started(job)
        progress = count_job_results(self.db, job.id)
        job.progress_count = progress

        stop_reason = self._stop_reason(job, progress, len(segments))
        if stop_reason:
            mark_completed(job)
            self.db.commit()
            return self._result(job, True, stop_reason)

        keyword, segment = resolve_cursor(plan, segments, job.current_segment_offset, job.current_keyword_offset)
        query = build_query(keyword, segment)
        self.db.commit()

        raw = await self.places.search(query)
        candidates = raw[:BATCH_PLACE_LIMIT]

        details_calls = 0
        new_count = 0
        duplicate_count = 0

        for item in candidates:
            if progress >= job.target_firm_count:
                break

            place_id = item.get("place_id")
            if not place_id:
                continue
            details_calls += 1
            detail = await self.places.get_details(place_id)
            if not detail:
                continue

            candidate = to_lead_candidate(detail, query, segment.label)
            if await self._store_candidate(job, plan, candidate):
                new_count += 1
                progress += 1
            else:
                duplicate_count += 1
            self.db.commit()

        cost = estimate_places_cost(textsearch_calls=1, details_calls=details_calls)
        append_run_log(
            self.db,
            job.id,
            "collect_batch",
            query=query,
            segment=segment.label,
            found=len(candidates),
            new=new_count,
            duplicate=duplicate_count,
            progress_count=progress,
            api_calls={
                "textsearch": cost.textsearch_calls,
                "details": cost.details_calls,
                "total": cost.total_calls,
            },
            estimated_api_cost_usd=cost.estimated_api_cost_usd,
        )

        job.current_segment_offset, job.current_keyword_offset = advance_cursor(
            job.current_segment_offset,
            job.current_keyword_offset,
            len(plan.keywords),
        )
        job.searches_executed = (job.searches_executed or 0) + 1
        job.progress_count = progress

        stop_reason = self._stop_reason(job, progress, len(segments))
        if stop_reason:
            mark_completed(job)
        self.db.commit()

        logger.info(
            f"Job {job.id}: '{query}' found={len(candidates)} new={new_count} "
            f"duplicate={duplicate_count} progress={progress}/{job.target_firm_count}"
        )
        return self._result(job, bool(stop_reason), stop_reason)

    @staticmethod
    def _stop_reason(job: Job, progress: int, segment_count: int) -> Optional[str]:
        if progress >= job.target_firm_count:
            return "target_reached"
        if job.current_segment_offset >= segment_count:
            return "segments_exhausted"
        if job.searches_executed >= job.max_searches:
            return "max_searches_reached"
        return None

    async def _store_candidate(self, job: Job, plan: ParsedPlan, candidate: LeadCandidate) -> bool:
        """Persist one candidate. Returns True when it adds a new result to the job."""
        firm_hash = build_fallback_firm_hash(candidate.name, candidate.address, candidate.phone)
        lead = find_existing_lead(self.db, candidate.google_place_id, firm_hash)

        if lead is not None and not job.allow_reinclude:
            append_run_log(
                self.db,
                job.id,
                "dedupe_skip",
                google_place_id=candidate.google_place_id,
                name=candidate.name,
                lead_id=lead.id,
            )
            return False

        if lead is None:
            lead = Lead(fallback_firm_hash=firm_hash)
            self.db.add(lead)
        self._apply_candidate(lead, candidate)
        self.db.flush()

        contacts = (
            self.db.query(Contact)
            .filter(Contact.lead_id == lead.id)
            .order_by(Contact.created_at)
            .all()
        )
        if plan.toggles.crawl_websites and lead.website:
            crawl = await self.crawler(lead.website, deep=plan.toggles.deep_crawl)
            contacts.extend(self._apply_crawl(lead, crawl, contacts, plan.toggles.evidence_capture))
            self.db.flush()

        primary = choose_primary_contact(contacts)
        result = (
            self.db.query(JobResult)
            .filter(JobResult.job_id == job.id, JobResult.lead_id == lead.id)
            .first()
        )
        created = result is None
        if created:
            result = JobResult(job_id=job.id, lead_id=lead.id)
            self.db.add(result)
        result.primary_contact_id = primary.id if primary else None
        return created

    @staticmethod
    def _apply_candidate(lead: Lead, candidate: LeadCandidate) -> None:
        lead.name = candidate.name
        for field in ("address", "city", "state", "zip", "phone", "website", "google_maps_url"):
            value = getattr(candidate, field)
            if value:
                setattr(lead, field, value)
        if candidate.google_place_id and not lead.google_place_id:
            lead.google_place_id = candidate.google_place_id
        lead.source_query = candidate.source_query
        lead.source_geo_label = candidate.source_geo_label

    def _apply_crawl(
        self,
        lead: Lead,
        crawl: CrawlResult,
        existing: List[Contact],
        capture_evidence: bool,
    ) -> List[Contact]:
        if crawl.contact_form_url:
            lead.contact_form_url = crawl.contact_form_url
        known_emails = list(lead.emails_found or [])
        lead.emails_found = known_emails + [e for e in crawl.emails if e not in known_emails]

        known_names = {" ".join(c.full_name.lower().split()) for c in existing}
        added: List[Contact] = []
        for found in deduplicate_contacts(crawl.contacts):
            key = " ".join(found["full_name"].lower().split())
            if key in known_names:
                continue
            known_names.add(key)

            first, last = split_full_name(found["full_name"])
            email = match_email_to_contact(crawl.emails, first, last)
            contact = Contact(
                lead_id=lead.id,
                full_name=found["full_name"],
                first_name=first,
                last_name=last,
                title=found.get("title"),
                email=email,
                email_status=EmailStatus.UNVERIFIED.value if email else EmailStatus.NONE.value,
                email_source=EmailSource.FOUND_ON_SITE.value if email else None,
                source_url=found.get("source_url"),
            )
            self.db.add(contact)
            added.append(contact)

        if capture_evidence:
            for signal in crawl.signals:
                self.db.add(Signal(lead_id=lead.id, **signal))

        return added

