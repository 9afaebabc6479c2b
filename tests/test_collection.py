"""
Collection batches against an in-memory database with fake Places and
crawler providers.
"""

import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from leadsweep.core.config import settings
from leadsweep.core.errors import CallerError, ConfigurationError, JobNotFoundError, UpstreamError
from leadsweep.models.contact import Contact
from leadsweep.models.job import JobStatus
from leadsweep.models.job_result import JobResult
from leadsweep.models.lead import Lead
from leadsweep.models.signal import Signal
from leadsweep.models.stage_lease import StageLease
from leadsweep.services.collection import CollectionStage
from leadsweep.services.crawler import CrawlResult, crawl_website
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.job_cursor import cancel_job
from leadsweep.services.run_log import list_run_logs

from conftest import FakeCrawler, FakePlaces, FakeRedis, make_job, place_detail


def run(stage: CollectionStage, job_id):
    return asyncio.run(stage.run_batch(job_id))


def places_for(*details) -> FakePlaces:
    return FakePlaces(
        results=[{"place_id": d["place_id"]} for d in details],
        details={d["place_id"]: d for d in details},
    )


@pytest.mark.integration
class TestDeduplication:
    def test_same_firm_twice_in_one_batch(self, db, error_logger):
        job = make_job(db)
        places = places_for(place_detail("p1", "Doe Law"), place_detail("p2", "Doe Law"))

        result = run(CollectionStage(db, places=places, crawler=FakeCrawler(), error_logger=error_logger), job.id)

        assert result.progress_count == 1
        assert db.query(Lead).count() == 1
        assert db.query(JobResult).filter(JobResult.job_id == job.id).count() == 1

        skips = list_run_logs(db, job.id, "dedupe_skip")
        assert len(skips) == 1
        assert skips[0]["google_place_id"] == "p2"
        assert skips[0]["lead_id"] == db.query(Lead).one().id

        batch = list_run_logs(db, job.id, "collect_batch")[0]
        assert batch["found"] == 2
        assert batch["new"] == 1
        assert batch["duplicate"] == 1
        assert batch["api_calls"] == {"textsearch": 1, "details": 2, "total": 3}

    def test_second_job_skips_known_firm(self, db, error_logger):
        detail = place_detail("p1", "Doe Law")
        run(CollectionStage(db, places=places_for(detail), error_logger=error_logger), make_job(db).id)

        job2 = make_job(db)
        result = run(CollectionStage(db, places=places_for(detail), error_logger=error_logger), job2.id)

        assert result.progress_count == 0
        assert db.query(Lead).count() == 1
        assert db.query(JobResult).filter(JobResult.job_id == job2.id).count() == 0
        assert len(list_run_logs(db, job2.id, "dedupe_skip")) == 1

    def test_reinclusion_attaches_existing_lead(self, db, error_logger):
        detail = place_detail("p1", "Doe Law")
        run(CollectionStage(db, places=places_for(detail), error_logger=error_logger), make_job(db).id)

        job2 = make_job(db, toggles={"crawl_websites": False, "allow_reinclude": True})
        result = run(CollectionStage(db, places=places_for(detail), error_logger=error_logger), job2.id)

        assert result.progress_count == 1
        assert db.query(Lead).count() == 1
        assert db.query(JobResult).filter(JobResult.job_id == job2.id).count() == 1
        assert list_run_logs(db, job2.id, "dedupe_skip") == []

    def test_failed_details_lookup_skips_candidate(self, db, error_logger):
        job = make_job(db)
        places = FakePlaces(results=[{"place_id": "p1"}, {"place_id": "gone"}],
                            details={"p1": place_detail("p1", "Doe Law")})

        result = run(CollectionStage(db, places=places, error_logger=error_logger), job.id)

        assert places.detail_calls == ["p1", "gone"]
        assert result.progress_count == 1
        batch = list_run_logs(db, job.id, "collect_batch")[0]
        assert batch["new"] == 1
        assert batch["duplicate"] == 0


@pytest.mark.integration
class TestCursorAndCompletion:
    def test_cursor_walks_keywords_then_segments(self, db, error_logger):
        job = make_job(db)
        places = FakePlaces()
        stage = CollectionStage(db, places=places, error_logger=error_logger)

        first = run(stage, job.id)
        db.refresh(job)
        assert first.done is False
        assert (job.current_segment_offset, job.current_keyword_offset) == (0, 1)
        assert job.status == JobStatus.RUNNING.value
        assert job.started_at is not None

        second = run(stage, job.id)
        db.refresh(job)
        assert (job.current_segment_offset, job.current_keyword_offset) == (1, 0)
        assert second.done is True
        assert second.reason == "segments_exhausted"
        assert job.status == JobStatus.COMPLETED.value
        assert job.searches_executed == 2

        assert places.queries == [
            "estate planning attorney in Durham, NC",
            "probate lawyer in Durham, NC",
        ]

    def test_target_reached_stops_mid_batch(self, db, error_logger):
        job = make_job(db, target_firm_count=1)
        places = places_for(
            place_detail("p1", "Doe Law", address="1 Main St"),
            place_detail("p2", "Smith Law", address="2 Main St"),
        )
        stage = CollectionStage(db, places=places, error_logger=error_logger)

        result = run(stage, job.id)

        assert result.done is True
        assert result.reason == "target_reached"
        assert result.progress_count == 1
        assert result.target == 1
        assert places.detail_calls == ["p1"]

    def test_completed_job_is_a_no_op(self, db, error_logger):
        job = make_job(db, target_firm_count=1)
        places = places_for(place_detail("p1", "Doe Law"))
        stage = CollectionStage(db, places=places, error_logger=error_logger)
        run(stage, job.id)

        again = run(stage, job.id)
        db.refresh(job)

        assert again.done is True
        assert again.reason == "job_completed"
        assert len(places.queries) == 1
        assert job.searches_executed == 1
        assert len(list_run_logs(db, job.id, "collect_batch")) == 1

    def test_max_searches_completes_before_segments_exhausted(self, db, error_logger):
        """
        max_searches is an extra stop condition on top of target reached and
        segments exhausted: one allowed search ends the job with two zips unsearched.
        """
        job = make_job(
            db,
            geo_mode="zip_sweep",
            geo_params={"zip_list": ["27701", "27705", "27707"]},
            max_searches=1,
        )
        result = run(CollectionStage(db, places=FakePlaces(), error_logger=error_logger), job.id)
        assert result.done is True
        assert result.reason == "max_searches_reached"


@pytest.mark.integration
class TestCrawl:
    def crawl_result(self) -> CrawlResult:
        return CrawlResult(
            contact_form_url="https://doefirm.com/contact",
            emails=["bboss@doefirm.com", "info@doefirm.com"],
            contacts=[
                {"full_name": "Ann Office", "title": "Office Manager", "source_url": "https://doefirm.com/team"},
                {"full_name": "Bob Boss", "title": "Managing Partner", "source_url": "https://doefirm.com/team"},
                {"full_name": "Cy Who", "title": "Unknown", "source_url": "https://doefirm.com/team"},
            ],
            signals=[{
                "signal_type": "practice_focus",
                "signal_value": "Mentions estate planning, probate, or trusts",
                "evidence_url": "https://doefirm.com",
            }],
        )

    def test_contacts_primary_and_signals(self, db, error_logger):
        job = make_job(db, toggles={"crawl_websites": True, "evidence_capture": True})
        crawler = FakeCrawler(self.crawl_result())
        places = places_for(place_detail("p1", "Doe Law", website="https://doefirm.com"))

        run(CollectionStage(db, places=places, crawler=crawler, error_logger=error_logger), job.id)

        assert crawler.calls == ["https://doefirm.com"]
        lead = db.query(Lead).one()
        assert lead.contact_form_url == "https://doefirm.com/contact"
        assert lead.emails_found == ["bboss@doefirm.com", "info@doefirm.com"]

        result = db.query(JobResult).one()
        assert result.primary_contact.full_name == "Bob Boss"
        assert result.primary_contact.email == "bboss@doefirm.com"
        assert result.primary_contact.email_status == "unverified"
        assert result.primary_contact.email_source == "found_on_site"

        ann = db.query(Contact).filter(Contact.full_name == "Ann Office").one()
        assert ann.email is None
        assert ann.email_status == "none"

        assert db.query(Contact).count() == 3
        assert db.query(Signal).count() == 1

    def test_evidence_capture_off_writes_no_signals(self, db, error_logger):
        job = make_job(db, toggles={"crawl_websites": True, "evidence_capture": False})
        places = places_for(place_detail("p1", "Doe Law", website="https://doefirm.com"))

        run(CollectionStage(db, places=places, crawler=FakeCrawler(self.crawl_result()),
                            error_logger=error_logger), job.id)

        assert db.query(Contact).count() == 3
        assert db.query(Signal).count() == 0

    def test_no_crawl_without_toggle(self, db, error_logger):
        job = make_job(db)
        crawler = FakeCrawler(self.crawl_result())
        places = places_for(place_detail("p1", "Doe Law", website="https://doefirm.com"))

        run(CollectionStage(db, places=places, crawler=crawler, error_logger=error_logger), job.id)

        assert crawler.calls == []
        assert db.query(JobResult).one().primary_contact_id is None

    def test_malformed_website_does_not_stall_collection(self, db, error_logger):
        requests = []

        def handler(request):
            requests.append(str(request.url))
            return httpx.Response(200, text="<html></html>")

        async def crawler(website, deep=False):
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await crawl_website(website, deep=deep, client=client)

        job = make_job(db, toggles={"crawl_websites": True})
        places = places_for(place_detail("p1", "Bad Host Law", website="https://[bad-host/"))
        stage = CollectionStage(db, places=places, crawler=crawler, error_logger=error_logger)

        first = run(stage, job.id)
        db.refresh(job)

        assert first.progress_count == 1
        assert requests == []
        assert db.query(Lead).one().website == "https://[bad-host/"
        assert (job.current_segment_offset, job.current_keyword_offset) == (0, 1)
        assert job.searches_executed == 1

        run(stage, job.id)
        assert places.queries == [
            "estate planning attorney in Durham, NC",
            "probate lawyer in Durham, NC",
        ]


@pytest.mark.integration
class TestGuards:
    def test_missing_job_id(self, db, error_logger):
        with pytest.raises(CallerError):
            run(CollectionStage(db, places=FakePlaces(), error_logger=error_logger), None)

    def test_unknown_job(self, db, error_logger):
        with pytest.raises(JobNotFoundError):
            run(CollectionStage(db, places=FakePlaces(), error_logger=error_logger), "nope")

    def test_missing_places_key(self, db, error_logger, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_PLACES_API_KEY", "")
        job = make_job(db)
        places = FakePlaces(api_key="")

        with pytest.raises(ConfigurationError):
            run(CollectionStage(db, places=places, error_logger=error_logger), job.id)
        assert places.queries == []

    def test_canceled_job(self, db, error_logger):
        job = make_job(db)
        cancel_job(db, job)
        places = FakePlaces()

        result = run(CollectionStage(db, places=places, error_logger=error_logger), job.id)

        assert result.done is True
        assert result.reason == "job_canceled"
        assert places.queries == []

    def test_busy_lease(self, db, error_logger):
        job = make_job(db)
        db.add(StageLease(job_id=job.id, stage="collection", token="other",
                          expires_at=datetime.utcnow() + timedelta(minutes=5)))
        db.commit()
        places = FakePlaces()

        result = run(CollectionStage(db, places=places, error_logger=error_logger), job.id)

        assert result.done is False
        assert result.reason == "batch_in_progress"
        assert places.queries == []
        db.refresh(job)
        assert job.searches_executed == 0

    def test_expired_lease_is_taken_over(self, db, error_logger):
        job = make_job(db)
        db.add(StageLease(job_id=job.id, stage="collection", token="crashed",
                          expires_at=datetime.utcnow() - timedelta(minutes=1)))
        db.commit()
        places = FakePlaces()

        run(CollectionStage(db, places=places, error_logger=error_logger), job.id)

        assert len(places.queries) == 1
        assert db.query(StageLease).count() == 0

    def test_search_failure_is_logged_and_raised(self, db):
        class FailingPlaces(FakePlaces):
            async def search(self, query):
                raise UpstreamError("Google text search failed: 500", provider="google_places", status=500)

        job = make_job(db)
        error_logger = ErrorLogger(client=FakeRedis())

        with pytest.raises(UpstreamError):
            run(CollectionStage(db, places=FailingPlaces(), error_logger=error_logger), job.id)

        errors = error_logger.get_errors_for_job(job.id)
        assert len(errors) == 1
        assert errors[0]["stage"] == "collection"
        assert errors[0]["provider"] == "google_places"
        assert db.query(StageLease).count() == 0
        db.refresh(job)
        assert job.searches_executed == 0
