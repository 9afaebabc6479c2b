import os

# Settings are read at import time; set them before anything imports leadsweep
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["GOOGLE_PLACES_API_KEY"] = "test-places-key"
os.environ["ANYMAIL_SEARCH_API_KEY"] = "test-anymail-key"
os.environ["ADS_LIBRARY_PROVIDER"] = "custom_http"
os.environ["ADS_LIBRARY_API_URL"] = "http://ads.test/lookup"

import itertools
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import leadsweep.models  # noqa: F401
from leadsweep.core.errors import UpstreamError
from leadsweep.db.base import Base
from leadsweep.models.contact import Contact, EmailStatus
from leadsweep.models.job import Job
from leadsweep.models.job_result import JobResult
from leadsweep.models.lead import Lead
from leadsweep.services.ads_library_client import AdsLookupResult, period_window
from leadsweep.services.crawler import CrawlResult
from leadsweep.services.deduplication import build_fallback_firm_hash
from leadsweep.services.error_logger import ErrorLogger
from leadsweep.services.verifier_client import VerificationResult


# ============================================
# DATABASE
# ============================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def default_plan(**overrides) -> Dict:
    plan = {
        "business_type": "estate planning law firm",
        "keywords": ["estate planning attorney", "probate lawyer"],
        "geo_mode": "radius",
        "geo_params": {"center_city_state": "Durham, NC", "radius_miles": 25},
        "target_firm_count": 50,
        "max_searches": 100,
        "toggles": {"crawl_websites": False, "allow_reinclude": False},
    }
    plan.update(overrides)
    return plan


def make_job(db, **plan_overrides) -> Job:
    plan = default_plan(**plan_overrides)
    job = Job(
        user_prompt="estate planning firms near Durham",
        plan=plan,
        target_firm_count=plan["target_firm_count"],
        max_searches=plan["max_searches"],
        allow_reinclude=plan["toggles"].get("allow_reinclude", False),
    )
    db.add(job)
    db.commit()
    return job


_seed_clock = itertools.count()


def seed_lead(
    db,
    job: Job,
    name: str,
    website: Optional[str] = "https://www.doefirm.com",
    contacts: Optional[List[Dict]] = None,
    primary_index: Optional[int] = 0,
) -> Lead:
    """
    A lead attached to the job, with contacts and a chosen primary contact.

    Result rows get strictly increasing created_at values so stages see
    leads in seeding order.
    """
    created_at = datetime(2026, 1, 1) + timedelta(seconds=next(_seed_clock))
    lead = Lead(
        name=name,
        address=f"{name} Street, Durham, NC",
        phone="(919) 555-0100",
        website=website,
        city="Durham",
        state="NC",
        fallback_firm_hash=build_fallback_firm_hash(name, f"{name} Street, Durham, NC", "(919) 555-0100"),
    )
    db.add(lead)
    db.flush()

    rows = []
    for entry in contacts or []:
        contact = Contact(
            lead_id=lead.id,
            full_name=entry["full_name"],
            first_name=entry["full_name"].split()[0],
            last_name=entry["full_name"].split()[-1],
            title=entry.get("title"),
            email=entry.get("email"),
            email_status=EmailStatus.UNVERIFIED.value if entry.get("email") else EmailStatus.NONE.value,
        )
        db.add(contact)
        rows.append(contact)
    db.flush()

    primary = rows[primary_index] if rows and primary_index is not None else None
    db.add(JobResult(
        job_id=job.id,
        lead_id=lead.id,
        primary_contact_id=primary.id if primary else None,
        created_at=created_at,
    ))
    db.commit()
    return lead


def attach_lead(db, job: Job, lead: Lead) -> JobResult:
    """Add an existing lead to another job's results."""
    row = JobResult(
        job_id=job.id,
        lead_id=lead.id,
        created_at=datetime(2026, 1, 1) + timedelta(seconds=next(_seed_clock)),
    )
    db.add(row)
    db.commit()
    return row


# ============================================
# FAKE PROVIDERS
# ============================================

def place_detail(place_id: str, name: str, address: str = "100 Main St, Durham, NC 27701",
                 phone: str = "(919) 555-0100", website: Optional[str] = None) -> Dict:
    return {
        "place_id": place_id,
        "name": name,
        "formatted_address": address,
        "formatted_phone_number": phone,
        "website": website,
        "url": f"https://maps.google.com/?cid={place_id}",
        "address_components": [
            {"long_name": "Durham", "short_name": "Durham", "types": ["locality"]},
            {"long_name": "North Carolina", "short_name": "NC", "types": ["administrative_area_level_1"]},
            {"long_name": "27701", "short_name": "27701", "types": ["postal_code"]},
        ],
    }


class FakePlaces:
    def __init__(self, results: Optional[List[Dict]] = None, details: Optional[Dict[str, Dict]] = None,
                 api_key: str = "test-places-key"):
        self.api_key = api_key
        self.results = results or []
        self.details = details or {}
        self.queries: List[str] = []
        self.detail_calls: List[str] = []
        self.closed = False

    async def search(self, query: str) -> List[Dict]:
        self.queries.append(query)
        return list(self.results)

    async def get_details(self, place_id: str) -> Optional[Dict]:
        self.detail_calls.append(place_id)
        return self.details.get(place_id)

    async def close(self):
        self.closed = True


class FakeCrawler:
    def __init__(self, result: Optional[CrawlResult] = None):
        self.result = result or CrawlResult()
        self.calls: List[str] = []

    async def __call__(self, website: str, deep: bool = False, client=None) -> CrawlResult:
        self.calls.append(website)
        return self.result


class FakeVerifier:
    provider = "anymailsearch"

    def __init__(self, statuses: Optional[Dict[str, str]] = None, default: str = "invalid",
                 fail_on: Optional[str] = None):
        self.statuses = statuses or {}
        self.default = default
        self.fail_on = fail_on
        self.calls: List[str] = []

    def assert_configured(self) -> None:
        return None

    async def verify_email(self, email: str) -> VerificationResult:
        if email == self.fail_on:
            raise UpstreamError("Anymail verification failed: 503", provider=self.provider, status=503)
        self.calls.append(email)
        status = self.statuses.get(email, self.default)
        return VerificationResult(email=email, status=status, confidence=0.9, provider_response={"status": status})

    async def close(self):
        pass


class FakeAdsClient:
    provider = "custom_http"

    def __init__(self, ads_in_period: int = 3):
        self.ads_in_period = ads_in_period
        self.calls: List[str] = []
        self.windows: List = []

    async def lookup(self, company_name, website, city, state, period_days, window=None) -> AdsLookupResult:
        self.calls.append(company_name)
        self.windows.append(window)
        start, end = window or period_window(period_days)
        return AdsLookupResult(
            provider=self.provider,
            advertiser_name=company_name,
            ads_count_active=1,
            ads_count_in_period=self.ads_in_period,
            first_seen_at=start.isoformat(),
            last_seen_at=end.isoformat(),
            evidence_url=None,
            period_start=start,
            period_end=end,
            raw={"ads_count_in_period": self.ads_in_period},
        )

    async def close(self):
        pass


class FakeRedis:
    """Just the list/hash commands the error logger uses."""

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.hashes: Dict[str, Dict[str, int]] = {}
        self.expiries: Dict[str, int] = {}

    def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value)

    def ltrim(self, key, start, end):
        self.lists[key] = self.lists.get(key, [])[start:end + 1]

    def expire(self, key, seconds):
        self.expiries[key] = seconds

    def hincrby(self, key, field, amount):
        bucket = self.hashes.setdefault(key, {})
        bucket[field] = bucket.get(field, 0) + amount

    def lrange(self, key, start, end):
        return self.lists.get(key, [])[start:end + 1]

    def hgetall(self, key):
        return {k: str(v) for k, v in self.hashes.get(key, {}).items()}


@pytest.fixture
def error_logger():
    return ErrorLogger(client=None)


@pytest.fixture
def fake_places():
    return FakePlaces()


@pytest.fixture
def fake_crawler():
    return FakeCrawler()


@pytest.fixture
def fake_verifier():
    return FakeVerifier()


@pytest.fixture
def fake_ads():
    return FakeAdsClient()


# ============================================
# HTTP
# ============================================

@pytest.fixture
def client(session_factory, fake_places, fake_crawler, fake_verifier, fake_ads, error_logger):
    from fastapi.testclient import TestClient

    from leadsweep.api import dependencies
    from leadsweep.db.session import get_db
    from leadsweep.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_places_client] = lambda: fake_places
    app.dependency_overrides[dependencies.get_crawler] = lambda: fake_crawler
    app.dependency_overrides[dependencies.get_verifier_client] = lambda: fake_verifier
    app.dependency_overrides[dependencies.get_ads_library_client] = lambda: fake_ads
    app.dependency_overrides[dependencies.get_batch_error_logger] = lambda: error_logger

    # Not used as a context manager: startup would create tables on the default engine
    yield TestClient(app)
    app.dependency_overrides.clear()
