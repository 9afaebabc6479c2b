"""
Ads library lookup.

Two providers, picked by ADS_LIBRARY_PROVIDER:
- dataforseo: advertiser search by company name, then (when the matched
  advertiser exposes a domain) an ads search over the period window for
  that domain.
- custom_http: a single POST to ADS_LIBRARY_API_URL that returns the
  observation fields directly.

Every non-2xx answer raises UpstreamError. The ads-scan batch lets it
propagate.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import httpx

from leadsweep.core.config import settings
from leadsweep.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

DATAFORSEO = "dataforseo"
CUSTOM_HTTP = "custom_http"
PROVIDERS = (DATAFORSEO, CUSTOM_HTTP)

MAX_PERIOD_DAYS = 365


@dataclass
class AdsLookupResult:
    provider: str
    advertiser_name: str
    ads_count_active: int
    ads_count_in_period: int
    first_seen_at: Optional[str]
    last_seen_at: Optional[str]
    evidence_url: Optional[str]
    period_start: date
    period_end: date
    raw: Dict[str, Any] = field(default_factory=dict)


def clamp_period_days(period_days: int) -> int:
    return max(1, min(MAX_PERIOD_DAYS, int(period_days or 0)))


def period_window(period_days: int, today: Optional[date] = None) -> Tuple[date, date]:
    """[today - days, today], UTC calendar dates."""
    end = today or datetime.utcnow().date()
    return end - timedelta(days=clamp_period_days(period_days)), end


def looks_like_company_match(company_name: str, candidate: str) -> bool:
    a = re.sub(r"[^a-z0-9]+", " ", (company_name or "").lower()).strip()
    b = re.sub(r"[^a-z0-9]+", " ", (candidate or "").lower()).strip()
    if not a or not b:
        return False
    return a in b or b in a


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    if isinstance(value, str):
        try:
            return max(0, int(float(value)))
        except ValueError:
            return 0
    return 0


def _first(item: Dict, *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _date_prefix(value: Any) -> Optional[str]:
    if isinstance(value, str) and len(value) >= 10:
        return value[:10]
    return None


def _first_result(payload: Dict) -> Dict:
    tasks = payload.get("tasks") or []
    task = tasks[0] if tasks and isinstance(tasks[0], dict) else {}
    results = task.get("result") or []
    return results[0] if results and isinstance(results[0], dict) else {}


def _items(result: Dict) -> List[Dict]:
    return [i for i in (result.get("items") or []) if isinstance(i, dict)]


def resolve_provider(provider: Optional[str] = None) -> str:
    """Return the configured provider, or raise ConfigurationError."""
    name = (provider if provider is not None else settings.ADS_LIBRARY_PROVIDER or "").strip().lower()
    if name == DATAFORSEO:
        if not settings.DATAFORSEO_LOGIN or not settings.DATAFORSEO_PASSWORD:
            raise ConfigurationError(
                "DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD are required when ADS_LIBRARY_PROVIDER=dataforseo"
            )
        return name
    if name == CUSTOM_HTTP:
        if not settings.ADS_LIBRARY_API_URL:
            raise ConfigurationError("ADS_LIBRARY_API_URL is required when ADS_LIBRARY_PROVIDER=custom_http")
        return name
    raise ConfigurationError(
        "Ads Library provider is not configured. Use ADS_LIBRARY_PROVIDER=dataforseo or custom_http"
    )


class AdsLibraryClient:
    def __init__(self, provider: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.provider = resolve_provider(provider)
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def _post(self, url: str, body: Any, headers: Dict[str, str], auth=None) -> Dict:
        try:
            response = await self.client.post(url, json=body, headers=headers, auth=auth)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Ads provider request failed: {e}", provider=self.provider)

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {"raw_text": response.text}
        if not isinstance(payload, dict):
            payload = {"raw": payload}

        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload.get("error"), str) else None
            raise UpstreamError(
                message or f"Ads provider failed ({response.status_code})",
                provider=self.provider,
                status=response.status_code,
            )
        return payload

    async def lookup(
        self,
        company_name: str,
        website: Optional[str],
        city: Optional[str],
        state: Optional[str],
        period_days: int,
        window: Optional[Tuple[date, date]] = None,
    ) -> AdsLookupResult:
        period_start, period_end = window or period_window(period_days)
        if self.provider == DATAFORSEO:
            return await self._lookup_dataforseo(company_name, city, state, period_start, period_end)
        return await self._lookup_custom(
            company_name, website, city, state, clamp_period_days(period_days), period_start, period_end
        )

    async def _lookup_dataforseo(
        self,
        company_name: str,
        city: Optional[str],
        state: Optional[str],
        period_start: date,
        period_end: date,
    ) -> AdsLookupResult:
        base_url = settings.DATAFORSEO_BASE_URL.rstrip("/")
        auth = httpx.BasicAuth(settings.DATAFORSEO_LOGIN, settings.DATAFORSEO_PASSWORD)
        location_code = settings.DATAFORSEO_LOCATION_CODE or 2840
        location_name = ", ".join(p for p in (city, state, "United States") if p)

        payload = await self._post(
            f"{base_url}/serp/google/ads_advertisers/live/advanced",
            [{
                "keyword": company_name,
                "location_name": location_name,
                "location_code": location_code,
                "language_name": "English",
                "depth": 100,
            }],
            headers={"Content-Type": "application/json"},
            auth=auth,
        )

        items = _items(_first_result(payload))
        preferred = next(
            (
                item for item in items
                if looks_like_company_match(
                    company_name,
                    str(_first(item, "advertiser_name", "advertiser", "domain", "title") or ""),
                )
            ),
            items[0] if items else {},
        )

        advertiser_name = str(_first(preferred, "advertiser_name", "advertiser", "domain") or company_name)
        ads_in_period = _to_int(_first(
            preferred, "ads_count", "approx_ads_count", "ads_count_in_period", "ad_count", "results_count",
        ))
        ads_active = _to_int(_first(preferred, "ads_count_active", "active_ads", "live_ads"))
        if _first(preferred, "ads_count_active", "active_ads", "live_ads") is None:
            ads_active = ads_in_period
        first_seen = _date_prefix(_first(preferred, "first_seen_at", "first_shown", "date_from"))
        last_seen = _date_prefix(_first(preferred, "last_seen_at", "last_shown", "date_to"))
        evidence_url = _first(preferred, "url", "source_url")
        if not isinstance(evidence_url, str):
            evidence_url = None

        domain = preferred.get("domain")
        if isinstance(domain, str) and domain:
            try:
                search_payload = await self._post(
                    f"{base_url}/serp/google/ads_search/live/advanced",
                    [{
                        "location_code": location_code,
                        "language_name": "English",
                        "target": domain,
                        "platform": "all",
                        "format": "all",
                        "date_from": period_start.isoformat(),
                        "date_to": period_end.isoformat(),
                        "depth": 100,
                    }],
                    headers={"Content-Type": "application/json"},
                    auth=auth,
                )
            except UpstreamError as e:
                # The advertiser answer already stands on its own
                logger.warning(f"Ads search for {domain} failed, keeping advertiser counts: {e.message}")
                search_payload = None

            if search_payload is not None:
                result = _first_result(search_payload)
                ad_items = _items(result)
                count = max(_to_int(result.get("items_count")), _to_int(result.get("results_count")), len(ad_items))
                if count > 0:
                    ads_in_period = count

                dates = sorted(
                    d
                    for item in ad_items
                    for d in (
                        _date_prefix(_first(item, "first_seen_at", "first_shown", "date_from")),
                        _date_prefix(_first(item, "last_seen_at", "last_shown", "date_to")),
                    )
                    if d
                )
                if dates:
                    first_seen, last_seen = dates[0], dates[-1]
                payload["ads_search"] = search_payload

        return AdsLookupResult(
            provider=DATAFORSEO,
            advertiser_name=advertiser_name,
            ads_count_active=ads_active,
            ads_count_in_period=ads_in_period,
            first_seen_at=first_seen,
            last_seen_at=last_seen,
            evidence_url=evidence_url,
            period_start=period_start,
            period_end=period_end,
            raw=payload,
        )

    async def _lookup_custom(
        self,
        company_name: str,
        website: Optional[str],
        city: Optional[str],
        state: Optional[str],
        period_days: int,
        period_start: date,
        period_end: date,
    ) -> AdsLookupResult:
        headers = {"Content-Type": "application/json"}
        if settings.ADS_LIBRARY_API_KEY:
            headers["Authorization"] = f"Bearer {settings.ADS_LIBRARY_API_KEY}"

        payload = await self._post(
            settings.ADS_LIBRARY_API_URL,
            {
                "company_name": company_name,
                "website": website,
                "city": city,
                "state": state,
                "period_days": period_days,
            },
            headers=headers,
        )

        def _str(key: str) -> Optional[str]:
            value = payload.get(key)
            return value if isinstance(value, str) else None

        return AdsLookupResult(
            provider=CUSTOM_HTTP,
            advertiser_name=str(payload.get("advertiser_name") or company_name),
            ads_count_active=_to_int(payload.get("ads_count_active")),
            ads_count_in_period=_to_int(payload.get("ads_count_in_period")),
            first_seen_at=_date_prefix(_str("first_seen_at")),
            last_seen_at=_date_prefix(_str("last_seen_at")),
            evidence_url=_str("evidence_url"),
            period_start=period_start,
            period_end=period_end,
            raw=payload,
        )

    async def close(self):
        await self.client.aclose()
