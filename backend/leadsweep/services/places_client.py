import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from leadsweep.core.config import settings
from leadsweep.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

PROVIDER = "google_places"

DETAIL_FIELDS = ",".join([
    "place_id",
    "name",
    "formatted_address",
    "website",
    "formatted_phone_number",
    "url",
    "address_component",
])


@dataclass
class LeadCandidate:
    name: str
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip: Optional[str]
    phone: Optional[str]
    website: Optional[str]
    google_place_id: Optional[str]
    google_maps_url: Optional[str]
    source_query: str
    source_geo_label: str


def assert_places_configured(api_key: Optional[str] = None) -> None:
    if not (api_key or settings.GOOGLE_PLACES_API_KEY):
        raise ConfigurationError(
            "Google Places API key is required. Set GOOGLE_PLACES_API_KEY before running collection."
        )


def _address_part(components: Optional[List[Dict]], kind: str) -> Optional[str]:
    for part in components or []:
        if kind in (part.get("types") or []):
            return part.get("short_name") or part.get("long_name")
    return None


def to_lead_candidate(detail: Dict, source_query: str, geo_label: str) -> LeadCandidate:
    components = detail.get("address_components")
    return LeadCandidate(
        name=detail.get("name") or "",
        address=detail.get("formatted_address"),
        city=_address_part(components, "locality"),
        state=_address_part(components, "administrative_area_level_1"),
        zip=_address_part(components, "postal_code"),
        phone=detail.get("formatted_phone_number"),
        website=detail.get("website"),
        google_place_id=detail.get("place_id"),
        google_maps_url=detail.get("url"),
        source_query=source_query,
        source_geo_label=geo_label,
    )


class PlacesClient:
    """Google Places text search + details."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key or settings.GOOGLE_PLACES_API_KEY
        self.base_url = settings.GOOGLE_PLACES_BASE_URL.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def search(self, query: str) -> List[Dict]:
        """Text search. Any failure here aborts the collection batch."""
        assert_places_configured(self.api_key)
        try:
            response = await self.client.get(
                f"{self.base_url}/textsearch/json",
                params={"query": query, "key": self.api_key},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Google text search failed: {e.response.status_code}",
                provider=PROVIDER,
                status=e.response.status_code,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Google text search failed: {e}", provider=PROVIDER)

        return body.get("results") or []

    async def get_details(self, place_id: str) -> Optional[Dict]:
        """Place details, or None when the lookup fails (the candidate is skipped)."""
        assert_places_configured(self.api_key)
        try:
            response = await self.client.get(
                f"{self.base_url}/details/json",
                params={"place_id": place_id, "fields": DETAIL_FIELDS, "key": self.api_key},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Place details failed for {place_id}: {e}")
            return None

        return body.get("result")

    async def close(self):
        await self.client.aclose()
