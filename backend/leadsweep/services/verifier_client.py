from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from leadsweep.core.config import settings
from leadsweep.core.errors import ConfigurationError, UpstreamError


PROVIDER = "anymailsearch"

KNOWN_STATUSES = {"valid", "invalid", "unknown", "catch_all", "risky"}

# Provider spellings folded onto our email_status values
STATUS_ALIASES = {
    "catchall": "catch_all",
    "catch-all": "catch_all",
    "accept_all": "catch_all",
    "deliverable": "valid",
    "undeliverable": "invalid",
}


@dataclass
class VerificationResult:
    email: str
    status: str
    confidence: Optional[float] = None
    provider_response: Dict[str, Any] = field(default_factory=dict)


def normalize_status(raw: Any) -> str:
    status = str(raw or "unknown").strip().lower()
    status = STATUS_ALIASES.get(status, status)
    return status if status in KNOWN_STATUSES else "unknown"


class AnymailVerifierClient:
    provider = PROVIDER

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key or settings.ANYMAIL_SEARCH_API_KEY
        self.base_url = settings.ANYMAIL_BASE_URL.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    def assert_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("ANYMAIL_SEARCH_API_KEY is required for verification.")

    async def verify_email(self, email: str) -> VerificationResult:
        """
        Verify a single email address.

        Non-2xx responses and unreadable bodies raise UpstreamError; the
        verification batch does not catch it.
        """
        self.assert_configured()
        try:
            response = await self.client.post(
                f"{self.base_url}/verify",
                json={"email": email},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Anymail verification failed: {e.response.status_code}",
                provider=PROVIDER,
                status=e.response.status_code,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Anymail verification failed: {e}", provider=PROVIDER)

        confidence = data.get("confidence")
        return VerificationResult(
            email=email,
            status=normalize_status(data.get("status")),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
            provider_response=data if isinstance(data, dict) else {"raw": data},
        )

    async def close(self):
        await self.client.aclose()
