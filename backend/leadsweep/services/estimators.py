"""
Cost estimators.

Pure functions: unit costs come from settings, counts from the caller.
The batch processors use the per-item figures for their early-stop checks.
"""
from datetime import datetime

from leadsweep.core.config import settings
from leadsweep.schemas.estimate import (
    AdsLibraryEstimate,
    EnrichmentEstimate,
    PlacesCostEstimate,
    VerificationEstimate,
)


ENRICHMENT_MODES = ("budget", "deep")


def _round6(n: float) -> float:
    return round(n, 6)


def normalize_enrichment_mode(mode: str) -> str:
    return "deep" if mode == "deep" else "budget"


def estimate_places_cost(textsearch_calls: int, details_calls: int) -> PlacesCostEstimate:
    cost = (
        textsearch_calls * settings.GOOGLE_TEXTSEARCH_UNIT_COST_USD
        + details_calls * settings.GOOGLE_DETAILS_UNIT_COST_USD
    )
    return PlacesCostEstimate(
        textsearch_calls=textsearch_calls,
        details_calls=details_calls,
        total_calls=textsearch_calls + details_calls,
        estimated_api_cost_usd=_round6(cost),
    )


def estimate_verification_cost(count_to_verify: int) -> VerificationEstimate:
    count = max(0, count_to_verify)
    estimated = count * settings.ANYMAIL_UNIT_COST_USD * settings.VERIFICATION_COST_BUFFER_MULTIPLIER
    return VerificationEstimate(
        count_to_verify=count,
        unit_cost=settings.ANYMAIL_UNIT_COST_USD,
        buffer_multiplier=settings.VERIFICATION_COST_BUFFER_MULTIPLIER,
        estimated_cost=round(estimated, 2),
        generated_at=datetime.utcnow(),
    )


def estimate_enrichment_cost(company_count: int, leads_per_company: int, mode: str) -> EnrichmentEstimate:
    """
    credits/company = leads x credits-per-lead (+ deep-profile credits in deep mode),
    converted to USD at the credit price.
    """
    mode = normalize_enrichment_mode(mode)
    companies = max(0, company_count)
    leads = max(1, min(10, leads_per_company))

    credits_per_lead = settings.AI_ARK_LEAD_ENRICHMENT_CREDITS
    company_base_credits = settings.AI_ARK_DEEP_PROFILE_CREDITS if mode == "deep" else 0
    credits_per_company = leads * credits_per_lead + company_base_credits
    total_credits = companies * credits_per_company
    total_cost = total_credits * settings.AI_ARK_CREDIT_COST_USD
    expected_leads = companies * leads
    per_lead_cost = total_cost / expected_leads if expected_leads > 0 else 0

    return EnrichmentEstimate(
        mode=mode,
        company_count=companies,
        leads_per_company=leads,
        expected_leads=expected_leads,
        credit_cost_usd=_round6(settings.AI_ARK_CREDIT_COST_USD),
        credits_per_lead=_round6(credits_per_lead),
        credits_per_company=_round6(credits_per_company),
        estimated_credits_total=_round6(total_credits),
        estimated_cost_total_usd=_round6(total_cost),
        estimated_cost_per_lead_usd=_round6(per_lead_cost),
        generated_at=datetime.utcnow(),
    )


def estimate_ads_library_cost(company_count: int) -> AdsLibraryEstimate:
    companies = max(0, company_count)
    estimated = companies * settings.ADS_LIBRARY_UNIT_COST_USD * settings.ADS_LIBRARY_COST_BUFFER_MULTIPLIER
    return AdsLibraryEstimate(
        company_count=companies,
        unit_cost_usd=_round6(settings.ADS_LIBRARY_UNIT_COST_USD),
        buffer_multiplier=round(settings.ADS_LIBRARY_COST_BUFFER_MULTIPLIER, 3),
        estimated_cost_total_usd=_round6(estimated),
        generated_at=datetime.utcnow(),
    )


def ads_scan_unit_cost() -> float:
    """Per-lead charge used by the ads-scan stage: unit cost x buffer."""
    return _round6(settings.ADS_LIBRARY_UNIT_COST_USD * settings.ADS_LIBRARY_COST_BUFFER_MULTIPLIER)
