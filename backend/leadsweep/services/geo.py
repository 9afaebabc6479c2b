"""
Geo/keyword segmentation.

A plan expands into an ordered list of geographic segments; the job cursor
walks (keyword x segment) pairs, keywords first, then segments.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from leadsweep.schemas.plan import ParsedPlan


DEFAULT_CENTER = "Durham, NC"
DEFAULT_STATE = "NC"

# Cities swept in "state" mode, largest first
MAJOR_CITIES: Dict[str, List[str]] = {
    "NC": ["Charlotte", "Raleigh", "Greensboro", "Durham", "Winston-Salem", "Fayetteville", "Cary", "Wilmington"],
    "SC": ["Charleston", "Columbia", "North Charleston", "Mount Pleasant", "Rock Hill", "Greenville"],
    "VA": ["Virginia Beach", "Chesapeake", "Norfolk", "Arlington", "Richmond", "Newport News", "Alexandria"],
    "GA": ["Atlanta", "Columbus", "Augusta", "Macon", "Savannah", "Athens"],
    "TN": ["Nashville", "Memphis", "Knoxville", "Chattanooga", "Clarksville", "Murfreesboro"],
    "FL": ["Jacksonville", "Miami", "Tampa", "Orlando", "St. Petersburg", "Tallahassee"],
    "TX": ["Houston", "San Antonio", "Dallas", "Austin", "Fort Worth", "El Paso"],
    "CA": ["Los Angeles", "San Diego", "San Jose", "San Francisco", "Fresno", "Sacramento"],
    "NY": ["New York", "Buffalo", "Rochester", "Yonkers", "Syracuse", "Albany"],
}


@dataclass(frozen=True)
class GeoSegment:
    label: str
    location_text: str


def _clean_zips(zip_list: List[str]) -> List[str]:
    seen = set()
    out = []
    for raw in zip_list:
        z = (raw or "").strip()
        if z and z not in seen:
            seen.add(z)
            out.append(z)
    return out


def build_geo_segments(plan: ParsedPlan) -> List[GeoSegment]:
    params = plan.geo_params

    if plan.geo_mode == "radius":
        center = params.center_city_state or DEFAULT_CENTER
        return [GeoSegment(label=f"radius:{center}", location_text=center)]

    if plan.geo_mode == "zip_sweep":
        return [GeoSegment(label=f"zip:{z}", location_text=z) for z in _clean_zips(params.zip_list)]

    # state mode
    if params.city_cluster_strategy == "zip_clusters" and params.zip_list:
        return [GeoSegment(label=f"zip:{z}", location_text=z) for z in _clean_zips(params.zip_list)]

    state = (params.state_code or DEFAULT_STATE).strip().upper()
    cities = MAJOR_CITIES.get(state, [])
    if not cities:
        # Unknown state: sweep the state as a whole
        return [GeoSegment(label=f"state:{state}", location_text=state)]
    return [GeoSegment(label=f"city:{c}, {state}", location_text=f"{c}, {state}") for c in cities]


def build_query(keyword: str, segment: GeoSegment) -> str:
    return f"{keyword} in {segment.location_text}"


def resolve_cursor(
    plan: ParsedPlan,
    segments: List[GeoSegment],
    segment_offset: int,
    keyword_offset: int,
) -> Optional[Tuple[str, GeoSegment]]:
    """Current (keyword, segment) pair, or None once every segment has been swept."""
    if segment_offset >= len(segments) or not plan.keywords:
        return None
    keyword = plan.keywords[keyword_offset % len(plan.keywords)]
    return keyword, segments[segment_offset]
