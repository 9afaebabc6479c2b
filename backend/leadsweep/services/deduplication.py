import hashlib
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from leadsweep.models.lead import Lead


# Most senior first. Anything not listed ranks after all of these.
TITLE_PRIORITY = [
    "Managing Partner",
    "Founder",
    "Owner",
    "Principal",
    "Partner",
    "Attorney",
    "Practice Manager",
    "Office Manager",
    "Intake Coordinator",
]

_TITLE_INDEX = {t.lower(): i for i, t in enumerate(TITLE_PRIORITY)}
UNRANKED = len(TITLE_PRIORITY)


def build_fallback_firm_hash(name: Optional[str], address: Optional[str], phone: Optional[str]) -> str:
    """
    Identity hash for a firm when the directory place id is missing or unreliable.

    sha256 over lower-cased, trimmed name|address|phone. Two candidates that
    normalize to the same triple are treated as the same lead.
    """
    norm = "|".join((v or "").strip().lower() for v in (name, address, phone))
    return hashlib.sha256(norm.encode("utf-8")).hexdigest()


def _field(contact: Any, key: str) -> Any:
    if isinstance(contact, dict):
        return contact.get(key)
    return getattr(contact, key, None)


def title_rank(title: Optional[str]) -> int:
    if not title:
        return UNRANKED
    return _TITLE_INDEX.get(title.strip().lower(), UNRANKED)


def choose_primary_contact(contacts: Sequence[Any]) -> Optional[Any]:
    """
    Pick the most senior contact by title.

    Ties keep discovery order (sorted() is stable). Works on ORM rows and dicts.
    """
    if not contacts:
        return None
    ranked = sorted(contacts, key=lambda c: title_rank(_field(c, "title")))
    return ranked[0]


def deduplicate_contacts(contacts: List[Dict]) -> List[Dict]:
    """
    Collapse crawled contacts to one entry per person (case-insensitive name).

    The first sighting keeps its position; a later sighting of the same
    person with a more senior title upgrades the title.
    """
    by_name: Dict[str, Dict] = {}
    order: List[str] = []

    for contact in contacts:
        full_name = (contact.get("full_name") or "").strip()
        if not full_name:
            continue
        key = " ".join(full_name.lower().split())
        if key not in by_name:
            by_name[key] = dict(contact, full_name=full_name)
            order.append(key)
        elif title_rank(contact.get("title")) < title_rank(by_name[key].get("title")):
            by_name[key]["title"] = contact.get("title")

    return [by_name[k] for k in order]


def find_existing_lead(db: Session, google_place_id: Optional[str], firm_hash: str) -> Optional[Lead]:
    """Existing lead matching the place id OR the fallback identity hash."""
    conditions = [Lead.fallback_firm_hash == firm_hash]
    if google_place_id:
        conditions.append(Lead.google_place_id == google_place_id)
    return db.query(Lead).filter(or_(*conditions)).order_by(Lead.created_at).first()
