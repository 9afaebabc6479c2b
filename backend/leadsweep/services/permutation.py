from typing import List, Optional
import unicodedata
import re


# Tried in this order after the stored address; the first "valid" result wins
CANDIDATE_PATTERNS = [
    "firstname.lastname",  # {first}.{last}
    "firstnamelastname",   # {first}{last}
    "f.lastname",          # {f}.{last}
    "firstname",           # {first}
]

MAX_CANDIDATES = 6


def clean_first_name(first_name: str) -> str:
    """
    Clean first name by removing trailing initials (e.g., "n.", "m.").

    Examples:
        "Chelsey n." -> "Chelsey"
        "Mary-Anne" -> "Mary-Anne" (unchanged)
    """
    if not first_name:
        return first_name

    cleaned = first_name.strip()

    # Remove trailing pattern: space + single letter + optional period
    cleaned = re.sub(r'\s+[a-zA-Z]\.?\s*$', '', cleaned)

    return cleaned.strip()


def normalize_name(name: str) -> str:
    """Remove accents, punctuation and spaces; lowercase ASCII."""
    name = unicodedata.normalize('NFKD', name)
    name = name.encode('ASCII', 'ignore').decode('ASCII')
    return re.sub(r"[^a-z0-9]", "", name.lower())


def normalize_domain(website: str) -> str:
    """Extract clean domain from website URL."""
    domain = website.lower().strip()
    domain = domain.replace('http://', '').replace('https://', '')
    if domain.startswith('www.'):
        domain = domain[4:]
    domain = domain.split('/')[0].split('?')[0].split('#')[0]
    return domain.split(':')[0]


def _render(pattern: str, first: str, last: str, domain: str) -> str:
    f = first[0]
    local = {
        "firstname.lastname": f"{first}.{last}",
        "firstnamelastname": f"{first}{last}",
        "f.lastname": f"{f}.{last}",
        "firstname": first,
    }[pattern]
    return f"{local}@{domain}"


def build_email_candidates(
    first_name: Optional[str],
    last_name: Optional[str],
    website: Optional[str],
) -> List[str]:
    """
    Heuristic addresses for a contact at the firm's website domain.

    Returns nothing unless first name, last name and a domain are all known.
    """
    if not first_name or not last_name or not website:
        return []

    first = normalize_name(clean_first_name(first_name))
    last = normalize_name(last_name)
    domain = normalize_domain(website)
    if not first or not last or not domain or '.' not in domain:
        return []

    return [_render(p, first, last, domain) for p in CANDIDATE_PATTERNS][:MAX_CANDIDATES]


def candidate_emails(
    stored_email: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    website: Optional[str],
    generate: bool,
) -> List[str]:
    """Stored address first, then generated patterns; de-duplicated, capped."""
    out: List[str] = []
    if stored_email and stored_email.strip():
        out.append(stored_email.strip().lower())
    if generate:
        for email in build_email_candidates(first_name, last_name, website):
            if email not in out:
                out.append(email)
    return out[:MAX_CANDIDATES]
