"""
Firm website crawler.

Fetches the home page and a fixed list of likely contact/team pages,
serially, and pulls out emails, phone numbers, the contact form URL,
named contacts with a recognised title, and practice-focus signals.
A page that fails to load is skipped; the crawl itself never raises.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from leadsweep.core.config import settings
from leadsweep.services.deduplication import TITLE_PRIORITY

logger = logging.getLogger(__name__)

CANDIDATE_PATHS = ["/contact", "/about", "/team", "/attorneys", "/our-team"]
DEEP_PATHS = ["/blog", "/news"]

EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
PHONE_RE = re.compile(r"(\+?1?[\s.-]?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4})")
NAME_RE = re.compile(r"\b([A-Z][a-z]+\s+[A-Z][a-z]+)\b")
PRACTICE_FOCUS_RE = re.compile(r"estate planning|probate|trust", re.I)

# Asset filenames like logo@2x.png look like emails to the regex
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")


@dataclass
class CrawlResult:
    contact_form_url: Optional[str] = None
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    contacts: List[Dict] = field(default_factory=list)  # {full_name, title, source_url}
    signals: List[Dict] = field(default_factory=list)  # {signal_type, signal_value, evidence_url}


def page_urls(website: str, deep: bool = False) -> List[str]:
    paths = CANDIDATE_PATHS + (DEEP_PATHS if deep else [])
    return [website] + [urljoin(website, path) for path in paths]


def extract_emails(html: str) -> List[str]:
    out: List[str] = []
    for match in EMAIL_RE.findall(html):
        email = match.lower()
        if email.endswith(IMAGE_SUFFIXES) or email in out:
            continue
        out.append(email)
    return out


def extract_contact_form(soup: BeautifulSoup, page_url: str) -> Optional[str]:
    form = soup.find("form", action=True)
    if form is None:
        return None
    action = (form.get("action") or "").strip()
    if not action:
        return None
    try:
        return urljoin(page_url, action)
    except ValueError:
        return None


def parse_contacts(text: str, source_url: Optional[str] = None) -> List[Dict]:
    """A "Firstname Lastname" on a line that also names a known title."""
    contacts = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        name = NAME_RE.search(line)
        if not name:
            continue
        lowered = line.lower()
        title = next((t for t in TITLE_PRIORITY if t.lower() in lowered), None)
        if title:
            contacts.append({"full_name": name.group(1), "title": title, "source_url": source_url})
    return contacts


def parse_page(html: str, page_url: str, result: CrawlResult) -> None:
    soup = BeautifulSoup(html, "html.parser")
    text = soup.get_text("\n")

    for email in extract_emails(html):
        if email not in result.emails:
            result.emails.append(email)

    for phone in PHONE_RE.findall(text):
        phone = phone.strip()
        if phone not in result.phones:
            result.phones.append(phone)

    if result.contact_form_url is None:
        result.contact_form_url = extract_contact_form(soup, page_url)

    result.contacts.extend(parse_contacts(text, page_url))

    if PRACTICE_FOCUS_RE.search(text):
        result.signals.append({
            "signal_type": "practice_focus",
            "signal_value": "Mentions estate planning, probate, or trusts",
            "evidence_url": page_url,
        })


async def crawl_website(
    website: str,
    deep: bool = False,
    client: Optional[httpx.AsyncClient] = None,
) -> CrawlResult:
    result = CrawlResult()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            timeout=settings.CRAWLER_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"User-Agent": settings.CRAWLER_USER_AGENT},
        )

    try:
        try:
            urls = page_urls(website, deep)
        except ValueError as e:
            logger.debug(f"Not crawling {website!r}: {e}")
            urls = []

        for url in urls:
            try:
                response = await client.get(url)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                logger.debug(f"Skipping {url}: {e}")
                continue
            if not response.is_success:
                logger.debug(f"Skipping {url}: HTTP {response.status_code}")
                continue
            parse_page(response.text, url, result)
    finally:
        if owns_client:
            await client.aclose()

    return result


def split_full_name(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    parts = (full_name or "").split()
    if not parts:
        return None, None
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[-1]


def match_email_to_contact(emails: List[str], first_name: Optional[str], last_name: Optional[str]) -> Optional[str]:
    """First discovered address whose local part mentions the contact's last or first name."""
    first = (first_name or "").lower()
    last = (last_name or "").lower()
    for email in emails:
        local = email.split("@", 1)[0].lower()
        if last and last in local:
            return email
    for email in emails:
        local = email.split("@", 1)[0].lower()
        if first and len(first) > 2 and first in local:
            return email
    return None
