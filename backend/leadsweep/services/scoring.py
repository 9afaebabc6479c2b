"""
Contact and company scoring used by the enrichment stage.

The stage only talks to the ContactScorer / SegmentScorer interfaces, so a
provider-backed scorer can replace the title/keyword heuristics below
without touching batch logic.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class SegmentFlag:
    value: bool
    confidence: float
    evidence: Optional[str]


@dataclass
class SegmentResult:
    in_business_20_plus: SegmentFlag
    multi_location_medical_practice: SegmentFlag


class ContactScorer(ABC):
    @abstractmethod
    def score(self, title: Optional[str]) -> float:
        """Confidence (0..1) that a contact with this title is a decision maker."""


class SegmentScorer(ABC):
    @abstractmethod
    def segment(
        self,
        name: Optional[str],
        website: Optional[str],
        address: Optional[str],
        city: Optional[str],
        state: Optional[str],
    ) -> SegmentResult:
        ...


class TitleContactScorer(ContactScorer):
    def score(self, title: Optional[str]) -> float:
        t = (title or "").lower()
        if re.search(r"managing partner|founder|owner|principal", t):
            return 0.92
        if "partner" in t:
            return 0.86
        if "attorney" in t:
            return 0.80
        if re.search(r"manager|coordinator", t):
            return 0.65
        return 0.55


MEDICAL_RE = re.compile(r"(clinic|medical|health|pediatrics|dental|urgent care|orthopedic|wellness)")
MULTI_LOCATION_RE = re.compile(r"(locations|our offices|find a location|suite\s+\d+)")


class KeywordSegmentScorer(SegmentScorer):
    """
    Keyword heuristics over the lead's name, website and address.

    Firm age is not observable from these fields, so in_business_20_plus is
    always a low-confidence False.
    """

    def segment(self, name, website, address, city, state) -> SegmentResult:
        text = " ".join(p for p in (name, website, address, city, state) if p).lower()
        medical = bool(MEDICAL_RE.search(text))
        multi_location = bool(MULTI_LOCATION_RE.search(text))

        if medical and multi_location:
            confidence = 0.68
        elif medical:
            confidence = 0.52
        else:
            confidence = 0.28

        return SegmentResult(
            in_business_20_plus=SegmentFlag(value=False, confidence=0.42, evidence=website),
            multi_location_medical_practice=SegmentFlag(
                value=medical and multi_location,
                confidence=confidence,
                evidence=website,
            ),
        )
