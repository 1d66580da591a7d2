"""Page matching and ranking for a set of selected persons"""

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from models.data_models import Appearance, MatchedPage, PageAggregate, PageKey, Person
from services.person_store import PersonStore


# Tier 1: match count dominates everything
MATCH_WEIGHT = 10000

# Tier 2: page quality
FIRST_PAGE_BONUS = 100
DEEP_PAGE_THRESHOLD = 20
DEEP_PAGE_PENALTY = 50
LATE_PAGE_THRESHOLD = 10
LATE_PAGE_PENALTY = 20
TOP_CONFIDENCE = 99.9
TOP_CONFIDENCE_BONUS = 30
HIGH_CONFIDENCE = 99.0
HIGH_CONFIDENCE_BONUS = 15

# Tier 3: grid / catalog pages
GRID_PENALTY = 200
GRID_SINGLE_PERSON_DETECTIONS = 3
GRID_MULTI_PERSON_DETECTIONS = 2

# Tier 4: crowded pages
CROWDED_PAGE_LIMIT = 6
CROWDED_PAGE_PENALTY = 20

REPRESENTATIVE_POLICIES = ("max_confidence", "first_seen")


class InvalidRequestError(ValueError):
    """Page search called without a usable list of person ids"""


def build_image_url(base_url: str, document_id: str, page_number: int) -> str:
    """Image location of a document page: {base}/{document}/page-NNN.jpg"""
    return f"{base_url.rstrip('/')}/{document_id}/page-{page_number:03d}.jpg"


def is_grid_layout(counts_by_person: Dict[str, int]) -> bool:
    """
    Detect contact-sheet / catalog pages.

    A single person detected 3+ times, or two or more persons each detected
    2+ times on the same page.
    """
    if not counts_by_person:
        return False
    if len(counts_by_person) == 1:
        return max(counts_by_person.values()) >= GRID_SINGLE_PERSON_DETECTIONS
    repeated = [c for c in counts_by_person.values() if c >= GRID_MULTI_PERSON_DETECTIONS]
    return len(repeated) >= 2


def score_page(aggregate: PageAggregate, representative: Appearance) -> Tuple[int, bool]:
    """Score a page aggregate. Returns (score, is_grid_layout)."""
    score = aggregate.match_count ** 3 * MATCH_WEIGHT

    if representative.page_number == 1:
        score += FIRST_PAGE_BONUS

    if representative.page_number >= DEEP_PAGE_THRESHOLD:
        score -= DEEP_PAGE_PENALTY
    elif representative.page_number >= LATE_PAGE_THRESHOLD:
        score -= LATE_PAGE_PENALTY

    if representative.confidence > TOP_CONFIDENCE:
        score += TOP_CONFIDENCE_BONUS
    elif representative.confidence > HIGH_CONFIDENCE:
        score += HIGH_CONFIDENCE_BONUS

    grid = is_grid_layout(aggregate.counts_by_person())
    if grid:
        score -= GRID_PENALTY

    total = len(aggregate.appearances)
    if total > CROWDED_PAGE_LIMIT:
        score -= (total - CROWDED_PAGE_LIMIT) * CROWDED_PAGE_PENALTY

    return score, grid


class PageMatcher:
    """Finds and ranks document pages mentioning the most selected persons"""

    def __init__(
        self,
        store: PersonStore,
        image_base_url: str,
        representative: str = "max_confidence"
    ):
        """
        Args:
            store: loaded person/appearance store
            image_base_url: base of page image URLs
            representative: which appearance at a page drives tier-2 scoring,
                "max_confidence" (highest confidence, first seen on ties)
                or "first_seen" (first appearance accumulated for the page)
        """
        if representative not in REPRESENTATIVE_POLICIES:
            raise ValueError(f"Unknown representative policy: {representative}")
        self.store = store
        self.image_base_url = image_base_url
        self.representative = representative

    def resolve_persons(self, person_ids: Sequence[str]) -> List[Person]:
        """
        Requested persons in request order.

        Unknown ids, repeated ids and persons without appearances are dropped.
        """
        persons = []
        seen = set()
        for person_id in person_ids:
            if person_id in seen:
                continue
            seen.add(person_id)
            person = self.store.get_person(person_id)
            if person is not None and person.appearances:
                persons.append(person)
        return persons

    @staticmethod
    def group_by_page(persons: Sequence[Person]) -> Dict[PageKey, PageAggregate]:
        """Group appearances by (document, page) in discovery order."""
        pages: Dict[PageKey, PageAggregate] = {}
        for person in persons:
            for appearance in person.appearances:
                key = PageKey(appearance.document_id, appearance.page_number)
                aggregate = pages.get(key)
                if aggregate is None:
                    aggregate = pages[key] = PageAggregate()
                aggregate.add(person.name, appearance)
        return pages

    def pick_representative(self, aggregate: PageAggregate) -> Appearance:
        first = aggregate.appearances[0][1]
        if self.representative == "first_seen":
            return first
        best = first
        for _, appearance in aggregate.appearances[1:]:
            if appearance.confidence > best.confidence:
                best = appearance
        return best

    def find_matching_pages(self, person_ids: Optional[Sequence[str]]) -> List[MatchedPage]:
        """
        Rank every page mentioning at least one of the requested persons.

        Pages are sorted by score descending; ties keep discovery order
        (request order of persons, then each person's appearance order).

        Args:
            person_ids: requested person ids (at least one)

        Returns:
            All matching pages, best first. Empty if nobody resolves.

        Raises:
            InvalidRequestError: if person_ids is missing, empty or not a list of strings
        """
        if person_ids is None or isinstance(person_ids, (str, bytes)):
            raise InvalidRequestError("person_ids required")
        person_ids = list(person_ids)
        if not person_ids:
            raise InvalidRequestError("person_ids required")
        if not all(isinstance(pid, str) for pid in person_ids):
            raise InvalidRequestError("person_ids must be strings")

        persons = self.resolve_persons(person_ids)
        if not persons:
            logger.info(f"No persons with appearances among {len(person_ids)} requested ids")
            return []

        scored = []
        for key, aggregate in self.group_by_page(persons).items():
            representative = self.pick_representative(aggregate)
            score, grid = score_page(aggregate, representative)
            scored.append(MatchedPage(
                image_url=build_image_url(self.image_base_url, key.document_id, key.page_number),
                matched_persons=list(aggregate.person_names),
                match_count=aggregate.match_count,
                confidence=representative.confidence,
                score=score,
                is_grid_layout=grid,
                document_id=key.document_id,
                page_number=key.page_number,
            ))

        # list.sort is stable: equal scores stay in discovery order
        scored.sort(key=lambda page: page.score, reverse=True)

        breakdown = Counter(page.match_count for page in scored)
        logger.info(
            f"Returning {len(scored)} pages for {len(persons)}/{len(person_ids)} persons, "
            f"by match count: {dict(sorted(breakdown.items(), reverse=True))}"
        )
        return scored
