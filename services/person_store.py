"""Read-only person/appearance store loaded from the persons snapshot"""

import json
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError

from models.data_models import Person, PersonsSnapshot


# Known categories for notable persons (exact, case-insensitive name match)
CATEGORIES = {
    "Primary": ["Jeffrey Epstein", "Ghislaine Maxwell", "Jean-Luc Brunel", "Sarah Kellen", "Nadia Marcinkova"],
    "Political": ["Bill Clinton", "Donald Trump", "Prince Andrew", "Ehud Barak", "Larry Summers", "Tony Blair",
                  "George Mitchell", "Bill Richardson", "Andrés Pastrana Arango", "Aníbal Acevedo Vilá"],
    "Business": ["Bill Gates", "Elon Musk", "Richard Branson", "Les Wexner", "Leon Black", "Mort Zuckerman",
                 "Frank Lowy", "Brian Krzanich", "David Portnoy", "Henry Jarecki", "John Brockman"],
    "Entertainment": ["Kevin Spacey", "Chris Tucker", "Naomi Campbell", "Michael Jackson", "Woody Allen",
                      "Mick Jagger", "David Copperfield", "Diana Ross", "Brett Ratner", "David Schwimmer",
                      "Frances McDormand", "Anthony Bourdain"],
    "Science": ["Stephen Hawking", "Albert Einstein", "Marvin Minsky", "Freeman Dyson", "Gerald Edelman",
                "Benoit Mandelbrot", "Fritz Haber", "Dean Kamen"],
    "Legal": ["Alan Dershowitz", "Ken Starr"],
    "Royalty": ["Prince Andrew", "Anne", "Gayatri Devi"],
}

DEFAULT_CATEGORY = "Other"

CATEGORY_ORDER = ["Primary", "Political", "Royalty", "Business", "Entertainment", "Science", "Legal", "Other"]


class StoreUnavailableError(RuntimeError):
    """Persons snapshot could not be loaded"""


def categorize(name: str) -> str:
    """Category of a person name; the first matching category wins."""
    lowered = name.lower()
    for category, names in CATEGORIES.items():
        if any(lowered == n.lower() for n in names):
            return category
    return DEFAULT_CATEGORY


def generate_person_id(name: str) -> str:
    """Stable id derived from the display name ("Bill Gates" -> "bill-gates")."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def clean_document_path(file_path: str, prefix: str = "") -> str:
    """Strip the upstream local prefix and the .pdf extension."""
    cleaned = file_path.replace(prefix, "", 1) if prefix else file_path
    if cleaned.lower().endswith(".pdf"):
        cleaned = cleaned[:-4]
    return cleaned


def category_rank(category: str) -> int:
    if category in CATEGORY_ORDER:
        return CATEGORY_ORDER.index(category)
    return len(CATEGORY_ORDER)


def order_categories(categories: Iterable[str]) -> List[str]:
    """Distinct categories in display order; unknown labels go last, alphabetically."""
    return sorted(set(categories), key=lambda c: (category_rank(c), c))


class PersonStore:
    """Immutable in-memory table of persons keyed by id"""

    def __init__(self, persons: Iterable[Person], last_updated: Optional[str] = None):
        self._persons = tuple(persons)
        self._by_id: Dict[str, Person] = {}
        for person in self._persons:
            if person.id in self._by_id:
                logger.warning(f"Duplicate person id '{person.id}' in snapshot, keeping the first one")
                continue
            self._by_id[person.id] = person
        self._categories = tuple(order_categories(p.category for p in self._persons))
        self.last_updated = last_updated

    @classmethod
    def from_snapshot(cls, snapshot: PersonsSnapshot) -> "PersonStore":
        return cls(snapshot.persons, last_updated=snapshot.last_updated)

    @classmethod
    def from_dict(cls, data: dict) -> "PersonStore":
        """
        Build a store from the snapshot dict.

        Raises:
            StoreUnavailableError: if the payload does not match the snapshot format
        """
        try:
            snapshot = PersonsSnapshot.model_validate(data)
        except ValidationError as e:
            raise StoreUnavailableError(f"Invalid persons snapshot: {e}") from e
        return cls.from_snapshot(snapshot)

    @classmethod
    def load(cls, path: str) -> "PersonStore":
        """
        Load the persons snapshot from a JSON file.

        Args:
            path: path to persons.json

        Raises:
            StoreUnavailableError: if the file is missing, unreadable or malformed
        """
        snapshot_path = Path(path)
        try:
            data = json.loads(snapshot_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Could not load persons data from {snapshot_path}: {e}") from e

        store = cls.from_dict(data)
        logger.info(f"Loaded {len(store)} persons from {snapshot_path}")
        return store

    def __len__(self) -> int:
        return len(self._persons)

    def get_person(self, person_id: str) -> Optional[Person]:
        """Get person by id, None if unknown."""
        return self._by_id.get(person_id)

    def list_persons(self) -> List[Person]:
        """All persons in snapshot order."""
        return list(self._persons)

    def list_categories(self) -> List[str]:
        """Distinct categories in display order."""
        return list(self._categories)

    def search_persons(self, search: Optional[str] = None, category: Optional[str] = None) -> List[Person]:
        """Filter persons by case-insensitive name substring and exact category."""
        persons = self._persons
        if search:
            needle = search.lower()
            persons = [p for p in persons if needle in p.name.lower()]
        if category:
            persons = [p for p in persons if p.category == category]
        return list(persons)

    def to_snapshot(self, persons: Optional[List[Person]] = None) -> dict:
        """Serialize persons in the snapshot wire format."""
        persons = self.list_persons() if persons is None else persons
        return {
            "lastUpdated": self.last_updated,
            "totalPersons": len(persons),
            "categories": self.list_categories(),
            "persons": [p.model_dump(mode="json", by_alias=True) for p in persons],
        }
