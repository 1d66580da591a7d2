"""Data models for the card generator service"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, NamedTuple
from pydantic import BaseModel, ConfigDict, Field


# ==================== Person / Appearance ====================


class Appearance(BaseModel):
    """One detection of a person on a document page"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    document_id: str = Field(alias="file")
    page_number: int = Field(alias="page", ge=1)
    confidence: float


class Person(BaseModel):
    """A selectable person with appearances sorted by descending confidence"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = "Other"
    image: Optional[str] = None
    appearances: Tuple[Appearance, ...] = ()


class PersonsSnapshot(BaseModel):
    """Persons snapshot file as written by scripts/update_persons.py"""
    model_config = ConfigDict(populate_by_name=True)

    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    source: Optional[str] = None
    source_processed_at: Optional[str] = Field(None, alias="sourceProcessedAt")
    total_persons: Optional[int] = Field(None, alias="totalPersons")
    categories: List[str] = []
    persons: List[Person] = []


# ==================== Page matching ====================


class PageKey(NamedTuple):
    """Composite key of a document page"""
    document_id: str
    page_number: int


@dataclass
class PageAggregate:
    """All appearances of the requested persons on one page"""
    person_names: List[str] = field(default_factory=list)
    appearances: List[Tuple[str, Appearance]] = field(default_factory=list)

    def add(self, person_name: str, appearance: Appearance) -> None:
        if person_name not in self.person_names:
            self.person_names.append(person_name)
        self.appearances.append((person_name, appearance))

    @property
    def match_count(self) -> int:
        return len(self.person_names)

    def counts_by_person(self) -> dict:
        counts = {}
        for person_name, _ in self.appearances:
            counts[person_name] = counts.get(person_name, 0) + 1
        return counts


class MatchedPage(BaseModel):
    """A ranked page that mentions at least one requested person"""
    image_url: str
    matched_persons: List[str]
    match_count: int
    confidence: float
    score: int
    is_grid_layout: bool
    document_id: str
    page_number: int


class FindPagesRequest(BaseModel):
    """Request for the page search"""
    person_ids: Optional[List[str]] = None


class FindPagesResponse(BaseModel):
    """Ranked pages plus diagnostics ("matched 2 of 3 requested")"""
    pages: List[MatchedPage]
    total_pages: int
    total_requested: int
    best_match_count: int = 0


# ==================== Cards ====================


class GenerateCardRequest(BaseModel):
    """Request for a new card draft"""
    person_ids: List[str]
    person_names: List[str]
    style: Optional[str] = None


class CardDraft(BaseModel):
    """Card metadata before it is saved to the gallery"""
    id: str
    person_ids: List[str]
    person_names: List[str]
    style: str
    prompt: str
    created_at: datetime


class GreetingRequest(BaseModel):
    """Request for a greeting text"""
    person_names: List[str]
    style: Optional[str] = None


class GreetingResponse(BaseModel):
    greeting: str
    source: str  # "gemini" or "fallback"


class RenderCardRequest(BaseModel):
    """Request to composite a card on top of a matched page"""
    document_id: str
    page_number: int = Field(ge=1)
    style: Optional[str] = None
    greeting: str = ""
    person_names: List[str] = []


class SaveCardRequest(BaseModel):
    """Request to save a finished card"""
    id: str
    image_data: str  # base64 PNG or data URL
    person_ids: List[str] = []
    person_names: List[str] = []
    style: Optional[str] = None
    prompt: Optional[str] = None
    greeting: Optional[str] = None


class CardMetadata(BaseModel):
    """Saved card metadata (JSON half of a gallery entry)"""
    id: str
    person_ids: List[str] = []
    person_names: List[str] = []
    style: Optional[str] = None
    prompt: Optional[str] = None
    greeting: Optional[str] = None
    image_path: str
    created_at: datetime
