from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from idearater.config import DEFAULT_NOTES_BY_RATING


class Rating(str, Enum):
    """
    The four labels an idea can be rated with, from worst to best.
    """
    DUMB = "Dumb"
    MEH = "Meh"
    KINDA_GOOD = "Kinda Good"
    REALLY_GOOD = "Really Good"

    @property
    def default_note(self) -> str:
        return DEFAULT_NOTES_BY_RATING[self.value]

    @property
    def slug(self) -> str:
        if self is Rating.DUMB:
            return "dumb"
        elif self is Rating.MEH:
            return "meh"
        elif self is Rating.KINDA_GOOD:
            return "kinda-good"
        elif self is Rating.REALLY_GOOD:
            return "really-good"
        raise AssertionError(f"Unhandled rating: {self!r}")

    @property
    def needs_prefix(self) -> bool:
        """Low ratings carry their label as a lower-case note prefix."""
        return self in (Rating.DUMB, Rating.MEH)

    @property
    def note_prefix(self) -> str:
        return f"{self.value.lower()} - " if self.needs_prefix else ""

    @property
    def css_class(self) -> str:
        return f"rating-{self.slug}"

    @property
    def item_css_class(self) -> str:
        return f"item-{self.slug}"


class RatingResult(BaseModel):
    rating: Rating
    note: str


class IdeaRecord(BaseModel):
    """
    A persisted idea with its current rating.
    """
    id: int
    idea_text: str
    rating: Rating
    rating_note: str = ""
    created_at: datetime
