import re
from typing import Any

from idearater.config import MAX_IDEA_LENGTH
from idearater.errors import ValidationError

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def normalize_idea_text(value: Any) -> str:
    """Collapse whitespace runs and trim. Anything that isn't a string becomes ''."""
    if not isinstance(value, str):
        return ""
    return collapse_whitespace(value)


def validate_idea_text(value: Any) -> str:
    """Normalize submitted idea text and reject empty or oversized ideas."""
    idea = normalize_idea_text(value)
    if not idea:
        raise ValidationError("Idea is required.")
    if len(idea) > MAX_IDEA_LENGTH:
        raise ValidationError(f"Idea must be {MAX_IDEA_LENGTH} characters or less.")
    return idea
