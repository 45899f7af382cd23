from __future__ import annotations

import re
from typing import Any, List, Optional, Pattern

from idearater.config import LEGACY_DEFAULT_NOTES, MAX_NOTE_LENGTH
from idearater.models import Rating, RatingResult
from idearater.text import collapse_whitespace

# Order matters: the free-text scan returns the first label found.
RATING_SCAN_ORDER = [Rating.DUMB, Rating.MEH, Rating.KINDA_GOOD, Rating.REALLY_GOOD]

_DIRECT_LABELS = {
    "dumb": Rating.DUMB,
    "meh": Rating.MEH,
    "kinda good": Rating.KINDA_GOOD,
    "kinda-good": Rating.KINDA_GOOD,
    "really good": Rating.REALLY_GOOD,
    "really-good": Rating.REALLY_GOOD,
}

_LABEL_PATTERNS = [
    (rating, re.compile(r"\b" + rating.value.replace(" ", r"\s+") + r"\b", re.IGNORECASE))
    for rating in RATING_SCAN_ORDER
]

REVENUE_PATTERNS = [
    r"\bsubscri(be|bers?|ptions?)\b",
    r"\bfees?\b",
    r"\bmemberships?\b",
    r"\b(ads|advertis\w*)\b",
    r"\bsponsor\w*\b",
    r"\bcommissions?\b",
    r"\bmarketplaces?\b",
    r"\b(sell|sells|selling|sales)\b",
    r"\b(price|prices|priced|pricing)\b",
    r"\b(payments?|paid|pay-per-\w+)\b",
    r"\bb2b\b",
    r"\benterprises?\b",
    r"\bsaas\b",
    r"\blicens\w*\b",
]

CHARITY_PATTERNS = [
    r"\bcharit(y|ies|able)\b",
    r"\bdonat(e|es|ed|ing|ions?)\b",
    r"\bfree\s+food\b",
    r"\bfeed(s|ing)?\s+(the\s+)?homeless\b",
    r"\bnon-?profits?\b",
    r"\b(give|gives|giving)\s+away\b",
]

CHARITY_NOTE = "meh - heart is good, business model is missing"
UNCLEAR_REVENUE_NOTE = "Promising, but the path to revenue is still unclear"


def _compile_any(patterns: List[str]) -> Pattern[str]:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


_REVENUE_RE = _compile_any(REVENUE_PATTERNS)
_CHARITY_RE = _compile_any(CHARITY_PATTERNS)


def canonicalize_rating(value: Any) -> Optional[Rating]:
    """Map an exact label, in any casing or hyphenation, to a Rating."""
    if not isinstance(value, str):
        return None
    return _DIRECT_LABELS.get(value.strip().lower())


def extract_rating_from_text(text: Any) -> Optional[Rating]:
    """Find a rating label anywhere in free text.

    Tries an exact match first, then looks for each label as a whole phrase,
    in order from Dumb to Really Good.
    """
    if not isinstance(text, str):
        return None

    direct = canonicalize_rating(text)
    if direct:
        return direct

    for rating, pattern in _LABEL_PATTERNS:
        if pattern.search(text):
            return rating
    return None


def _clean_note(value: str) -> str:
    return collapse_whitespace(value).rstrip(". ")


def normalize_note(candidate: Any, rating: Rating) -> str:
    """
    Clean and shorten a rating note.

    Missing or blank notes fall back to the rating's default. Dumb and Meh
    notes always start with their lower-case label, e.g. "dumb - bad timing".
    """
    if not isinstance(candidate, str):
        return rating.default_note

    note = _clean_note(candidate)
    if not note:
        return rating.default_note

    note = note[:MAX_NOTE_LENGTH].rstrip()

    if not rating.needs_prefix:
        return note

    prefix = rating.note_prefix
    if note.lower().startswith(prefix):
        return prefix + note[len(prefix):]
    return prefix + note.lower()


def is_legacy_default_note(note: Any) -> bool:
    return isinstance(note, str) and note in LEGACY_DEFAULT_NOTES


def display_note(stored: Any, rating: Rating) -> str:
    """Note to show for a stored row; blank and legacy placeholder notes show the current default."""
    if not isinstance(stored, str) or not stored.strip() or is_legacy_default_note(stored):
        return rating.default_note
    return stored


def lacks_clear_revenue(idea_text: str) -> bool:
    return not _REVENUE_RE.search(idea_text or "")


def is_charity_like(idea_text: str) -> bool:
    return bool(_CHARITY_RE.search(idea_text or ""))


def apply_profitability_guardrail(idea_text: str, result: RatingResult) -> RatingResult:
    """
    Second-guess optimistic ratings for ideas with no visible way to make money.

    Charity-style ideas without a revenue model are pinned to Meh. Otherwise a
    Really Good idea without a revenue model is demoted to Kinda Good.
    """
    no_revenue = lacks_clear_revenue(idea_text)

    if no_revenue and is_charity_like(idea_text):
        return RatingResult(rating=Rating.MEH, note=CHARITY_NOTE)

    if no_revenue and result.rating is Rating.REALLY_GOOD:
        return RatingResult(rating=Rating.KINDA_GOOD, note=UNCLEAR_REVENUE_NOTE)

    return result
