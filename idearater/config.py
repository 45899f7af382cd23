# Configuration settings shared across the application

import os
from typing import Optional

from pydantic import BaseModel

# Idea text limits
MAX_IDEA_LENGTH = 180

# Rating notes
MAX_RAW_NOTE_LENGTH = 140  # longer AI notes are replaced by the default
MAX_NOTE_LENGTH = 90
MAX_STORED_NOTE_LENGTH = 160

# Rating service
DEFAULT_AI_API_URL = "https://api.deepseek.com/chat/completions"
DEFAULT_AI_MODEL = "deepseek-chat"
AI_TIMEOUT_SECONDS = 12
AI_TEMPERATURE = 0

# Listing and re-rating
LIST_LIMIT = 100
RERATE_DEFAULT_LIMIT = 20
RERATE_MIN_LIMIT = 1
RERATE_MAX_LIMIT = 50

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]

DEFAULT_NOTES_BY_RATING = {
    "Dumb": "dumb - bold, chaotic, and financially allergic",
    "Meh": "meh - cute concept, but the profit math is missing",
    "Kinda Good": "Some potential, but it needs a clearer path to real profit",
    "Really Good": "Strong, realistic, and clearly profit-oriented",
}

# Placeholder notes written by earlier deployments. Rows carrying one of these
# exact strings are shown with the current default instead.
LEGACY_DEFAULT_NOTES = frozenset({
    "Bold, chaotic, and financially allergic.",
    "Cute concept, but the profit math is missing.",
    "Some potential, but it needs a clearer path to real profit.",
    "Strong, realistic, and clearly profit-oriented.",
})


class Settings(BaseModel):
    """Server-side configuration read from the environment."""

    model_config = {"frozen": True}

    database_url: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_model: str = DEFAULT_AI_MODEL
    ai_api_url: str = DEFAULT_AI_API_URL
    admin_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or os.getenv("NEON_DATABASE_URL") or None,
            ai_api_key=os.getenv("DEEPSEEK_API_KEY") or None,
            ai_model=os.getenv("DEEPSEEK_MODEL") or DEFAULT_AI_MODEL,
            ai_api_url=os.getenv("DEEPSEEK_API_URL") or DEFAULT_AI_API_URL,
            admin_token=os.getenv("RERATE_ADMIN_TOKEN") or os.getenv("ADMIN_TOKEN") or None,
        )
