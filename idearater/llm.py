from abc import ABC
import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from idearater.config import (
    AI_TEMPERATURE,
    AI_TIMEOUT_SECONDS,
    DEFAULT_AI_API_URL,
    DEFAULT_AI_MODEL,
    MAX_RAW_NOTE_LENGTH,
)
from idearater.errors import ExternalServiceError, InvalidRatingError
from idearater.models import Rating, RatingResult
from idearater.prompts.rating import SYSTEM_PROMPT, build_rating_prompt
from idearater.ratings import (
    apply_profitability_guardrail,
    canonicalize_rating,
    extract_rating_from_text,
    normalize_note,
)

logger = logging.getLogger(__name__)


class LLMWrapper(ABC):
    """Base class for chat-completion calls"""

    def __init__(self,
                 api_key: str,
                 model_name: str = DEFAULT_AI_MODEL,
                 api_url: str = DEFAULT_AI_API_URL,
                 temperature: float = AI_TEMPERATURE,
                 timeout: float = AI_TIMEOUT_SECONDS,
                 agent_name: str = ""):
        self.api_key = api_key
        self.model_name = model_name
        self.api_url = api_url
        self.temperature = temperature
        self.timeout = timeout
        self.agent_name = agent_name
        self.total_token_count = 0

    def _build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "temperature": self.temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
        }

    def generate_text(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat-completion request and return the message content.

        There is no retry: a timeout or error status raises ExternalServiceError.
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            response = requests.post(
                self.api_url,
                headers=headers,
                json=self._build_payload(system_prompt, user_prompt),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise ExternalServiceError(f"Rating service timed out after {self.timeout}s.") from e
        except requests.RequestException as e:
            raise ExternalServiceError(f"Rating service request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            if not isinstance(message, str) or not message:
                message = "Rating service request failed."
            raise ExternalServiceError(message)

        usage = data.get("usage")
        if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
            self.total_token_count += usage["total_tokens"]
            logger.debug(f"Total tokens {self.agent_name}: {self.total_token_count}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""


class IdeaRater(LLMWrapper):
    """Rates business ideas into one of the four Rating labels"""
    agent_name = "IdeaRater"

    def __init__(self, **kwargs):
        super().__init__(agent_name=self.agent_name, **kwargs)

    @classmethod
    def from_settings(cls, settings) -> "IdeaRater":
        return cls(
            api_key=settings.ai_api_key,
            model_name=settings.ai_model,
            api_url=settings.ai_api_url,
        )

    @staticmethod
    def parse_response(content: str) -> Tuple[Optional[Rating], Optional[str]]:
        """Read (rating, note) from a JSON answer, falling back to a free-text scan for the rating."""
        rating = None
        note = None

        if isinstance(content, str) and content.strip().startswith("{"):
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError as e:
                logger.debug(f"Rating response was not valid JSON: {e}")
                parsed = None
            if isinstance(parsed, dict):
                rating = canonicalize_rating(parsed.get("rating"))
                raw_note = parsed.get("note")
                note = raw_note.strip() if isinstance(raw_note, str) else None

        if rating is None:
            rating = extract_rating_from_text(content)
            if rating is not None:
                logger.debug(f"Rating {rating.value!r} recovered from free text")

        return rating, note

    def rate(self, idea_text: str) -> RatingResult:
        content = self.generate_text(SYSTEM_PROMPT, build_rating_prompt(idea_text))
        rating, note = self.parse_response(content)

        if rating is None:
            raise InvalidRatingError(f"Rating service returned an invalid rating: {content[:200]!r}")

        if note is not None and len(note) > MAX_RAW_NOTE_LENGTH:
            note = None

        result = RatingResult(rating=rating, note=normalize_note(note, rating))
        guarded = apply_profitability_guardrail(idea_text, result)
        if guarded != result:
            logger.info(f"Guardrail changed rating {result.rating.value!r} -> {guarded.rating.value!r}")
        return guarded
