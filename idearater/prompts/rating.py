"""
Prompt configuration for rating submitted business ideas
"""

RATING_LABELS = ["Dumb", "Meh", "Kinda Good", "Really Good"]

SYSTEM_PROMPT = """You are a strict startup evaluator. Rate each idea by realistic execution and profitability potential."""

RATING_PROMPT = """Idea: {idea_text}

Respond with JSON exactly like {{"rating":"<one label>","note":"<short verdict>"}} where rating is exactly one of: {labels}.
The note must be short, direct, and explain realism/profitability.
If rating is Dumb or Meh, make the note witty but not mean, max 12 words."""


def build_rating_prompt(idea_text: str) -> str:
    return RATING_PROMPT.format(idea_text=idea_text, labels=", ".join(RATING_LABELS))
