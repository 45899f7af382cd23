import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from idearater.config import AI_TIMEOUT_SECONDS, DEFAULT_AI_API_URL
from idearater.errors import ExternalServiceError, InvalidRatingError
from idearater.llm import IdeaRater
from idearater.models import Rating
from idearater.ratings import CHARITY_NOTE


def create_rater():
    return IdeaRater(api_key="test-key")


def fake_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def completion(content):
    return {"choices": [{"message": {"content": content}}], "usage": {"total_tokens": 42}}


def test_parse_response_json():
    rating, note = IdeaRater.parse_response('{"rating":"kinda-good","note":"  needs work "}')
    assert rating is Rating.KINDA_GOOD
    assert note == "needs work"


def test_parse_response_free_text():
    rating, note = IdeaRater.parse_response("Verdict: this one is Really Good, honestly.")
    assert rating is Rating.REALLY_GOOD
    assert note is None


def test_parse_response_broken_json_falls_back_to_text():
    rating, note = IdeaRater.parse_response('{"rating": "meh", "note": oops')
    assert rating is Rating.MEH
    assert note is None


def test_parse_response_json_with_unknown_label_scans_text():
    rating, _ = IdeaRater.parse_response('{"rating": "great", "note": "kinda good I guess"}')
    assert rating is Rating.KINDA_GOOD


def test_rate_uses_parsed_note():
    rater = create_rater()
    content = json.dumps({"rating": "Really Good", "note": "solid niche e-commerce"})
    with patch.object(IdeaRater, "generate_text", return_value=content):
        result = rater.rate("Sell handmade candles online")
    assert result.rating is Rating.REALLY_GOOD
    assert result.note == "solid niche e-commerce"


def test_rate_prefixes_low_rating_notes():
    rater = create_rater()
    content = json.dumps({"rating": "Dumb", "note": "Bad timing."})
    with patch.object(IdeaRater, "generate_text", return_value=content):
        result = rater.rate("Selling ice to penguins")
    assert result.rating is Rating.DUMB
    assert result.note == "dumb - bad timing"


def test_rate_replaces_long_note_with_default():
    rater = create_rater()
    content = json.dumps({"rating": "Kinda Good", "note": "x" * 141})
    with patch.object(IdeaRater, "generate_text", return_value=content):
        result = rater.rate("Subscription socks")
    assert result.note == Rating.KINDA_GOOD.default_note


def test_rate_applies_guardrail():
    rater = create_rater()
    content = json.dumps({"rating": "Really Good", "note": "Heartwarming"})
    with patch.object(IdeaRater, "generate_text", return_value=content):
        result = rater.rate("A free app to feed homeless people")
    assert result.rating is Rating.MEH
    assert result.note == CHARITY_NOTE


def test_rate_raises_when_no_rating_found():
    rater = create_rater()
    with patch.object(IdeaRater, "generate_text", return_value='{"score": 7}'):
        with pytest.raises(InvalidRatingError):
            rater.rate("Anything")


def test_generate_text_request_shape():
    rater = IdeaRater(api_key="k", model_name="deepseek-chat")
    with patch("idearater.llm.requests.post", return_value=fake_response(completion('{"rating":"Meh"}'))) as post:
        content = rater.generate_text("system", "user")

    assert content == '{"rating":"Meh"}'
    args, kwargs = post.call_args
    assert args[0] == DEFAULT_AI_API_URL
    assert kwargs["timeout"] == AI_TIMEOUT_SECONDS
    assert kwargs["headers"]["Authorization"] == "Bearer k"
    assert kwargs["json"]["model"] == "deepseek-chat"
    assert kwargs["json"]["temperature"] == 0
    assert kwargs["json"]["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in kwargs["json"]["messages"]] == ["system", "user"]
    assert rater.total_token_count == 42


def test_prompt_embeds_idea_text():
    rater = create_rater()
    with patch.object(IdeaRater, "generate_text", return_value='{"rating":"Meh"}') as generate:
        rater.rate("Rent-a-goat lawn service with monthly fees")
    system_prompt, user_prompt = generate.call_args[0]
    assert "strict startup evaluator" in system_prompt
    assert "Rent-a-goat lawn service with monthly fees" in user_prompt
    assert "Dumb, Meh, Kinda Good, Really Good" in user_prompt


def test_generate_text_upstream_error_message():
    rater = create_rater()
    body = {"error": {"message": "Authentication Fails"}}
    with patch("idearater.llm.requests.post", return_value=fake_response(body, status_code=401)):
        with pytest.raises(ExternalServiceError, match="Authentication Fails"):
            rater.generate_text("system", "user")


def test_generate_text_upstream_error_without_body():
    rater = create_rater()
    with patch("idearater.llm.requests.post", return_value=fake_response(ValueError("no json"), status_code=502)):
        with pytest.raises(ExternalServiceError, match="Rating service request failed."):
            rater.generate_text("system", "user")


def test_generate_text_timeout():
    rater = create_rater()
    with patch("idearater.llm.requests.post", side_effect=requests.Timeout("slow")):
        with pytest.raises(ExternalServiceError, match="timed out"):
            rater.generate_text("system", "user")


def test_generate_text_missing_content_is_empty():
    rater = create_rater()
    with patch("idearater.llm.requests.post", return_value=fake_response({"choices": []})):
        assert rater.generate_text("system", "user") == ""
