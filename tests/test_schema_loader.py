import pytest

from news_digest import schema
from news_digest.errors import DownstreamFormatError


def _payload(**overrides):
    base = {
        "topic_original": "chip tariffs",
        "language": "en",
        "country": "US",
        "title": "Chip tariffs",
    }
    base.update(overrides)
    return base


def test_loads_default_schema():
    loaded = schema.load_schema()
    assert loaded.get("title") == "QueryIntent"
    assert set(loaded["required"]) == {"topic_original", "language", "country", "title"}


def test_validate_accepts_minimal_valid_payload():
    payload = _payload()
    assert schema.validate_intent_payload(payload) == payload


def test_validate_rejects_missing_required_field():
    payload = _payload()
    payload.pop("country")
    with pytest.raises(DownstreamFormatError) as excinfo:
        schema.validate_intent_payload(payload)
    assert "country" in str(excinfo.value)


def test_validate_rejects_extra_keys():
    with pytest.raises(DownstreamFormatError) as excinfo:
        schema.validate_intent_payload(_payload(confidence=0.9))
    assert "confidence" in str(excinfo.value)


def test_validate_rejects_non_iso_language():
    with pytest.raises(DownstreamFormatError) as excinfo:
        schema.validate_intent_payload(_payload(language="English"))
    assert "language" in str(excinfo.value)


def test_validate_rejects_blank_title():
    with pytest.raises(DownstreamFormatError):
        schema.validate_intent_payload(_payload(title="   "))


def test_validate_rejects_non_object_reply():
    with pytest.raises(DownstreamFormatError):
        schema.validate_intent_payload(["chip tariffs", "en", "US", "Chip tariffs"])
