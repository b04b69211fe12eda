from unittest.mock import MagicMock, patch
import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from hireveno.database.database import RestrictedContent
from hireveno.services.content_filter import (
    ContentFilter, DEFAULT_ACADEMIC_KEYWORDS, INAPPROPRIATE_REASON, NOT_ACADEMIC_REASON, load_keywords,
    get_content_filter
)

@pytest.fixture
def content_filter():
    return ContentFilter(DEFAULT_ACADEMIC_KEYWORDS)

def test_academic_message_is_allowed(content_filter):
    result = content_filter.is_message_allowed("Can you help me with my UNIOSUN Biology assignment?")
    assert result.allowed
    assert result.reason is None

def test_dating_message_is_rejected(content_filter):
    result = content_filter.is_message_allowed("Let's meet for a date, here's my whatsapp")
    assert not result.allowed
    assert result.reason in (NOT_ACADEMIC_REASON, INAPPROPRIATE_REASON)

def test_message_without_keyword_gets_academic_reason(content_filter):
    result = content_filter.is_message_allowed("How was your weekend?")
    assert not result.allowed
    assert result.reason == NOT_ACADEMIC_REASON

@pytest.mark.parametrize("message", [
    "Please send money before the exam",
    "Give me your phone number for the assignment",
    "Are you in a relationship? asking about the course",
    "Let's meet outside the lecture hall",
])
def test_deny_patterns_apply_even_with_keywords(content_filter, message):
    result = content_filter.is_message_allowed(message)
    assert not result.allowed
    assert result.reason == INAPPROPRIATE_REASON

def test_keyword_match_is_case_insensitive():
    result = ContentFilter(["Chemistry"]).is_message_allowed("organic CHEMISTRY notes please")
    assert result.allowed

def test_keywords_are_loaded_from_the_table(db):
    db.add(RestrictedContent(keyword="thermodynamics", category="academic"))
    db.commit()
    assert "thermodynamics" in load_keywords(db)
    assert get_content_filter(db).is_message_allowed("thermodynamics second law").allowed

@patch("hireveno.services.content_filter.redis_client")
@patch("hireveno.services.content_filter.get_settings")
def test_keywords_are_cached_in_redis(mock_settings, mock_redis, db):
    mock_settings.return_value = MagicMock(use_redis=True)
    mock_redis.get_json.return_value = None

    keywords = load_keywords(db)

    mock_redis.set_json.assert_called_once_with("restricted_keywords", keywords, expiration=600)

@patch("hireveno.services.content_filter.redis_client")
@patch("hireveno.services.content_filter.get_settings")
def test_unreachable_cache_falls_back_to_table(mock_settings, mock_redis, db):
    mock_settings.return_value = MagicMock(use_redis=True)
    mock_redis.get_json.side_effect = ConnectionError("redis down")
    mock_redis.set_json.side_effect = ConnectionError("redis down")

    assert "biology" in load_keywords(db)

def test_unreadable_keyword_table_refuses_every_message():
    broken_db = MagicMock()
    broken_db.query.side_effect = OperationalError("SELECT keyword FROM restricted_content", {}, Exception("db down"))

    with pytest.raises(HTTPException) as exc:
        get_content_filter(broken_db)
    assert exc.value.status_code == 503
