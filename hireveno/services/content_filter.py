"""
Chat content filter.
A message must mention at least one academic keyword (allow-list, stored in the
restricted_content table) and must not match any of the inappropriate-content patterns.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from hireveno.database.database import RestrictedContent
from hireveno.database.redis import redis_client
from hireveno.config import get_settings
from hireveno.logger import logger

KEYWORDS_CACHE_KEY = "restricted_keywords"
KEYWORDS_CACHE_SECONDS = 600

NOT_ACADEMIC_REASON = 'Messages must be related to academics, admission, departments, UNIOSUN, or other universities.'
INAPPROPRIATE_REASON = 'Message contains inappropriate content. Please keep discussions academic.'

INAPPROPRIATE_PATTERNS = [
    re.compile(r'dating|romance|relationship', re.IGNORECASE),
    re.compile(r'money.*transfer|send.*money', re.IGNORECASE),
    re.compile(r'personal.*contact|phone.*number|whatsapp', re.IGNORECASE),
    re.compile(r'meet.*outside|meet.*person', re.IGNORECASE),
]

# Seeded into an empty restricted_content table on startup
DEFAULT_ACADEMIC_KEYWORDS = [
    "uniosun", "university", "admission", "department", "faculty", "course",
    "lecture", "lecturer", "assignment", "exam", "test", "quiz", "jamb", "utme",
    "post-utme", "waec", "neco", "cgpa", "gpa", "semester", "study", "project",
    "research", "biology", "chemistry", "physics", "mathematics", "maths",
    "english", "economics", "accounting", "law", "medicine", "nursing",
    "engineering", "computer", "question", "explain", "topic", "note", "help",
]

@dataclass
class FilterResult:
    allowed: bool
    reason: Optional[str] = None

class ContentFilter:
    """Pure classifier over a fixed keyword list."""

    def __init__(self, keywords: Iterable[str]):
        self.keywords: List[str] = [k.lower() for k in keywords if k]

    def is_message_allowed(self, message: str) -> FilterResult:
        lower_message = message.lower()

        if not any(keyword in lower_message for keyword in self.keywords):
            return FilterResult(allowed=False, reason=NOT_ACADEMIC_REASON)

        for pattern in INAPPROPRIATE_PATTERNS:
            if pattern.search(message):
                return FilterResult(allowed=False, reason=INAPPROPRIATE_REASON)

        return FilterResult(allowed=True)

def load_keywords(db: Session) -> List[str]:
    """
    Load the academic keyword list, from Redis when enabled.

    Raises:
        HTTPException(503): the keyword list could not be loaded. Sending is refused
        rather than letting every message through.
    """
    use_redis = get_settings().use_redis
    if use_redis:
        try:
            cached = redis_client.get_json(KEYWORDS_CACHE_KEY)
            if cached:
                return cached
        except Exception as e:
            logger.warning(f"Keyword cache unavailable, falling back to database: {str(e)}")

    try:
        keywords = [row.keyword for row in db.query(RestrictedContent).all()]
    except SQLAlchemyError as e:
        logger.error(f"Error loading restricted keywords: {str(e)}")
        raise HTTPException(status_code=503, detail="Message filter is unavailable. Please try again shortly.")

    if use_redis and keywords:
        try:
            redis_client.set_json(KEYWORDS_CACHE_KEY, keywords, expiration=KEYWORDS_CACHE_SECONDS)
        except Exception as e:
            logger.warning(f"Could not cache restricted keywords: {str(e)}")
    return keywords

def invalidate_keyword_cache():
    if get_settings().use_redis:
        redis_client.delete_cache(KEYWORDS_CACHE_KEY)

def get_content_filter(db: Session) -> ContentFilter:
    return ContentFilter(load_keywords(db))

def seed_default_keywords(db: Session) -> int:
    """Populate an empty keyword table. Returns the number of keywords added."""
    if db.query(RestrictedContent).first():
        return 0
    for keyword in DEFAULT_ACADEMIC_KEYWORDS:
        db.add(RestrictedContent(keyword=keyword, category="academic"))
    db.commit()
    logger.info(f"Seeded {len(DEFAULT_ACADEMIC_KEYWORDS)} academic keywords")
    return len(DEFAULT_ACADEMIC_KEYWORDS)
