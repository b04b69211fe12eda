from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime
from bleach import clean

class QuizQuestion(BaseModel):
    """Question as shown to the candidate (no answer key)"""
    id: str
    question: str
    options: List[str]

    model_config = ConfigDict(from_attributes=True)

class QuestionCreate(BaseModel):
    department_id: str
    question: str
    options: List[str]
    correct_answer: int

    @field_validator('question')
    def sanitize_question(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)

    @field_validator('options')
    def validate_options(cls, v):
        if len(v) < 2:
            raise ValueError('A question needs at least two options')
        return [clean(option, tags=[], attributes={}, strip=True) for option in v]

class QuizSubmission(BaseModel):
    """Answer indexes, one per question, in the order the questions were served"""
    question_ids: List[str]
    answers: List[Optional[int]]

class QuizResult(BaseModel):
    score: int
    correct_answers: int
    total_questions: int
    passed: bool
    badge: bool
    next_attempt_at: Optional[datetime] = None
