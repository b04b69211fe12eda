"""
Department quiz gate. Verified students pass their department's quiz to earn the
badge that makes them bookable as tutors.
"""
import random
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from fastapi import HTTPException
from sqlalchemy.orm import Session
from hireveno.config import get_settings
from hireveno.database.database import Department, Question, QuizAttempt, User, UserRole, utcnow
from hireveno.schemas.quiz_schema import QuestionCreate
from hireveno.logger import logger

def _require_candidate(user: User):
    if user.role != UserRole.STUDENT:
        raise HTTPException(status_code=403, detail="Only students can take the tutor quiz")
    if not user.is_verified:
        raise HTTPException(status_code=403, detail="Your account must be verified before taking the quiz")
    if user.badge:
        raise HTTPException(status_code=400, detail="You already hold the tutor badge")
    if not user.department_id:
        raise HTTPException(status_code=400, detail="Please set your department first")

def _check_cooldown(db: Session, user: User, now: datetime):
    last_attempt = db.query(QuizAttempt).filter(
        QuizAttempt.user_id == user.id
    ).order_by(QuizAttempt.created_at.desc()).first()
    if last_attempt and last_attempt.next_attempt_at and now < last_attempt.next_attempt_at:
        raise HTTPException(status_code=429,
                            detail=f"You can retake the quiz after {last_attempt.next_attempt_at.isoformat()}")

def get_questions(db: Session, user: User, now: Optional[datetime] = None) -> List[Question]:
    """Up to quiz_question_limit random questions of the user's department."""
    now = now or utcnow()
    _require_candidate(user)
    _check_cooldown(db, user, now)

    questions = db.query(Question).filter(Question.department_id == user.department_id).all()
    if not questions:
        raise HTTPException(status_code=404, detail="No quiz questions available for your department")
    limit = get_settings().quiz_question_limit
    return random.sample(questions, min(limit, len(questions)))

def score_answers(questions: List[Question], answers: List[Optional[int]]) -> int:
    """Number of correct answers; answers[i] belongs to questions[i], None means skipped."""
    return sum(1 for question, answer in zip(questions, answers)
               if answer is not None and answer == question.correct_answer)

def submit_quiz(db: Session, user: User, question_ids: List[str], answers: List[Optional[int]],
                now: Optional[datetime] = None) -> Tuple[QuizAttempt, int]:
    """
    Grade a quiz attempt. Passing grants the badge, failing starts the retry cooldown.

    Raises:
        HTTPException(400): answers do not match the questions
        HTTPException(429): the cooldown after a failed attempt has not passed
    """
    now = now or utcnow()
    settings = get_settings()
    _require_candidate(user)
    _check_cooldown(db, user, now)

    if not question_ids or len(question_ids) != len(answers):
        raise HTTPException(status_code=400, detail="Every question needs exactly one answer entry")
    if len(set(question_ids)) != len(question_ids):
        raise HTTPException(status_code=400, detail="Duplicate questions in submission")

    by_id = {q.id: q for q in db.query(Question).filter(
        Question.id.in_(question_ids),
        Question.department_id == user.department_id
    ).all()}
    if len(by_id) != len(question_ids):
        raise HTTPException(status_code=400, detail="Unknown questions in submission")
    questions = [by_id[qid] for qid in question_ids]

    correct = score_answers(questions, answers)
    total = len(questions)
    score = round(correct / total * 100)
    passed = score >= settings.quiz_pass_mark

    attempt = QuizAttempt(
        user_id=user.id,
        department_id=user.department_id,
        score=score,
        total_questions=total,
        passed=passed,
        next_attempt_at=None if passed else now + timedelta(hours=settings.quiz_retry_hours),
        created_at=now,
    )
    db.add(attempt)
    user.quiz_score = score
    if passed:
        user.badge = True
    db.commit()
    db.refresh(attempt)
    db.refresh(user)
    logger.info(f"Quiz attempt by {user.id}: {correct}/{total} ({score}%), passed={passed}")
    return attempt, correct

def create_department(db: Session, name: str) -> Department:
    if db.query(Department).filter(Department.name == name).first():
        raise HTTPException(status_code=400, detail="Department already exists")
    department = Department(name=name)
    db.add(department)
    db.commit()
    db.refresh(department)
    return department

def add_question(db: Session, data: QuestionCreate) -> Question:
    if not db.query(Department).filter(Department.id == data.department_id).first():
        raise HTTPException(status_code=404, detail="Department not found")
    if not 0 <= data.correct_answer < len(data.options):
        raise HTTPException(status_code=400, detail="correct_answer must index one of the options")
    question = Question(
        department_id=data.department_id,
        question=data.question,
        options=data.options,
        correct_answer=data.correct_answer,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question
