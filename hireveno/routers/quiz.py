"""
Quiz router: the department quiz that certifies a verified student as a tutor.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List
from hireveno.auth_tools import student_only
from hireveno.database.database import get_db, User
from hireveno.schemas.quiz_schema import QuizQuestion, QuizSubmission, QuizResult
from hireveno.services.quiz import get_questions, submit_quiz
from hireveno.rate_limit import limiter

router = APIRouter(prefix='/quiz')

@router.get('/questions', response_model=List[QuizQuestion])
def quiz_questions(current_user: User = Depends(student_only), db: Session = Depends(get_db)):
    """Random questions of the student's department, without the answer key."""
    return get_questions(db, current_user)

@router.post('/submit', response_model=QuizResult)
@limiter.limit("5/minute")
def quiz_submit(request: Request, data: QuizSubmission, current_user: User = Depends(student_only),
                db: Session = Depends(get_db)):
    """
    Grade the answers. Passing grants the tutor badge; failing locks the quiz
    for the retry period (further attempts get 429).
    """
    attempt, correct = submit_quiz(db, current_user, data.question_ids, data.answers)
    return {
        "score": attempt.score,
        "correct_answers": correct,
        "total_questions": attempt.total_questions,
        "passed": attempt.passed,
        "badge": current_user.badge,
        "next_attempt_at": attempt.next_attempt_at,
    }
