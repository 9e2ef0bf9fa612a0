"""
Attempt router (taker-facing).
View an exam, start or resume the attempt, submit answers, view a result.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.security import Actor
from database.database import get_db
from grading.schemas import SubmitRequest
from services import attempt_service

router = APIRouter(prefix="/exams", tags=["attempts"])


@router.get("/results/{result_id}")
def get_result(result_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Result with review data. Visible to the taker and the exam creator."""
    return attempt_service.get_result_review(db, result_id, actor)


@router.get("/{exam_id}")
def get_exam_view(exam_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Questions with one random variation each, plus the caller's attempt state."""
    return attempt_service.exam_view(db, exam_id, actor)


@router.post("/{exam_id}/start")
def start_exam(exam_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Start the attempt, or resume it without resetting the clock."""
    return attempt_service.start_attempt(db, exam_id, actor)


@router.post("/{exam_id}/submit")
def submit_exam(
    exam_id: int,
    request: SubmitRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Final submit: grade objective answers, queue text answers, fix the score."""
    return attempt_service.submit_attempt(db, exam_id, actor, request.answers)
