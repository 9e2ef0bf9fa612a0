"""
Grading router (creator-facing).
Batch AI grading of pending text answers, manual overrides, attempt reset.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.security import Actor
from database.database import get_db
from grading.schemas import BatchGradeSummary, ManualGradeRequest
from routers.deps import get_text_grader
from services import attempt_service, grading_service

router = APIRouter(prefix="/exams", tags=["grading"])


@router.post("/{exam_id}/grade-text-batch", response_model=BatchGradeSummary)
async def grade_text_batch(
    exam_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    grader=Depends(get_text_grader),
):
    """Send every pending text answer of the exam to the AI grader in one batch."""
    return await grading_service.run_batch_grading(db, exam_id, actor, grader)


@router.put("/results/{result_id}/grade/{question_id}")
def manual_grade(
    result_id: int,
    question_id: int,
    request: ManualGradeRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return grading_service.manual_grade(db, result_id, question_id, actor, request.is_correct, request.feedback)


@router.delete("/results/{result_id}")
def reset_attempt(result_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Delete the attempt so the taker can start again."""
    return attempt_service.reset_attempt(db, result_id, actor)
