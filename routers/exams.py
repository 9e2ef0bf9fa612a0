"""
Exam management router (creator-facing).
Generate exams from a source document, list/delete them, manage sharing,
review and edit questions, and inspect submissions.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.security import Actor
from database.database import get_db
from grading.schemas import ExamCreateRequest, ExamShareRequest, QuestionUpdateRequest
from routers.deps import get_question_generator
from services import exam_service

router = APIRouter(prefix="/exams", tags=["exams"])


# ─── Routes ────────────────────────────────────────────────────────────────────

@router.post("/", status_code=201)
async def create_exam(
    request: ExamCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    generator=Depends(get_question_generator),
):
    """Create an exam and generate its questions (3 variations each)."""
    return await exam_service.create_exam(db, actor, request, generator)


@router.get("/")
def list_exams(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """List exams created by the caller, newest first."""
    return exam_service.list_exams(db, actor)


@router.get("/all-submissions")
def list_all_submissions(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """All results across every exam the caller created."""
    return exam_service.list_all_submissions(db, actor)


@router.put("/questions/{question_id}")
def update_question(
    question_id: int,
    request: QuestionUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return exam_service.update_question(db, question_id, actor, request)


@router.get("/{exam_id}/questions")
def questions_for_review(exam_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """All questions with all variations and correct answers."""
    return exam_service.questions_for_review(db, exam_id, actor)


@router.get("/{exam_id}/submissions")
def list_submissions(exam_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return exam_service.list_submissions(db, exam_id, actor)


@router.put("/{exam_id}/share")
def update_sharing(
    exam_id: int,
    request: ExamShareRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return exam_service.update_sharing(db, exam_id, actor, request)


@router.delete("/{exam_id}")
def delete_exam(exam_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Delete an exam with its questions and results."""
    return exam_service.delete_exam(db, exam_id, actor)
