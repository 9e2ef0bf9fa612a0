"""
Exam management for creators: generate, list, share, review/edit questions,
inspect submissions, delete.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from auth.security import Actor
from database import crud
from database.models import Exam, ExamStatus, Result
from grading.errors import InvalidSubmission, InvalidTemplate, NotFound, UpstreamGenerationFailure
from grading.ingest import ingest_templates, normalize_type, validate_variations
from grading.schemas import ExamCreateRequest, ExamShareRequest, QuestionUpdateRequest, VariationSchema
from services.attempt_service import _as_utc, _now, require_creator, require_exam

log = logging.getLogger("generation.pipeline")


def exam_summary(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "title": exam.title,
        "creator_id": exam.creator_id,
        "status": exam.status,
        "error_message": exam.error_message,
        "access_type": exam.access_type,
        "allowed_emails": list(exam.allowed_emails or []),
        "time_limit": exam.time_limit,
        "created_at": exam.created_at.isoformat() if exam.created_at else None,
        "question_count": len(exam.questions) if exam.questions else 0,
    }


def question_dict(q) -> dict:
    return {
        "id": q.id,
        "exam_id": q.exam_id,
        "type": q.type,
        "is_bonus": q.is_bonus,
        "variations": q.variations,
    }


def submission_dict(result: Result) -> dict:
    return {
        "id": result.id,
        "exam_id": result.exam_id,
        "exam_title": result.exam.title if result.exam else None,
        "user_id": result.user_id,
        "status": result.status,
        "score": result.score,
        "bonus_score": result.bonus_score,
        "total_questions": result.total_questions,
        "total_bonus_questions": result.total_bonus_questions,
        "start_time": _as_utc(result.start_time).isoformat(),
        "completed_at": _as_utc(result.completed_at).isoformat() if result.completed_at else None,
    }


async def create_exam(db: Session, actor: Actor, request: ExamCreateRequest, generator) -> dict:
    """
    Generate questions for a new exam. The exam row exists (status
    'processing') before the call so a failure is visible as 'failed'.
    """
    exam = crud.create_exam(
        db,
        title=request.title,
        creator_id=actor.user_id,
        source_ref=request.source_ref[:500],
        time_limit=request.time_limit,
    )
    exam_id = exam.id

    requested_at = _now()
    try:
        generated = await generator.generate(request.source_ref, request.num_questions, request.config)
    except Exception as e:
        log.error(f"[GENERATE] exam={exam_id} generation failed: {e}")
        crud.set_exam_status(db, exam, ExamStatus.FAILED.value, str(e)[:1000])
        raise UpstreamGenerationFailure(f"Question generation failed: {e}") from e
    responded_at = _now()

    crud.log_ai_call(
        db, "generate", actor.user_id, exam_id,
        prompt=f"Generate {request.num_questions} questions (config: {request.config.model_dump_json() if request.config else None})",
        response=generated.model_dump(),
        requested_at=requested_at,
        responded_at=responded_at,
    )

    try:
        templates = ingest_templates(generated)
    except InvalidTemplate as e:
        crud.set_exam_status(db, exam, ExamStatus.FAILED.value, e.message)
        raise

    crud.create_questions(db, exam_id, templates)
    exam = crud.set_exam_status(db, exam, ExamStatus.READY.value)
    log.info(f"[GENERATE] exam={exam_id} ready with {len(templates)} questions")
    return {"message": "Exam created successfully", "exam": exam_summary(exam)}


def list_exams(db: Session, actor: Actor) -> List[dict]:
    return [exam_summary(e) for e in crud.get_exams_by_creator(db, actor.user_id)]


def delete_exam(db: Session, exam_id: int, actor: Actor) -> dict:
    exam = require_exam(db, exam_id)
    require_creator(exam, actor)
    crud.delete_exam(db, exam)
    log.info(f"[DELETE] exam={exam_id} with its questions and results")
    return {"message": "Exam deleted successfully"}


def update_sharing(db: Session, exam_id: int, actor: Actor, request: ExamShareRequest) -> dict:
    exam = require_exam(db, exam_id)
    require_creator(exam, actor)
    if request.access_type is not None:
        exam.access_type = request.access_type
    if request.allowed_emails is not None:
        exam.allowed_emails = [e.strip() for e in request.allowed_emails if e.strip()]
    db.commit()
    db.refresh(exam)
    return {"message": "Exam sharing settings updated", "exam": exam_summary(exam)}


def questions_for_review(db: Session, exam_id: int, actor: Actor) -> List[dict]:
    exam = require_exam(db, exam_id)
    require_creator(exam, actor)
    return [question_dict(q) for q in crud.list_questions(db, exam.id)]


def update_question(db: Session, question_id: int, actor: Actor, request: QuestionUpdateRequest) -> dict:
    """Replace a question's type and/or variations; the result must still be a valid question."""
    question = crud.get_question(db, question_id)
    if not question:
        raise NotFound("Question not found")
    require_creator(question.exam, actor)

    qtype = normalize_type(request.type) if request.type is not None else question.type
    if qtype != question.type and crud.list_results_for_exams(db, [question.exam_id]):
        raise InvalidSubmission("Question type cannot change once the exam has attempts")
    if request.variations is not None:
        variations = request.variations
    else:
        variations = [VariationSchema.model_validate(v) for v in question.variations]
    validate_variations(qtype, variations)

    question = crud.update_question(
        db, question,
        qtype=qtype if request.type is not None else None,
        variations=[v.model_dump() for v in variations] if request.variations is not None else None,
    )
    return {"message": "Question updated successfully", "question": question_dict(question)}


def list_submissions(db: Session, exam_id: int, actor: Actor) -> List[dict]:
    exam = require_exam(db, exam_id)
    require_creator(exam, actor)
    return [submission_dict(r) for r in crud.list_results_for_exams(db, [exam.id])]


def list_all_submissions(db: Session, actor: Actor) -> List[dict]:
    exam_ids = [e.id for e in crud.get_exams_by_creator(db, actor.user_id)]
    return [submission_dict(r) for r in crud.list_results_for_exams(db, exam_ids)]
