"""
CRUD operations for exams, questions and results
All database operations go through these functions
"""

import logging
import os
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from database import models
from grading.aggregator import aggregate_scores
from grading.errors import ResultBusy
from grading.schemas import AnswerRecord, QuestionTemplate, ScoreTotals, load_answers, dump_answers

log = logging.getLogger(__name__)

GRADING_MAX_RETRIES = int(os.getenv("GRADING_MAX_RETRIES", "3"))


# ==========================================
# EXAM CRUD
# ==========================================

def create_exam(
    db: Session,
    title: str,
    creator_id: int,
    source_ref: Optional[str] = None,
    time_limit: Optional[int] = None,
) -> models.Exam:
    """Create a new exam in 'processing' state"""
    db_exam = models.Exam(
        title=title,
        creator_id=creator_id,
        source_ref=source_ref,
        time_limit=time_limit,
        status=models.ExamStatus.PROCESSING.value,
        allowed_emails=[],
    )
    db.add(db_exam)
    db.commit()
    db.refresh(db_exam)
    return db_exam


def get_exam(db: Session, exam_id: int) -> Optional[models.Exam]:
    """Get exam by ID"""
    return db.query(models.Exam).filter(models.Exam.id == exam_id).first()


def get_exams_by_creator(db: Session, creator_id: int) -> List[models.Exam]:
    return (
        db.query(models.Exam)
        .filter(models.Exam.creator_id == creator_id)
        .order_by(models.Exam.created_at.desc(), models.Exam.id.desc())
        .all()
    )


def set_exam_status(db: Session, exam: models.Exam, status: str, error_message: Optional[str] = None) -> models.Exam:
    exam.status = status
    exam.error_message = error_message
    db.commit()
    db.refresh(exam)
    return exam


def delete_exam(db: Session, exam: models.Exam) -> None:
    """Delete an exam (cascades to questions and results)"""
    db.delete(exam)
    db.commit()


# ==========================================
# QUESTION CRUD
# ==========================================

def create_questions(db: Session, exam_id: int, templates: List[QuestionTemplate]) -> List[models.Question]:
    rows = [
        models.Question(
            exam_id=exam_id,
            type=t.type,
            variations=[v.model_dump() for v in t.variations],
            is_bonus=t.is_bonus,
        )
        for t in templates
    ]
    db.add_all(rows)
    db.commit()
    return rows


def list_questions(db: Session, exam_id: int) -> List[models.Question]:
    return (
        db.query(models.Question)
        .filter(models.Question.exam_id == exam_id)
        .order_by(models.Question.id)
        .all()
    )


def get_question(db: Session, question_id: int) -> Optional[models.Question]:
    return db.query(models.Question).filter(models.Question.id == question_id).first()


def update_question(db: Session, question: models.Question, qtype: Optional[str], variations: Optional[list]) -> models.Question:
    if qtype is not None:
        question.type = qtype
    if variations is not None:
        question.variations = variations
    db.commit()
    db.refresh(question)
    return question


# ==========================================
# RESULT CRUD
# ==========================================

def get_result(db: Session, result_id: int) -> Optional[models.Result]:
    return db.query(models.Result).filter(models.Result.id == result_id).first()


def get_result_for(db: Session, exam_id: int, user_id: int) -> Optional[models.Result]:
    return (
        db.query(models.Result)
        .filter(models.Result.exam_id == exam_id, models.Result.user_id == user_id)
        .first()
    )


def list_results_for_exams(db: Session, exam_ids: List[int]) -> List[models.Result]:
    if not exam_ids:
        return []
    return (
        db.query(models.Result)
        .filter(models.Result.exam_id.in_(exam_ids))
        .order_by(models.Result.completed_at.desc().nullslast(), models.Result.id.desc())
        .all()
    )


def get_or_create_result(db: Session, exam_id: int, user_id: int, now: datetime) -> Tuple[models.Result, bool]:
    """
    Return (result, created). The unique (user_id, exam_id) constraint decides
    concurrent double-starts: the loser rolls back and reads the winner's row.
    """
    existing = get_result_for(db, exam_id, user_id)
    if existing:
        return existing, False

    result = models.Result(
        exam_id=exam_id,
        user_id=user_id,
        status=models.ResultStatus.IN_PROGRESS.value,
        start_time=now,
        answers=[],
    )
    db.add(result)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        log.info(f"[START] concurrent start for exam={exam_id} user={user_id}; using existing attempt")
        winner = get_result_for(db, exam_id, user_id)
        if winner is None:
            raise
        return winner, False
    db.refresh(result)
    return result, True


def complete_result(
    db: Session,
    result_id: int,
    answers: List[AnswerRecord],
    totals: ScoreTotals,
    total_questions: int,
    total_bonus_questions: int,
    now: datetime,
) -> bool:
    """
    Atomic in-progress → completed transition. Returns False when another
    request already completed (or deleted) the attempt; nothing is written then.
    """
    updated = (
        db.query(models.Result)
        .filter(
            models.Result.id == result_id,
            models.Result.status == models.ResultStatus.IN_PROGRESS.value,
        )
        .update(
            {
                models.Result.status: models.ResultStatus.COMPLETED.value,
                models.Result.answers: dump_answers(answers),
                models.Result.score: totals.score,
                models.Result.bonus_score: totals.bonus_score,
                models.Result.total_questions: total_questions,
                models.Result.total_bonus_questions: total_bonus_questions,
                models.Result.completed_at: now,
                models.Result.version: models.Result.version + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        return False
    db.commit()
    return True


def update_result_answers(
    db: Session,
    result_id: int,
    transform: Callable[[Tuple[AnswerRecord, ...]], Optional[Tuple[AnswerRecord, ...]]],
    bonus_question_ids: Set[int],
    max_retries: int = GRADING_MAX_RETRIES,
) -> Optional[models.Result]:
    """
    Locked read-modify-write of one result's answers.

    `transform` gets the current answer snapshot and returns the new one (or
    None for "nothing to change"). Scores are re-derived from the full new
    list. The row is locked where the backend supports it and the version
    column rejects lost updates; on conflict the transform is re-run on fresh
    data. Returns None if the result no longer exists.
    """
    for attempt in range(1, max_retries + 1):
        result = (
            db.query(models.Result)
            .filter(models.Result.id == result_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if result is None:
            db.rollback()
            return None

        try:
            new_answers = transform(load_answers(result.answers))
        except Exception:
            db.rollback()
            raise
        if new_answers is None:
            db.rollback()
            return result

        totals = aggregate_scores(new_answers, bonus_question_ids)
        result.answers = dump_answers(new_answers)
        result.score = totals.score
        result.bonus_score = totals.bonus_score
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            log.warning(f"[GRADE] result {result_id} changed underneath us (attempt {attempt}/{max_retries})")
            continue
        db.refresh(result)
        return result

    raise ResultBusy(f"Result {result_id} is being updated concurrently; try again")


def delete_result(db: Session, result: models.Result) -> None:
    db.delete(result)
    db.commit()


# ==========================================
# AI CALL LOG
# ==========================================

def log_ai_call(
    db: Session,
    kind: str,
    user_id: int,
    exam_id: Optional[int],
    prompt: str,
    response,
    requested_at: datetime,
    responded_at: datetime,
) -> None:
    """Best-effort audit row; a failure here never fails the caller."""
    try:
        db.add(models.AiCallLog(
            kind=kind,
            user_id=user_id,
            exam_id=exam_id,
            prompt=prompt,
            response=response,
            requested_at=requested_at,
            responded_at=responded_at,
            duration_ms=int((responded_at - requested_at).total_seconds() * 1000),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Failed to save AI call log: {e}")
