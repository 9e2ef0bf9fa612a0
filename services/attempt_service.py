"""
Attempt lifecycle: start, exam view, submit, review, reset.

    absent ──start──▶ in-progress ──submit──▶ completed
       ▲                                          │
       └──────────────── reset (creator) ─────────┘

One Result per (user, exam). Timing is cooperative: the client auto-submits
on expiry and submit re-checks the deadline with a grace window.
"""

import logging
import os
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from auth.security import Actor
from database import crud
from database.models import Exam, ExamStatus, Result, ResultStatus
from grading.aggregator import aggregate_scores, bonus_ids, count_totals
from grading.errors import AlreadyCompleted, Forbidden, NotFound, SubmissionExpired
from grading.objective_grader import grade_answers, validate_answers
from grading.schemas import AnswerIn, load_answers
from grading.variation_selector import render_questions, resolve_variation

log = logging.getLogger("grading.pipeline")

ENFORCE_SUBMIT_DEADLINE = os.getenv("ENFORCE_SUBMIT_DEADLINE", "1").lower() in ("1", "true", "yes")
SUBMIT_GRACE_SECONDS = int(os.getenv("SUBMIT_GRACE_SECONDS", "120"))


# ─── Helpers ───────────────────────────────────────────────────────────────────

def _now():
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def remaining_seconds(exam: Exam, start_time: Optional[datetime], now: datetime) -> Optional[int]:
    """Seconds left on the attempt clock; None when the exam has no time limit."""
    if exam.time_limit is None:
        return None
    if start_time is None:
        return exam.time_limit * 60
    elapsed = (now - _as_utc(start_time)).total_seconds()
    return max(0, int(exam.time_limit * 60 - elapsed))


def may_view(exam: Exam, actor: Actor) -> bool:
    if exam.creator_id == actor.user_id:
        return True
    if exam.access_type == "public":
        return True
    return bool(actor.email) and actor.email in (exam.allowed_emails or [])


def require_exam(db: Session, exam_id: int) -> Exam:
    exam = crud.get_exam(db, exam_id)
    if not exam:
        raise NotFound("Exam not found")
    return exam


def require_viewer(exam: Exam, actor: Actor) -> None:
    if not may_view(exam, actor):
        raise Forbidden("Access denied: this exam is private")


def require_creator(exam: Exam, actor: Actor) -> None:
    if exam.creator_id != actor.user_id:
        raise Forbidden("Only the exam creator can do this")


def _require_takeable(db: Session, exam_id: int, actor: Actor) -> Exam:
    exam = require_exam(db, exam_id)
    require_viewer(exam, actor)
    if exam.status != ExamStatus.READY.value:
        raise NotFound("Exam is not available")
    return exam


# ─── Operations ────────────────────────────────────────────────────────────────

def start_attempt(db: Session, exam_id: int, actor: Actor) -> dict:
    """Create the attempt, or resume it with its original start time."""
    exam = _require_takeable(db, exam_id, actor)
    now = _now()
    result, created = crud.get_or_create_result(db, exam.id, actor.user_id, now)
    if result.status == ResultStatus.COMPLETED.value:
        raise AlreadyCompleted("Exam already completed")

    log.info(f"[START] exam={exam.id} user={actor.user_id} {'started' if created else 'resumed'}")
    return {
        "message": "Exam started" if created else "Exam continues",
        "result_id": result.id,
        "status": result.status,
        "start_time": _as_utc(result.start_time).isoformat(),
        "time_limit": exam.time_limit,
        "remaining_seconds": remaining_seconds(exam, result.start_time, now),
    }


def exam_view(db: Session, exam_id: int, actor: Actor, rng: Optional[random.Random] = None) -> dict:
    """Questions with one random variation each, plus the caller's attempt state."""
    exam = _require_takeable(db, exam_id, actor)
    questions = crud.list_questions(db, exam.id)
    result = crud.get_result_for(db, exam.id, actor.user_id)

    start_time = result.start_time if result else None
    return {
        "exam": {"id": exam.id, "title": exam.title, "time_limit": exam.time_limit},
        "questions": render_questions(questions, rng),
        "user_status": result.status if result else "new",
        "start_time": _as_utc(start_time).isoformat() if start_time else None,
        "time_limit": exam.time_limit,
        "remaining_seconds": remaining_seconds(exam, start_time, _now()) if result else None,
    }


def _check_deadline(exam: Exam, result: Result, now: datetime) -> None:
    if not ENFORCE_SUBMIT_DEADLINE or exam.time_limit is None:
        return
    deadline = _as_utc(result.start_time) + timedelta(minutes=exam.time_limit, seconds=SUBMIT_GRACE_SECONDS)
    if now > deadline:
        raise SubmissionExpired("Time limit exceeded; submission rejected")


def submit_attempt(db: Session, exam_id: int, actor: Actor, answers: List[AnswerIn]) -> dict:
    """
    Validate, grade and complete the attempt in one compare-and-set.
    A second submit (sequential or concurrent) raises AlreadyCompleted.
    """
    exam = _require_takeable(db, exam_id, actor)
    questions = crud.list_questions(db, exam.id)
    by_id = {q.id: q for q in questions}
    validate_answers(by_id, answers)

    now = _now()
    result, _ = crud.get_or_create_result(db, exam.id, actor.user_id, now)
    if result.status == ResultStatus.COMPLETED.value:
        raise AlreadyCompleted("Exam already submitted")
    _check_deadline(exam, result, now)

    graded = grade_answers(by_id, answers)
    totals = aggregate_scores(graded, bonus_ids(questions))
    total_questions, total_bonus_questions = count_totals(questions)

    result_id = result.id
    if not crud.complete_result(db, result_id, graded, totals, total_questions, total_bonus_questions, now):
        raise AlreadyCompleted("Exam already submitted")

    log.info(
        f"[SUBMIT] exam={exam.id} user={actor.user_id} result={result_id} "
        f"score={totals.score}/{total_questions} bonus={totals.bonus_score}/{total_bonus_questions}"
    )
    return {
        "message": "Exam submitted",
        "score": totals.score,
        "total": total_questions,
        "bonus_score": totals.bonus_score,
        "total_bonus_questions": total_bonus_questions,
        "result_id": result_id,
    }


def get_result_review(db: Session, result_id: int, actor: Actor) -> dict:
    """Full result with each answer resolved against the variation it most likely came from."""
    result = crud.get_result(db, result_id)
    if not result:
        raise NotFound("Result not found")
    exam = result.exam
    if result.user_id != actor.user_id and exam.creator_id != actor.user_id:
        raise Forbidden("Not authorized to view this result")

    questions = {q.id: q for q in crud.list_questions(db, exam.id)}
    enriched = []
    for answer in load_answers(result.answers):
        question = questions.get(answer.question_id)
        variation = resolve_variation(question, answer.selected_options) if question else None
        enriched.append({
            **answer.to_json(),
            "question_text": variation.get("text") if variation else "Question deleted",
            "options": list(variation.get("options") or []) if variation else [],
            "correct_answers": list(variation.get("correct_answers") or []) if variation else [],
            "type": question.type if question else "unknown",
            "is_bonus": bool(question.is_bonus) if question else False,
        })

    return {
        "id": result.id,
        "exam": {"id": exam.id, "title": exam.title, "creator_id": exam.creator_id},
        "user_id": result.user_id,
        "status": result.status,
        "start_time": _as_utc(result.start_time).isoformat(),
        "completed_at": _as_utc(result.completed_at).isoformat() if result.completed_at else None,
        "score": result.score,
        "bonus_score": result.bonus_score,
        "total_questions": result.total_questions,
        "total_bonus_questions": result.total_bonus_questions,
        "answers": enriched,
    }


def reset_attempt(db: Session, result_id: int, actor: Actor) -> dict:
    """Creator-only: delete the attempt so the taker can start over."""
    result = crud.get_result(db, result_id)
    if not result:
        raise NotFound("Result not found")
    require_creator(result.exam, actor)
    crud.delete_result(db, result)
    log.info(f"[RESET] result={result_id} by creator={actor.user_id}")
    return {"message": "Attempt reset successfully"}
