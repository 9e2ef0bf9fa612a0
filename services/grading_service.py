"""
Text answer grading orchestration (creator-triggered).

Batch pass:
  1. collect pending text answers across the exam's results   (read only)
  2. one call to the grading collaborator                      (no locks held)
  3. per result: locked re-read → apply verdicts → re-aggregate → persist

A failed or unparsable call raises before step 3, so nothing is written.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Tuple

from sqlalchemy.orm import Session

from auth.security import Actor
from database import crud
from grading.aggregator import bonus_ids
from grading.errors import NotFound, ResultBusy
from grading.schemas import BatchGradeSummary, GradingVerdict, load_answers
from grading.text_pipeline import PendingRef, apply_manual_grade, apply_verdicts, collect_pending_items, count_pending
from services.attempt_service import _now, require_creator, require_exam

log = logging.getLogger("grading.pipeline")


def _group_by_result(verdicts: List[GradingVerdict], refs: Dict[str, PendingRef]) -> Dict[int, List[Tuple[PendingRef, GradingVerdict]]]:
    grouped: Dict[int, List[Tuple[PendingRef, GradingVerdict]]] = defaultdict(list)
    seen = set()
    for verdict in verdicts:
        ref = refs.get(verdict.id)
        if ref is None:
            log.warning(f"[BATCH] verdict for unknown id {verdict.id!r} ignored")
            continue
        if verdict.id in seen:
            continue
        seen.add(verdict.id)
        grouped[ref.result_id].append((ref, verdict))
    return grouped


async def run_batch_grading(db: Session, exam_id: int, actor: Actor, grader) -> BatchGradeSummary:
    exam = require_exam(db, exam_id)
    require_creator(exam, actor)

    questions = crud.list_questions(db, exam.id)
    questions_by_id = {q.id: q for q in questions}
    bonus = bonus_ids(questions)
    results = crud.list_results_for_exams(db, [exam.id])
    items, refs = collect_pending_items(results, questions_by_id)

    if not items:
        return BatchGradeSummary(message="No pending text answers to grade")

    # end the read transaction before the network call
    db.rollback()

    log.info(f"[BATCH] exam={exam_id}: sending {len(items)} pending text answers for grading")
    requested_at = _now()
    verdicts = await grader.grade_batch(items)
    responded_at = _now()
    crud.log_ai_call(
        db, "grade", actor.user_id, exam_id,
        prompt=f"Grade {len(items)} text answers",
        response=[v.model_dump() for v in verdicts],
        requested_at=requested_at,
        responded_at=responded_at,
    )

    pending_per_result = Counter(ref.result_id for ref in refs.values())
    graded = 0
    results_updated = 0
    for result_id, pairs in _group_by_result(verdicts, refs).items():
        applied = {"count": 0}

        def transform(answers, pairs=pairs, applied=applied):
            new_answers, n = apply_verdicts(answers, pairs)
            applied["count"] = n
            return new_answers if n else None

        try:
            updated = crud.update_result_answers(db, result_id, transform, bonus)
        except ResultBusy:
            log.warning(f"[BATCH] result {result_id} stayed busy; its answers remain pending")
            continue
        if updated is None:
            log.info(f"[BATCH] result {result_id} was deleted during grading; skipped")
            pending_per_result.pop(result_id, None)
            continue
        if applied["count"]:
            graded += applied["count"]
            results_updated += 1

    still_pending = sum(pending_per_result.values()) - graded
    log.info(f"[BATCH] exam={exam_id}: graded={graded} still_pending={still_pending} results={results_updated}")
    return BatchGradeSummary(
        graded=graded,
        still_pending=still_pending,
        results_updated=results_updated,
        message=f"Batch grading complete. Processed {graded} answers.",
    )


def manual_grade(db: Session, result_id: int, question_id: int, actor: Actor, is_correct: bool, feedback=None) -> dict:
    """Human verdict on one text answer; always wins over the AI verdict."""
    result = crud.get_result(db, result_id)
    if not result:
        raise NotFound("Result not found")
    exam = result.exam
    require_creator(exam, actor)

    question = crud.get_question(db, question_id)
    if question is None or question.exam_id != exam.id:
        raise NotFound("Question not found in this exam")
    bonus = bonus_ids(crud.list_questions(db, exam.id))

    updated = crud.update_result_answers(
        db, result_id,
        lambda answers: apply_manual_grade(answers, question, is_correct, feedback),
        bonus,
    )
    if updated is None:
        raise NotFound("Result not found")

    log.info(f"[MANUAL] result={result_id} question={question_id} is_correct={is_correct}")
    return {
        "message": "Grade updated",
        "score": updated.score,
        "bonus_score": updated.bonus_score,
        "pending_text_answers": count_pending(load_answers(updated.answers)),
    }
