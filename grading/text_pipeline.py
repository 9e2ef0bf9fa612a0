"""
Text answer grading as pure transformations.

Per-answer status machine:

    pending ──batch──▶ ai-graded ──override──▶ manual-graded
       └───────────────override───────────────────▲

manual-graded is terminal for automated passes. Every function here takes
an answer tuple and returns a new one; persistence and locking live in
database/crud.py and services/grading_service.py.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from database.models import QuestionType, GradingStatus
from grading.errors import NotFound, InvalidSubmission
from grading.schemas import AnswerRecord, GradingItem, GradingVerdict


_ALLOWED = {
    (GradingStatus.PENDING.value, GradingStatus.AI_GRADED.value),
    (GradingStatus.PENDING.value, GradingStatus.MANUAL_GRADED.value),
    (GradingStatus.AI_GRADED.value, GradingStatus.MANUAL_GRADED.value),
    (GradingStatus.MANUAL_GRADED.value, GradingStatus.MANUAL_GRADED.value),
}

GUIDELINE_SEPARATOR = " OR "


def can_transition(current: Optional[str], target: str) -> bool:
    return (current, target) in _ALLOWED


@dataclass(frozen=True)
class PendingRef:
    result_id: int
    answer_index: int
    question_id: int


def item_id(result_id: int, answer_index: int) -> str:
    return f"{result_id}_{answer_index}"


def collect_pending_items(results, questions_by_id: Dict[int, object]) -> Tuple[List[GradingItem], Dict[str, PendingRef]]:
    """
    Build one grading item per pending text answer across `results`.
    The question's first variation is the reference for text and guideline.
    """
    items: List[GradingItem] = []
    refs: Dict[str, PendingRef] = {}
    for result in results:
        for idx, raw in enumerate(result.answers or []):
            answer = AnswerRecord.model_validate(raw)
            question = questions_by_id.get(answer.question_id)
            if question is None or question.type != QuestionType.TEXT.value:
                continue
            if answer.grading_status != GradingStatus.PENDING.value:
                continue
            if not question.variations:
                continue
            reference = question.variations[0]
            vid = item_id(result.id, idx)
            items.append(GradingItem(
                id=vid,
                question_text=reference.get("text", ""),
                guideline=GUIDELINE_SEPARATOR.join(reference.get("correct_answers") or []),
                answer_text=answer.selected_options[0] if answer.selected_options else "",
            ))
            refs[vid] = PendingRef(result.id, idx, answer.question_id)
    return items, refs


def apply_verdicts(
    answers: Tuple[AnswerRecord, ...],
    verdicts: List[Tuple[PendingRef, GradingVerdict]],
) -> Tuple[Tuple[AnswerRecord, ...], int]:
    """
    Apply AI verdicts to one result's answers. An answer is only touched if it
    still sits at the same index, refers to the same question and is pending.
    Returns (new_answers, applied_count).
    """
    updated = list(answers)
    applied = 0
    for ref, verdict in verdicts:
        if ref.answer_index >= len(updated):
            continue
        current = updated[ref.answer_index]
        if current.question_id != ref.question_id:
            continue
        if not can_transition(current.grading_status, GradingStatus.AI_GRADED.value):
            continue
        updated[ref.answer_index] = current.model_copy(update={
            "is_correct": verdict.is_correct,
            "ai_feedback": verdict.feedback,
            "grading_status": GradingStatus.AI_GRADED.value,
        })
        applied += 1
    return tuple(updated), applied


def apply_manual_grade(
    answers: Tuple[AnswerRecord, ...],
    question,
    is_correct: bool,
    feedback: Optional[str] = None,
) -> Tuple[AnswerRecord, ...]:
    """Human override of one text answer; objective answers are fixed at submit."""
    if question.type != QuestionType.TEXT.value:
        raise InvalidSubmission("Only text answers can be graded manually")

    updated = list(answers)
    for idx, current in enumerate(updated):
        if current.question_id != question.id:
            continue
        if current.grading_status is None:
            raise InvalidSubmission("Answer was graded at submission and cannot be overridden")
        changes = {
            "is_correct": is_correct,
            "grading_status": GradingStatus.MANUAL_GRADED.value,
        }
        if feedback:
            changes["ai_feedback"] = feedback
        updated[idx] = current.model_copy(update=changes)
        return tuple(updated)
    raise NotFound("Answer not found")


def count_pending(answers: Tuple[AnswerRecord, ...]) -> int:
    return sum(1 for a in answers if a.grading_status == GradingStatus.PENDING.value)
