"""
Score aggregation.

Scores are always derived from the full answer list and replace what is
stored; nothing is ever incremented.
"""

from typing import Iterable, Set, Tuple

from grading.schemas import AnswerRecord, ScoreTotals


def aggregate_scores(answers: Iterable[AnswerRecord], bonus_question_ids: Set[int]) -> ScoreTotals:
    score = 0
    bonus_score = 0
    for a in answers:
        if not a.is_correct:
            continue
        if a.question_id in bonus_question_ids:
            bonus_score += 1
        else:
            score += 1
    return ScoreTotals(score=score, bonus_score=bonus_score)


def count_totals(questions) -> Tuple[int, int]:
    """(total_questions, total_bonus_questions), fixed at submission time."""
    total = 0
    bonus = 0
    for q in questions:
        if q.is_bonus:
            bonus += 1
        else:
            total += 1
    return total, bonus


def bonus_ids(questions) -> Set[int]:
    return {q.id for q in questions if q.is_bonus}
