"""
Objective grading and submission validation.

An objective answer is correct when the submitted option set equals the
correct-answer set of ANY variation of the question. Text answers are never
graded here; they are recorded as provisional and left pending for
grading/text_pipeline.py.
"""

from typing import Dict, Iterable, List, Sequence

from database.models import QuestionType, GradingStatus
from grading.errors import InvalidSubmission
from grading.schemas import AnswerIn, AnswerRecord


def is_objective_correct(question, selected_options: Sequence[str]) -> bool:
    selected = set(selected_options or [])
    for v in question.variations or []:
        if selected == set(v.get("correct_answers") or []):
            return True
    return False


def _known_options(question) -> set:
    options = set()
    for v in question.variations or []:
        options.update(v.get("options") or [])
    return options


def validate_answers(questions_by_id: Dict[int, object], answers: Iterable[AnswerIn]) -> None:
    """Raise InvalidSubmission for anything that cannot be graded as submitted."""
    seen = set()
    for ans in answers:
        question = questions_by_id.get(ans.question_id)
        if question is None:
            raise InvalidSubmission(f"Unknown question {ans.question_id}")
        if ans.question_id in seen:
            raise InvalidSubmission(f"Duplicate answer for question {ans.question_id}")
        seen.add(ans.question_id)

        if question.type == QuestionType.TEXT.value:
            if len(ans.selected_options) > 1:
                raise InvalidSubmission(f"Text question {ans.question_id} takes a single answer")
            continue

        distinct = set(ans.selected_options)
        if question.type == QuestionType.SINGLE.value and len(distinct) > 1:
            raise InvalidSubmission(f"Question {ans.question_id} accepts only one option")
        unknown = distinct - _known_options(question)
        if unknown:
            raise InvalidSubmission(
                f"Question {ans.question_id} has no option(s): {', '.join(sorted(unknown))}"
            )


def grade_answers(questions_by_id: Dict[int, object], answers: Iterable[AnswerIn]) -> List[AnswerRecord]:
    """Grade a validated submission into answer snapshots, in submission order."""
    graded: List[AnswerRecord] = []
    for ans in answers:
        question = questions_by_id[ans.question_id]
        if question.type == QuestionType.TEXT.value:
            graded.append(AnswerRecord(
                question_id=ans.question_id,
                selected_options=tuple(ans.selected_options),
                is_correct=False,
                grading_status=GradingStatus.PENDING.value,
            ))
        else:
            graded.append(AnswerRecord(
                question_id=ans.question_id,
                selected_options=tuple(ans.selected_options),
                is_correct=is_objective_correct(question, ans.selected_options),
            ))
    return graded
