from types import SimpleNamespace

import pytest

from grading.errors import InvalidSubmission
from grading.objective_grader import grade_answers, is_objective_correct, validate_answers
from grading.schemas import AnswerIn


def _question(qid, qtype, variations, is_bonus=False):
    return SimpleNamespace(id=qid, type=qtype, variations=variations, is_bonus=is_bonus)


RADIO = _question(1, "single", [
    {"text": "Pick X", "options": ["X", "Y"], "correct_answers": ["X"]},
    {"text": "Pick P", "options": ["P", "Q"], "correct_answers": ["P"]},
])
MULTI = _question(2, "multi", [
    {"text": "Primes?", "options": ["2", "3", "4"], "correct_answers": ["2", "3"]},
])
ESSAY = _question(3, "text", [
    {"text": "Explain GC", "options": [], "correct_answers": ["frees unreachable memory"]},
])
BY_ID = {q.id: q for q in (RADIO, MULTI, ESSAY)}


class TestIsObjectiveCorrect:
    def test_matches_a_variation_other_than_the_rendered_one(self):
        assert is_objective_correct(RADIO, ["P"]) is True

    def test_matches_first_variation(self):
        assert is_objective_correct(RADIO, ["X"]) is True

    def test_wrong_option(self):
        assert is_objective_correct(RADIO, ["Y"]) is False

    def test_multi_is_order_insensitive(self):
        assert is_objective_correct(MULTI, ["3", "2"]) is True

    def test_multi_ignores_duplicates(self):
        assert is_objective_correct(MULTI, ["2", "3", "2"]) is True

    def test_multi_subset_is_wrong(self):
        assert is_objective_correct(MULTI, ["2"]) is False

    def test_multi_superset_is_wrong(self):
        assert is_objective_correct(MULTI, ["2", "3", "4"]) is False

    def test_empty_selection_is_wrong(self):
        assert is_objective_correct(RADIO, []) is False

    def test_mixing_options_across_variations_is_wrong(self):
        question = _question(9, "multi", [
            {"text": "a", "options": ["A", "B", "C"], "correct_answers": ["A", "B"]},
            {"text": "b", "options": ["D", "E", "F"], "correct_answers": ["D", "E"]},
        ])
        assert is_objective_correct(question, ["A", "E"]) is False


class TestValidateAnswers:
    def test_valid_submission_passes(self):
        validate_answers(BY_ID, [
            AnswerIn(question_id=1, selected_options=["P"]),
            AnswerIn(question_id=2, selected_options=["2", "3"]),
            AnswerIn(question_id=3, selected_options=["it frees memory"]),
        ])

    def test_partial_submission_passes(self):
        validate_answers(BY_ID, [AnswerIn(question_id=2, selected_options=[])])

    def test_unknown_question(self):
        with pytest.raises(InvalidSubmission):
            validate_answers(BY_ID, [AnswerIn(question_id=99, selected_options=["X"])])

    def test_duplicate_question(self):
        with pytest.raises(InvalidSubmission):
            validate_answers(BY_ID, [
                AnswerIn(question_id=1, selected_options=["X"]),
                AnswerIn(question_id=1, selected_options=["P"]),
            ])

    def test_single_select_with_two_options(self):
        with pytest.raises(InvalidSubmission):
            validate_answers(BY_ID, [AnswerIn(question_id=1, selected_options=["X", "Y"])])

    def test_single_select_repeating_one_option_is_accepted(self):
        validate_answers(BY_ID, [AnswerIn(question_id=1, selected_options=["X", "X"])])

    def test_option_from_no_variation(self):
        with pytest.raises(InvalidSubmission):
            validate_answers(BY_ID, [AnswerIn(question_id=2, selected_options=["5"])])

    def test_text_with_two_entries(self):
        with pytest.raises(InvalidSubmission):
            validate_answers(BY_ID, [AnswerIn(question_id=3, selected_options=["a", "b"])])


class TestGradeAnswers:
    def test_objective_answers_are_graded_and_text_left_pending(self):
        graded = grade_answers(BY_ID, [
            AnswerIn(question_id=1, selected_options=["P"]),
            AnswerIn(question_id=2, selected_options=["2"]),
            AnswerIn(question_id=3, selected_options=["something"]),
        ])

        assert [a.question_id for a in graded] == [1, 2, 3]
        assert graded[0].is_correct is True
        assert graded[0].grading_status is None
        assert graded[1].is_correct is False
        assert graded[2].is_correct is False
        assert graded[2].grading_status == "pending"
        assert graded[2].selected_options == ("something",)
