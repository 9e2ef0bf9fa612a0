from datetime import datetime, timezone

import pytest

from conftest import seed_exam, single
from database import crud, models
from grading.errors import ResultBusy
from grading.schemas import AnswerRecord, ScoreTotals


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def exam(db):
    exam_id, qids = seed_exam(db, [
        ("text", [{"text": "Explain", "options": [], "correct_answers": ["x"]}], False),
        ("single", [single("Pick", ["a", "b"], ["a"])], True),
    ])
    return exam_id, qids


def _completed(db, exam_id, qids, user_id=2):
    result, _ = crud.get_or_create_result(db, exam_id, user_id, _now())
    answers = [AnswerRecord(question_id=qids[0], selected_options=("x",), grading_status="pending")]
    assert crud.complete_result(db, result.id, answers, ScoreTotals(), 1, 1, _now())
    return result.id


def _bump_version(db, result_id):
    db.query(models.Result).filter(models.Result.id == result_id).update(
        {models.Result.version: models.Result.version + 1},
        synchronize_session=False,
    )


def _mark_correct(answers):
    return tuple(a.model_copy(update={"is_correct": True, "grading_status": "ai-graded"}) for a in answers)


def test_start_is_idempotent(db, exam):
    exam_id, _ = exam
    first, created = crud.get_or_create_result(db, exam_id, 2, _now())
    again, created_again = crud.get_or_create_result(db, exam_id, 2, _now())
    assert created is True
    assert created_again is False
    assert again.id == first.id


def test_racing_start_falls_back_to_the_winner(db, exam, monkeypatch):
    exam_id, _ = exam
    winner, _ = crud.get_or_create_result(db, exam_id, 2, _now())
    winner_id = winner.id

    real_lookup = crud.get_result_for
    calls = {"n": 0}

    def miss_once(session, e_id, u_id):
        calls["n"] += 1
        return None if calls["n"] == 1 else real_lookup(session, e_id, u_id)

    monkeypatch.setattr(crud, "get_result_for", miss_once)
    result, created = crud.get_or_create_result(db, exam_id, 2, _now())

    assert created is False
    assert result.id == winner_id
    assert db.query(models.Result).count() == 1


def test_complete_happens_once(db, exam):
    exam_id, qids = exam
    result_id = _completed(db, exam_id, qids)

    again = crud.complete_result(db, result_id, [], ScoreTotals(score=5), 1, 1, _now())

    assert again is False
    db.expire_all()
    stored = crud.get_result(db, result_id)
    assert stored.score == 0
    assert len(stored.answers) == 1


def test_update_retries_after_concurrent_write(db, exam):
    exam_id, qids = exam
    result_id = _completed(db, exam_id, qids)
    calls = {"n": 0}

    def transform(answers):
        calls["n"] += 1
        if calls["n"] == 1:
            _bump_version(db, result_id)
        return _mark_correct(answers)

    updated = crud.update_result_answers(db, result_id, transform, bonus_question_ids={qids[1]})

    assert calls["n"] == 2
    assert updated.score == 1
    assert updated.answers[0]["grading_status"] == "ai-graded"


def test_update_gives_up_after_max_retries(db, exam):
    exam_id, qids = exam
    result_id = _completed(db, exam_id, qids)

    def transform(answers):
        _bump_version(db, result_id)
        return _mark_correct(answers)

    with pytest.raises(ResultBusy):
        crud.update_result_answers(db, result_id, transform, set(), max_retries=2)

    db.expire_all()
    assert crud.get_result(db, result_id).score == 0


def test_update_without_changes_writes_nothing(db, exam):
    exam_id, qids = exam
    result_id = _completed(db, exam_id, qids)
    version = crud.get_result(db, result_id).version

    result = crud.update_result_answers(db, result_id, lambda answers: None, set())

    assert result.version == version


def test_update_of_deleted_result(db):
    assert crud.update_result_answers(db, 12345, lambda answers: answers, set()) is None
