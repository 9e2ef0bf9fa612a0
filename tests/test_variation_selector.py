import random
from types import SimpleNamespace

import pytest

from grading.variation_selector import pick_variation, render_questions, resolve_variation


QUESTION = SimpleNamespace(id=1, type="single", is_bonus=False, variations=[
    {"text": "A", "options": ["X", "Y"], "correct_answers": ["X"]},
    {"text": "B", "options": ["P", "Q"], "correct_answers": ["P"]},
    {"text": "C", "options": ["X", "Z"], "correct_answers": ["Z"]},
])


def test_pick_variation_returns_one_of_the_variations():
    rng = random.Random(7)
    for _ in range(20):
        assert pick_variation(QUESTION, rng) in QUESTION.variations


def test_pick_variation_reaches_every_variation():
    rng = random.Random(1)
    seen = {pick_variation(QUESTION, rng)["text"] for _ in range(200)}
    assert seen == {"A", "B", "C"}


def test_pick_variation_without_variations():
    with pytest.raises(ValueError):
        pick_variation(SimpleNamespace(id=2, variations=[]))


def test_render_hides_correct_answers():
    rendered = render_questions([QUESTION], random.Random(3))
    assert len(rendered) == 1
    item = rendered[0]
    assert set(item) == {"id", "type", "text", "options", "is_bonus"}
    assert item["text"] in {"A", "B", "C"}


def test_resolve_picks_first_variation_containing_the_selection():
    assert resolve_variation(QUESTION, ["P"])["text"] == "B"
    assert resolve_variation(QUESTION, ["X"])["text"] == "A"
    assert resolve_variation(QUESTION, ["Z"])["text"] == "C"


def test_resolve_falls_back_to_first_variation():
    assert resolve_variation(QUESTION, [])["text"] == "A"
    assert resolve_variation(QUESTION, ["nothing"])["text"] == "A"


def test_resolve_without_variations():
    assert resolve_variation(SimpleNamespace(id=3, variations=[]), ["X"]) is None
