import asyncio

import pytest

from generation.question_generator import QuestionGenerator, build_generation_prompt
from grading.errors import InvalidTemplate
from grading.ingest import ingest_templates, normalize_template, normalize_type
from grading.schemas import BonusConfig, GeneratedQuestions, GenerationConfig


def _radio(**overrides):
    raw = {
        "type": "Radio",
        "variations": [
            {"text": "Capital of France?", "options": ["Paris", "Rome"], "correctAnswers": ["Paris"]},
            {"text": "France's capital?", "options": ["Lyon", "Paris"], "correctAnswers": ["Paris"]},
        ],
    }
    raw.update(overrides)
    return raw


class TestNormalizeTemplate:
    def test_maps_ui_type_names(self):
        assert normalize_type("Radio") == "single"
        assert normalize_type("MultiChoice") == "multi"
        assert normalize_type("Text") == "text"

    def test_unknown_type(self):
        with pytest.raises(InvalidTemplate):
            normalize_type("essay-ish")

    def test_radio_template(self):
        template = normalize_template(_radio())
        assert template.type == "single"
        assert len(template.variations) == 2
        assert template.variations[1].correct_answers == ["Paris"]
        assert template.is_bonus is False

    def test_question_key_is_accepted_for_text(self):
        template = normalize_template({
            "type": "Text",
            "variations": [{"question": "Explain recursion", "correctAnswers": ["calls itself"]}],
        })
        assert template.variations[0].text == "Explain recursion"
        assert template.variations[0].options == []

    def test_zero_variations_rejected(self):
        with pytest.raises(InvalidTemplate):
            normalize_template(_radio(variations=[]))

    def test_variation_without_text_rejected(self):
        with pytest.raises(InvalidTemplate):
            normalize_template(_radio(variations=[{"options": ["a"], "correctAnswers": ["a"]}]))

    def test_correct_answer_outside_options_rejected(self):
        with pytest.raises(InvalidTemplate):
            normalize_template(_radio(variations=[
                {"text": "q", "options": ["a", "b"], "correctAnswers": ["c"]},
            ]))

    def test_single_select_with_two_correct_rejected(self):
        with pytest.raises(InvalidTemplate):
            normalize_template(_radio(variations=[
                {"text": "q", "options": ["a", "b"], "correctAnswers": ["a", "b"]},
            ]))


class TestIngestTemplates:
    def test_main_and_bonus(self):
        templates = ingest_templates(GeneratedQuestions(questions=[_radio()], bonus_questions=[_radio()]))
        assert [t.is_bonus for t in templates] == [False, True]

    def test_one_bad_template_rejects_the_batch(self):
        with pytest.raises(InvalidTemplate) as exc:
            ingest_templates(GeneratedQuestions(questions=[_radio(), _radio(type="Nope")]))
        assert "main question 2" in exc.value.message

    def test_nothing_generated(self):
        with pytest.raises(InvalidTemplate):
            ingest_templates(GeneratedQuestions())


class StubClient:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    async def complete(self, prompt, system="", temperature=0.4, max_tokens=2048):
        self.prompts.append(prompt)
        return self.reply


class TestQuestionGenerator:
    def test_prompt_carries_distribution_and_bonus(self):
        config = GenerationConfig(
            difficulty="Hard",
            manual_counts=True,
            distribution={"Radio": 2, "Text": 1},
            bonus=BonusConfig(enabled=True, count=2, source="inference"),
        )
        prompt = build_generation_prompt("Some notes", 3, config)
        assert "Difficulty Level of: Hard" in prompt
        assert '- 2 questions of type "Radio"' in prompt
        assert "ALSO generate 2 BONUS QUESTIONS" in prompt
        assert "Bonus Source: inference" in prompt
        assert "generate 3 VARIATIONS" in prompt

    def test_no_bonus_by_default(self):
        prompt = build_generation_prompt("Some notes", 5)
        assert "Return an empty bonusQuestions array" in prompt

    def test_unknown_config_keys_rejected(self):
        with pytest.raises(ValueError):
            GenerationConfig.model_validate({"difficulty": "Easy", "colour": "blue"})

    def test_generate_reads_camel_case_bonus(self):
        reply = '```json\n{"questions": [{"type": "Radio"}], "bonusQuestions": [{"type": "Text"}, "junk"]}\n```'
        generated = asyncio.run(QuestionGenerator(StubClient(reply)).generate("notes", 1))
        assert generated.questions == [{"type": "Radio"}]
        assert generated.bonus_questions == [{"type": "Text"}]
