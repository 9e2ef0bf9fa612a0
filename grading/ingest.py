"""
Normalise generator output into storable question templates.

The generator is a language model, so its JSON drifts: question text shows
up under "question" or "prompt", correct answers under camelCase, types
under their UI names. Anything that still cannot form a valid question is
rejected with InvalidTemplate.
"""

import logging
from typing import Any, Dict, List, Optional

from database.models import QuestionType
from grading.errors import InvalidTemplate
from grading.schemas import GeneratedQuestions, QuestionTemplate, VariationSchema

log = logging.getLogger("generation.pipeline")

TYPE_ALIASES = {
    "radio": QuestionType.SINGLE.value,
    "single": QuestionType.SINGLE.value,
    "single-select": QuestionType.SINGLE.value,
    "mcq": QuestionType.SINGLE.value,
    "multichoice": QuestionType.MULTI.value,
    "multi": QuestionType.MULTI.value,
    "multi-select": QuestionType.MULTI.value,
    "checkbox": QuestionType.MULTI.value,
    "text": QuestionType.TEXT.value,
    "free": QuestionType.TEXT.value,
}

TEXT_KEYS = ("text", "question", "prompt", "question_text")


def normalize_type(raw: Optional[str]) -> str:
    key = (raw or "").strip().lower()
    if key not in TYPE_ALIASES:
        raise InvalidTemplate(f"Unknown question type: {raw!r}")
    return TYPE_ALIASES[key]


def _variation_text(raw: Dict[str, Any]) -> str:
    for key in TEXT_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _string_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(v).strip() for v in value if str(v).strip()]


def validate_variations(qtype: str, variations: List[VariationSchema]) -> None:
    """Enforce the per-type variation invariants."""
    if not variations:
        raise InvalidTemplate("Question has no variations")
    for i, v in enumerate(variations):
        if not v.text.strip():
            raise InvalidTemplate(f"Variation {i} has no text")
        if qtype == QuestionType.TEXT.value:
            continue
        if not v.options:
            raise InvalidTemplate(f"Variation {i} has no options")
        if not v.correct_answers:
            raise InvalidTemplate(f"Variation {i} has no correct answers")
        missing = set(v.correct_answers) - set(v.options)
        if missing:
            raise InvalidTemplate(f"Variation {i} correct answers not among options: {sorted(missing)}")
        if qtype == QuestionType.SINGLE.value and len(set(v.correct_answers)) != 1:
            raise InvalidTemplate(f"Variation {i} of a single-select question needs exactly one correct answer")


def normalize_template(raw: Dict[str, Any], is_bonus: bool = False) -> QuestionTemplate:
    qtype = normalize_type(raw.get("type"))
    variations = []
    for v in raw.get("variations") or []:
        if not isinstance(v, dict):
            continue
        options = [] if qtype == QuestionType.TEXT.value else _string_list(v.get("options"))
        correct = v.get("correct_answers", v.get("correctAnswers"))
        variations.append(VariationSchema(
            text=_variation_text(v),
            options=options,
            correct_answers=_string_list(correct),
        ))
    validate_variations(qtype, variations)
    return QuestionTemplate(type=qtype, variations=variations, is_bonus=is_bonus)


def ingest_templates(generated: GeneratedQuestions) -> List[QuestionTemplate]:
    """
    Normalise main and bonus templates. A single bad template rejects the
    whole batch so an exam is never stored half-built.
    """
    templates: List[QuestionTemplate] = []
    for group, is_bonus in ((generated.questions, False), (generated.bonus_questions, True)):
        for i, raw in enumerate(group):
            try:
                templates.append(normalize_template(raw, is_bonus=is_bonus))
            except InvalidTemplate as e:
                label = "bonus" if is_bonus else "main"
                log.warning(f"[INGEST] {label} template {i} rejected: {e.message}")
                raise InvalidTemplate(f"{label} question {i + 1}: {e.message}")
    if not templates:
        raise InvalidTemplate("Generator returned no questions")
    return templates
