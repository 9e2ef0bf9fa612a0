"""
AI batch grading of free-text answers.

Contract:
    grade_batch([GradingItem]) -> [GradingVerdict]

Order of verdicts is not guaranteed and ids may be missing (those answers
stay pending). Malformed elements are dropped individually; a response with
no usable JSON array at all, or a failed call, raises UpstreamGradingFailure.
"""

import json
import logging
from typing import List

from pydantic import ValidationError

from generation.gpt_client import GptClient, extract_json
from grading.errors import UpstreamGradingFailure
from grading.schemas import GradingItem, GradingVerdict

log = logging.getLogger("grading.pipeline")


GRADING_SYSTEM = "You are an expert exam grader. Output only valid JSON."

GRADING_PROMPT = """I will provide a list of student answers to text-based questions, along with the question and the expected answer guideline.
For each item, decide whether the student's answer is substantially correct according to the guideline.

Return a JSON array. Each element must have:
- "id": (string) the id of the input item, copied exactly
- "isCorrect": (boolean) true if the answer is substantially correct
- "feedback": (string) a very brief explanation (max 1 sentence)

Items to grade:
{items}

Return ONLY the JSON array."""


def _parse_verdict(raw) -> GradingVerdict:
    if not isinstance(raw, dict):
        raise ValueError("verdict is not an object")
    vid = raw.get("id", raw.get("validationId"))
    is_correct = raw.get("isCorrect", raw.get("is_correct"))
    if vid is None or not isinstance(is_correct, bool):
        raise ValueError("verdict missing id or boolean isCorrect")
    return GradingVerdict(id=str(vid), is_correct=is_correct, feedback=str(raw.get("feedback") or ""))


def parse_verdicts(raw_text: str) -> List[GradingVerdict]:
    """Parse a model reply into verdicts, keeping every element that validates."""
    try:
        data = extract_json(raw_text, "[")
    except ValueError as e:
        raise UpstreamGradingFailure(f"Unparsable grading response: {e}")
    if not isinstance(data, list):
        raise UpstreamGradingFailure("Grading response is not a JSON array")

    verdicts: List[GradingVerdict] = []
    for i, element in enumerate(data):
        try:
            verdicts.append(_parse_verdict(element))
        except (ValueError, ValidationError) as e:
            log.warning(f"[BATCH] dropping malformed verdict #{i}: {e}")
    if data and not verdicts:
        raise UpstreamGradingFailure("No usable verdicts in grading response")
    return verdicts


class TextAnswerGrader:
    """Grading collaborator backed by the injected GptClient."""

    def __init__(self, client: GptClient):
        self.client = client

    async def grade_batch(self, items: List[GradingItem]) -> List[GradingVerdict]:
        if not items:
            return []
        payload = json.dumps([
            {
                "id": it.id,
                "questionText": it.question_text,
                "expectedAnswerGuidelines": it.guideline,
                "userAnswer": it.answer_text,
            }
            for it in items
        ], ensure_ascii=False)
        try:
            raw = await self.client.complete(
                GRADING_PROMPT.format(items=payload),
                system=GRADING_SYSTEM,
                temperature=0.0,
                max_tokens=4096,
            )
        except Exception as e:
            log.error(f"[BATCH] grading call failed: {e}")
            raise UpstreamGradingFailure(f"Grading call failed: {e}") from e
        return parse_verdicts(raw)
