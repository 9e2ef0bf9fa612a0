"""
Question generation: multi-variation quiz templates from a source document.

Produces {questions, bonus_questions}; every question carries 3 variations
that ask the same concept with different phrasing/options. The output is
raw and untrusted; grading/ingest.py normalises and validates it.
"""

import json
import logging
from typing import Optional

from generation.gpt_client import GptClient, extract_json
from grading.schemas import GenerationConfig, GeneratedQuestions

log = logging.getLogger("generation.pipeline")

VARIATIONS_PER_QUESTION = 3
MAX_SOURCE_CHARS = 24000


GENERATION_SYSTEM = "You are an expert exam creator. Output only valid JSON."

GENERATION_PROMPT = """Analyze the source document below.

SECTION 1: MAIN EXAM
Generate {count} questions with a Difficulty Level of: {difficulty}.
{type_instructions}

SECTION 2: BONUS QUESTIONS
{bonus_instructions}

For EACH question (Main and Bonus), generate {variations} VARIATIONS.
The variations must ask the same core concept but be phrased differently or
have slightly different options (if multiple choice).

- "Radio": exactly one correct answer.
- "MultiChoice": one or more correct answers.
- "Text": free-text answer; put the key points a correct answer must contain in "correctAnswers" and leave "options" empty.

CRITICAL: the question text MUST be in a field named "text". Do NOT use "question" or "prompt".
Every entry of "correctAnswers" for Radio/MultiChoice must be copied verbatim from "options".

Return ONLY a JSON object with two arrays:
{{
  "questions": [
    {{
      "type": "Radio" | "MultiChoice" | "Text",
      "variations": [
        {{"text": "...", "options": ["...", "..."], "correctAnswers": ["..."]}}
      ]
    }}
  ],
  "bonusQuestions": [ ...same schema... ]
}}

SOURCE DOCUMENT:
---
{source}
---
"""

BONUS_PROMPT = """ALSO generate {count} BONUS QUESTIONS.
Bonus Difficulty: {difficulty}.
Bonus Source: {source}
  - If "file": questions strictly based on the document.
  - If "inference": deduce concepts not explicitly stated but implied.
  - If "external": general knowledge related to the topic but not in the text.
"""


def _type_instructions(count: int, config: GenerationConfig) -> str:
    if config.manual_counts and config.distribution:
        lines = ["You must strictly follow this distribution of question types:"]
        for qtype, n in config.distribution.items():
            lines.append(f'- {n} questions of type "{qtype}"')
        lines.append(f"Total questions: {count}")
        return "\n".join(lines)
    return f'Create {count} distinct questions. Randomly assign types ("Radio", "MultiChoice", "Text").'


def _bonus_instructions(config: GenerationConfig) -> str:
    bonus = config.bonus
    if bonus is None or not bonus.enabled or bonus.count <= 0:
        return "None. Return an empty bonusQuestions array."
    return BONUS_PROMPT.format(count=bonus.count, difficulty=bonus.difficulty, source=bonus.source)


def build_generation_prompt(source_ref: str, count: int, config: Optional[GenerationConfig] = None) -> str:
    config = config or GenerationConfig()
    return GENERATION_PROMPT.format(
        count=count,
        difficulty=config.difficulty,
        type_instructions=_type_instructions(count, config),
        bonus_instructions=_bonus_instructions(config),
        variations=VARIATIONS_PER_QUESTION,
        source=source_ref[:MAX_SOURCE_CHARS],
    )


class QuestionGenerator:
    """Generation collaborator: source + count + config → raw question templates."""

    def __init__(self, client: GptClient):
        self.client = client

    async def generate(self, source_ref: str, count: int, config: Optional[GenerationConfig] = None) -> GeneratedQuestions:
        prompt = build_generation_prompt(source_ref, count, config)
        log.info(f"[GENERATE] count={count} config={json.dumps(config.model_dump() if config else None)}")
        raw = await self.client.complete(prompt, system=GENERATION_SYSTEM, temperature=0.6, max_tokens=8192)
        data = extract_json(raw, "{")
        if not isinstance(data, dict):
            raise ValueError("Generator response is not a JSON object")
        return GeneratedQuestions(
            questions=[q for q in data.get("questions") or [] if isinstance(q, dict)],
            bonus_questions=[
                q for q in (data.get("bonusQuestions") or data.get("bonus_questions") or [])
                if isinstance(q, dict)
            ],
        )
