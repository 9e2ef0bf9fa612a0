"""
Variation selection for rendering and review.

Rendering picks a variation uniformly at random per question per call.
Review resolves which variation a stored answer most likely came from.
Neither affects scoring (see grading/objective_grader.py).
"""

import random
from typing import List, Optional, Sequence


def pick_variation(question, rng: Optional[random.Random] = None) -> dict:
    """Pick one variation of `question` uniformly at random."""
    chooser = rng or random
    variations = question.variations or []
    if not variations:
        raise ValueError(f"Question {question.id} has no variations")
    return variations[chooser.randrange(len(variations))]


def render_questions(questions, rng: Optional[random.Random] = None) -> List[dict]:
    """Build the taker-facing view: one variation per question, no correct answers."""
    rendered = []
    for q in questions:
        if not q.variations:
            continue
        variation = pick_variation(q, rng)
        rendered.append({
            "id": q.id,
            "type": q.type,
            "text": variation.get("text", ""),
            "options": list(variation.get("options") or []),
            "is_bonus": bool(q.is_bonus),
        })
    return rendered


def resolve_variation(question, selected_options: Sequence[str]) -> Optional[dict]:
    """
    First variation whose options contain every selected option; falls back
    to the first variation when nothing was selected or nothing matches.
    """
    variations = question.variations or []
    if not variations:
        return None
    if selected_options:
        for v in variations:
            options = set(v.get("options") or [])
            if all(s in options for s in selected_options):
                return v
    return variations[0]
