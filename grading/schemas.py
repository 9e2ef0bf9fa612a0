"""
Pydantic schemas for the grading engine.

Request bodies   → AnswerIn, SubmitRequest, ManualGradeRequest, ...
Snapshots        → AnswerRecord, ScoreTotals (frozen; transformed by pure functions)
Collaborators    → GradingItem / GradingVerdict, GenerationConfig / GeneratedQuestions
"""

from typing import List, Optional, Dict, Any, Tuple, Literal
from pydantic import BaseModel, ConfigDict, Field


# ─── Question model ────────────────────────────────────────────────────────────

class VariationSchema(BaseModel):
    """One phrasing of a question."""
    text: str
    options: List[str] = Field(default_factory=list)
    correct_answers: List[str] = Field(default_factory=list)


class QuestionTemplate(BaseModel):
    """A normalised question template, ready to be stored."""
    type: str   # "single" | "multi" | "text"
    variations: List[VariationSchema]
    is_bonus: bool = False


class QuestionUpdateRequest(BaseModel):
    type: Optional[str] = None
    variations: Optional[List[VariationSchema]] = None


# ─── Generation collaborator ───────────────────────────────────────────────────

class BonusConfig(BaseModel):
    enabled: bool = False
    count: int = Field(0, ge=0, le=50)
    difficulty: str = "Medium"
    source: Literal["file", "inference", "external"] = "file"


class GenerationConfig(BaseModel):
    """Recognised generation options. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")

    difficulty: str = "Medium"
    manual_counts: bool = False
    distribution: Dict[str, int] = Field(default_factory=dict)
    bonus: Optional[BonusConfig] = None


class GeneratedQuestions(BaseModel):
    """Raw generator output. Items are untrusted until grading/ingest.py normalises them."""
    questions: List[Dict[str, Any]] = Field(default_factory=list)
    bonus_questions: List[Dict[str, Any]] = Field(default_factory=list)


class ExamCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    source_ref: str = Field(..., min_length=1, description="Document reference or extracted text")
    num_questions: int = Field(..., ge=1, le=100)
    time_limit: Optional[int] = Field(None, ge=1, le=600, description="Minutes; omit for unlimited")
    config: Optional[GenerationConfig] = None


class ExamShareRequest(BaseModel):
    access_type: Optional[Literal["private", "public"]] = None
    allowed_emails: Optional[List[str]] = None


# ─── Attempts ──────────────────────────────────────────────────────────────────

class AnswerIn(BaseModel):
    question_id: int
    selected_options: List[str] = Field(default_factory=list)


class SubmitRequest(BaseModel):
    answers: List[AnswerIn] = Field(default_factory=list)


class AnswerRecord(BaseModel):
    """
    Immutable snapshot of one stored answer.
    grading_status is None for objective answers.
    """
    model_config = ConfigDict(frozen=True)

    question_id: int
    selected_options: Tuple[str, ...] = ()
    is_correct: bool = False
    grading_status: Optional[str] = None
    ai_feedback: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class ScoreTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    bonus_score: int = 0


class ManualGradeRequest(BaseModel):
    is_correct: bool
    feedback: Optional[str] = None


# ─── Text grading collaborator ─────────────────────────────────────────────────

class GradingItem(BaseModel):
    id: str
    question_text: str
    guideline: str
    answer_text: str


class GradingVerdict(BaseModel):
    id: str
    is_correct: bool
    feedback: str = ""


class BatchGradeSummary(BaseModel):
    graded: int = 0
    still_pending: int = 0
    results_updated: int = 0
    message: str = ""


def load_answers(raw) -> Tuple[AnswerRecord, ...]:
    """Stored JSON answer list → immutable snapshots."""
    return tuple(AnswerRecord.model_validate(a) for a in (raw or []))


def dump_answers(answers) -> List[dict]:
    """Snapshots → a fresh JSON list (never the stored list object)."""
    return [a.to_json() for a in answers]
