"""
SQLAlchemy models for the exam engine
Exam → Question (with variations) and Exam → Result (with embedded answers)

Answers are stored as one JSON list on the Result row and always rewritten
as a whole; see database/crud.py for the locked read-modify-write helpers.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from database.database import Base


class QuestionType(str, enum.Enum):
    """Question types. Wire aliases from the generator are mapped in grading/ingest.py"""
    SINGLE = "single"
    MULTI = "multi"
    TEXT = "text"


class ExamStatus(str, enum.Enum):
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ResultStatus(str, enum.Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class GradingStatus(str, enum.Enum):
    PENDING = "pending"
    AI_GRADED = "ai-graded"
    MANUAL_GRADED = "manual-graded"


# ==========================================
# EXAMS & QUESTIONS
# ==========================================

class Exam(Base):
    """
    An exam owned by its creator.
    time_limit is in minutes; NULL means unlimited.
    allowed_emails is only consulted when access_type is 'private'.
    """
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    creator_id = Column(Integer, nullable=False, index=True)
    source_ref = Column(String(500), nullable=True)
    status = Column(String(20), default=ExamStatus.PROCESSING.value, nullable=False)
    error_message = Column(Text, nullable=True)
    access_type = Column(String(20), default="private", nullable=False)
    allowed_emails = Column(JSON, default=list, nullable=False)
    time_limit = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    questions = relationship(
        "Question", back_populates="exam",
        cascade="all, delete-orphan", order_by="Question.id",
    )
    results = relationship("Result", back_populates="exam", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Exam(id={self.id}, title='{self.title}', status='{self.status}')>"


class Question(Base):
    """
    One question with an ordered, non-empty list of variations.
    Each variation is {"text", "options", "correct_answers"}; text questions
    keep grading guidelines in correct_answers and have no options.
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    variations = Column(JSON, nullable=False)
    is_bonus = Column(Boolean, default=False, nullable=False)

    exam = relationship("Exam", back_populates="questions")

    def __repr__(self):
        return f"<Question(id={self.id}, exam_id={self.exam_id}, type='{self.type}', bonus={self.is_bonus})>"


# ==========================================
# ATTEMPTS
# ==========================================

class Result(Base):
    """
    A taker's single attempt at an exam.
    At most one row per (user_id, exam_id); a reset deletes the row.
    version is bumped on every write so concurrent grading passes on the
    same result cannot overwrite each other.
    """
    __tablename__ = "results"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), default=ResultStatus.IN_PROGRESS.value, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    score = Column(Integer, default=0, nullable=False)
    bonus_score = Column(Integer, default=0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    total_bonus_questions = Column(Integer, default=0, nullable=False)
    answers = Column(JSON, default=list, nullable=False)
    version = Column(Integer, nullable=False)

    exam = relationship("Exam", back_populates="results")

    __table_args__ = (UniqueConstraint("user_id", "exam_id", name="uq_results_user_exam"),)
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Result(id={self.id}, exam_id={self.exam_id}, user_id={self.user_id}, status='{self.status}')>"


# ==========================================
# AI CALL LOG
# ==========================================

class AiCallLog(Base):
    """One row per call to the generative model (question generation or batch grading)."""
    __tablename__ = "ai_call_logs"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False, index=True)  # generate | grade
    user_id = Column(Integer, nullable=False)
    exam_id = Column(Integer, nullable=True, index=True)
    prompt = Column(Text, nullable=True)
    response = Column(JSON, nullable=True)
    requested_at = Column(DateTime(timezone=True), nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=False)
    duration_ms = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<AiCallLog(kind='{self.kind}', exam_id={self.exam_id}, duration_ms={self.duration_ms})>"
