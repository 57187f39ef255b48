from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import enum
import uuid

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lessonquiz.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


# ========== Content Models (read-only to the engine) ==========

class Quiz(Base):
    __tablename__ = "lesson_quizzes"
    __table_args__ = (
        Index("idx_lq_lesson", "lesson_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    lesson_id: Mapped[Optional[str]] = mapped_column(String(36))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False, default=70.0)
    quiz_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    questions: Mapped[List["Question"]] = relationship(back_populates="quiz", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "lesson_questions"
    __table_args__ = (
        Index("idx_lqn_quiz", "quiz_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("lesson_quizzes.id", ondelete="CASCADE"), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        SQLEnum(QuestionType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False, default=QuestionType.MULTIPLE_CHOICE,
    )
    options: Mapped[Optional[List[str]]] = mapped_column(JSON)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    hint: Mapped[Optional[str]] = mapped_column(Text)
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    difficulty: Mapped[str] = mapped_column(String(20), default="medium")
    time_limit: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")


# ========== Delivery Models ==========

class QuizSession(Base):
    __tablename__ = "quiz_sessions"
    __table_args__ = (
        Index("idx_qs_quiz", "quiz_id"),
        Index("idx_qs_learner_quiz", "learner_id", "quiz_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("lesson_quizzes.id", ondelete="CASCADE"), nullable=False)
    learner_id: Mapped[Optional[str]] = mapped_column(String(255))  # None for anonymous previews
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items: Mapped[List["QuizSessionItem"]] = relationship(
        back_populates="session", cascade="all, delete-orphan", order_by="QuizSessionItem.position"
    )


class QuizSessionItem(Base):
    __tablename__ = "quiz_session_items"
    __table_args__ = (
        UniqueConstraint("session_id", "position", name="uq_session_item_position"),
        UniqueConstraint("session_id", "question_id", name="uq_session_item_question"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey("quiz_sessions.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    session: Mapped["QuizSession"] = relationship(back_populates="items")


# ========== Attempt Ledger ==========

class QuizAttempt(Base):
    __tablename__ = "lesson_quiz_attempts"
    __table_args__ = (
        Index("idx_lqa_learner_quiz", "learner_id", "quiz_id"),
        UniqueConstraint("learner_id", "quiz_id", "attempt_number", name="uq_attempt_number"),
        UniqueConstraint("session_id", name="uq_attempt_session"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("lesson_quizzes.id"), nullable=False)
    learner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(36))
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    focus_lost_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tab_switches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    responses: Mapped[List["QuizResponse"]] = relationship(back_populates="attempt", cascade="all, delete-orphan")


class QuizResponse(Base):
    __tablename__ = "lesson_quiz_responses"
    __table_args__ = (
        Index("idx_lqr_attempt", "attempt_id"),
        UniqueConstraint("attempt_id", "question_id", name="uq_response_question"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    attempt_id: Mapped[str] = mapped_column(String(36), ForeignKey("lesson_quiz_attempts.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("lesson_questions.id"), nullable=False)
    student_answer: Mapped[Optional[str]] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent: Mapped[Optional[float]] = mapped_column(Float)

    attempt: Mapped["QuizAttempt"] = relationship(back_populates="responses")
