"""
Typed request/response contracts and the read-only records the services pass around.

Successful submissions are wrapped in ``SubmissionEnvelope`` and every failure
in ``ErrorEnvelope``; ``success`` is the discriminator.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lessonquiz.core.config import settings
from lessonquiz.core.errors import ErrorCode
from lessonquiz.models.orm import QuestionType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Records ==========

class QuizSettings(BaseModel):
    max_attempts: int = Field(
        default_factory=lambda: settings.DEFAULT_MAX_ATTEMPTS, ge=1,
        validation_alias=AliasChoices("max_attempts", "max_retries"),
    )
    question_count: int = Field(default_factory=lambda: settings.DEFAULT_QUESTION_COUNT, ge=1)


class QuizRecord(BaseModel):
    id: str
    lesson_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    passing_score: float
    settings: QuizSettings = Field(default_factory=QuizSettings)


class QuestionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    question_text: str
    question_type: QuestionType
    options: Optional[List[str]] = None
    correct_answer: str
    points: int
    hint: Optional[str] = None
    explanation: Optional[str] = None
    difficulty: str = "medium"
    time_limit: Optional[int] = None


class QuizPool(BaseModel):
    quiz: QuizRecord
    questions: List[QuestionRecord]

    def question_map(self) -> Dict[str, QuestionRecord]:
        return {q.id: q for q in self.questions}


# ========== Read path ==========

class QuestionOut(BaseModel):
    id: str
    type: QuestionType
    question_text: str
    options: Optional[List[str]] = None
    points: int
    time_limit: Optional[int] = None
    difficulty: str

    @classmethod
    def from_record(cls, q: QuestionRecord) -> "QuestionOut":
        return cls(
            id=q.id, type=q.question_type, question_text=q.question_text, options=q.options,
            points=q.points, time_limit=q.time_limit, difficulty=q.difficulty,
        )


class QuestionWithAnswer(QuestionOut):
    correct_answer: str
    explanation: Optional[str] = None
    hint: Optional[str] = None

    @classmethod
    def from_record(cls, q: QuestionRecord) -> "QuestionWithAnswer":
        return cls(
            **QuestionOut.from_record(q).model_dump(),
            correct_answer=q.correct_answer, explanation=q.explanation, hint=q.hint,
        )


class QuizOut(BaseModel):
    id: str
    lesson_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    passing_score: float
    max_attempts: int
    question_count: int

    @classmethod
    def from_record(cls, quiz: QuizRecord) -> "QuizOut":
        return cls(
            id=quiz.id, lesson_id=quiz.lesson_id, title=quiz.title, description=quiz.description,
            passing_score=quiz.passing_score, max_attempts=quiz.settings.max_attempts,
            question_count=quiz.settings.question_count,
        )


class QuizTakeOut(BaseModel):
    """Display mode: a sampled session question set without answers."""
    quiz: QuizOut
    questions: List[QuestionOut]
    session_id: str
    total_questions: int


class QuizReviewOut(BaseModel):
    """Review mode: the full ordered pool with answers and explanations."""
    quiz: QuizOut
    questions: List[QuestionWithAnswer]
    total_questions: int


class HintOut(BaseModel):
    question_id: str
    hint: str


# ========== Submission ==========

class SubmissionIn(BaseModel):
    answers: Dict[str, Optional[str]] = Field(default_factory=dict)
    total_time: float = Field(ge=0)
    focus_lost_count: int = Field(default=0, ge=0)
    tab_switches: int = Field(default=0, ge=0)
    session_id: Optional[str] = None
    response_times: Optional[Dict[str, Annotated[float, Field(ge=0)]]] = None


class ResponseDetail(CamelModel):
    question_id: str
    question: str
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool
    points: int
    max_points: int
    time_bonus: int = 0
    response_time: Optional[float] = None


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    learner_id: str
    attempt_number: int
    session_id: Optional[str] = None
    total_questions: int
    correct_answers: int
    score: int
    max_score: int
    score_percentage: float
    time_spent: float
    passed: bool
    focus_lost_count: int
    tab_switches: int
    completed_at: datetime


class AttemptWithResponses(AttemptOut):
    responses: List[ResponseDetail]


class SubmissionSummary(CamelModel):
    score: int
    max_score: int
    percentage: float
    correct_answers: int
    total_questions: int
    passed: bool
    time_spent: float
    attempt_number: int
    time_bonus: int
    remaining_attempts: int


class SubmissionResult(BaseModel):
    attempt: AttemptWithResponses
    summary: SubmissionSummary


class SubmissionEnvelope(BaseModel):
    success: Literal[True] = True
    data: SubmissionResult


class AttemptHistory(CamelModel):
    attempts: List[AttemptOut]
    total_attempts: int
    max_attempts: int
    remaining_attempts: int


# ========== Errors ==========

class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorEnvelope(BaseModel):
    success: Literal[False] = False
    error: ErrorBody
