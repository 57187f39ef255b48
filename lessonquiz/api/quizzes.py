from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.auth import TokenData, ensure_roles, get_current_user, get_optional_user
from lessonquiz.core.cache import RedisCache, get_cache
from lessonquiz.core.database import get_db
from lessonquiz.models.schemas import (
    AttemptHistory, AttemptOut, QuestionOut, QuestionWithAnswer, QuizOut, QuizReviewOut,
    QuizTakeOut, SubmissionEnvelope, SubmissionIn,
)
from lessonquiz.services import ledger
from lessonquiz.services.repository import QuestionRepository
from lessonquiz.services.sessions import start_session
from lessonquiz.services.submission import SubmissionOrchestrator

router = APIRouter()

REVIEW_ROLES = ("teacher", "admin")


@router.get("/{quiz_id}", response_model=None)
async def get_quiz(
    quiz_id: str,
    include_answers: bool = False,
    questions: Optional[int] = Query(None, ge=1, le=200),
    user: Optional[TokenData] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
) -> Union[QuizTakeOut, QuizReviewOut]:
    repo = QuestionRepository(db, cache)
    if include_answers:
        ensure_roles(user, *REVIEW_ROLES)
        pool = await repo.load_pool(quiz_id)
        return QuizReviewOut(
            quiz=QuizOut.from_record(pool.quiz),
            questions=[QuestionWithAnswer.from_record(q) for q in pool.questions],
            total_questions=len(pool.questions),
        )
    pool = await repo.load_pool(quiz_id)
    session, selected = await start_session(db, pool, questions, learner_id=user.sub if user else None)
    return QuizTakeOut(
        quiz=QuizOut.from_record(pool.quiz),
        questions=[QuestionOut.from_record(q) for q in selected],
        session_id=session.id,
        total_questions=len(selected),
    )


@router.post("/{quiz_id}/submit", response_model=SubmissionEnvelope)
async def submit_quiz(
    quiz_id: str,
    payload: SubmissionIn,
    user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    result = await SubmissionOrchestrator(db, cache).submit(user.sub, quiz_id, payload)
    return SubmissionEnvelope(data=result)


@router.get("/{quiz_id}/attempts", response_model=AttemptHistory)
async def list_attempts(
    quiz_id: str,
    user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    quiz = await QuestionRepository(db).get_quiz(quiz_id)
    attempts = await ledger.list_attempts(db, user.sub, quiz_id)
    max_attempts = quiz.settings.max_attempts
    return AttemptHistory(
        attempts=[AttemptOut.model_validate(a) for a in attempts],
        total_attempts=len(attempts),
        max_attempts=max_attempts,
        remaining_attempts=max(0, max_attempts - len(attempts)),
    )
