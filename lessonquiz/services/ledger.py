"""
Attempt ledger: counts a learner's attempts on a quiz and hands out the next
attempt number.

The count-then-insert sequence is not atomic on its own. Two concurrent
submissions can both read the same count, so the insert is guarded by the
``uq_attempt_number`` unique constraint on (learner_id, quiz_id,
attempt_number). The loser gets an IntegrityError, and SubmissionOrchestrator
rolls back and claims again from a fresh count, which also re-checks the
ceiling.
"""
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.errors import AttemptLimitExceeded
from lessonquiz.models.orm import QuizAttempt


async def count_attempts(db: AsyncSession, learner_id: str, quiz_id: str) -> int:
    stmt = select(func.count(QuizAttempt.id)).where(
        QuizAttempt.learner_id == learner_id, QuizAttempt.quiz_id == quiz_id
    )
    return int(await db.scalar(stmt) or 0)


async def claim_attempt_number(db: AsyncSession, learner_id: str, quiz_id: str, max_attempts: int) -> int:
    """Next 1-based attempt number, or AttemptLimitExceeded when the ceiling is reached."""
    count = await count_attempts(db, learner_id, quiz_id)
    if count >= max_attempts:
        raise AttemptLimitExceeded(max_attempts)
    return count + 1


async def list_attempts(db: AsyncSession, learner_id: str, quiz_id: str) -> List[QuizAttempt]:
    rows = await db.scalars(
        select(QuizAttempt)
        .where(QuizAttempt.learner_id == learner_id, QuizAttempt.quiz_id == quiz_id)
        .order_by(QuizAttempt.attempt_number.desc())
    )
    return list(rows)


async def session_submitted(db: AsyncSession, session_id: str) -> bool:
    return await db.scalar(select(QuizAttempt.id).where(QuizAttempt.session_id == session_id)) is not None
