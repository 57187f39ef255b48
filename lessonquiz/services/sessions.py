from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging
import random

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lessonquiz.core.config import settings
from lessonquiz.core.errors import SessionNotFound
from lessonquiz.models.orm import QuizAttempt, QuizSession, QuizSessionItem, utcnow
from lessonquiz.models.schemas import QuestionRecord, QuizPool
from lessonquiz.services.sampler import sample_session_questions

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def start_session(
    db: AsyncSession,
    pool: QuizPool,
    question_count: Optional[int] = None,
    rng: Optional[random.Random] = None,
    learner_id: Optional[str] = None,
) -> tuple[QuizSession, List[QuestionRecord]]:
    """Sample the session question set and record which questions were presented."""
    k = question_count or pool.quiz.settings.question_count
    selected = sample_session_questions(pool.questions, k, rng)
    now = utcnow()
    session = QuizSession(
        quiz_id=pool.quiz.id,
        learner_id=learner_id,
        started_at=now,
        expires_at=now + timedelta(minutes=settings.SESSION_TTL_MINUTES),
        items=[QuizSessionItem(question_id=q.id, position=i) for i, q in enumerate(selected)],
    )
    db.add(session)
    await db.commit()
    logger.info(f"Quiz {pool.quiz.id}: session {session.id} with {len(selected)} of {len(pool.questions)} questions")
    return session, selected


async def presented_questions(
    db: AsyncSession, session_id: str, pool: QuizPool, learner_id: Optional[str] = None
) -> List[QuestionRecord]:
    """The questions a session showed, in presentation order.

    A session started by a signed-in learner can only be submitted by that learner.
    """
    session = await db.scalar(
        select(QuizSession).where(QuizSession.id == session_id).options(selectinload(QuizSession.items))
    )
    if not session or session.quiz_id != pool.quiz.id or _as_utc(session.expires_at) < utcnow():
        raise SessionNotFound()
    if session.learner_id is not None and session.learner_id != learner_id:
        raise SessionNotFound()
    by_id = pool.question_map()
    return [by_id[item.question_id] for item in session.items if item.question_id in by_id]


async def latest_open_session(db: AsyncSession, learner_id: str, quiz_id: str) -> Optional[str]:
    """Id of the learner's most recent unexpired, unsubmitted session on a quiz."""
    submitted = select(QuizAttempt.session_id).where(QuizAttempt.session_id.is_not(None))
    return await db.scalar(
        select(QuizSession.id)
        .where(
            QuizSession.learner_id == learner_id,
            QuizSession.quiz_id == quiz_id,
            QuizSession.expires_at > utcnow(),
            QuizSession.id.not_in(submitted),
        )
        .order_by(QuizSession.started_at.desc())
        .limit(1)
    )


async def purge_expired_sessions(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Delete expired sessions with their items. Returns the number of sessions removed."""
    expired = select(QuizSession.id).where(QuizSession.expires_at < (now or utcnow()))
    await db.execute(
        delete(QuizSessionItem).where(QuizSessionItem.session_id.in_(expired)),
        execution_options={"synchronize_session": False},
    )
    result = await db.execute(
        delete(QuizSession).where(QuizSession.id.in_(expired)), execution_options={"synchronize_session": False}
    )
    await db.commit()
    logger.info(f"Purged {result.rowcount} expired quiz sessions")
    return result.rowcount
