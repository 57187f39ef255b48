from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.cache import RedisCache
from lessonquiz.core.errors import NoQuestionsError, QuestionNotFound, QuizNotFound
from lessonquiz.models.orm import Question, Quiz
from lessonquiz.models.schemas import QuestionRecord, QuizPool, QuizRecord, QuizSettings

logger = logging.getLogger(__name__)


def _quiz_record(quiz: Quiz) -> QuizRecord:
    return QuizRecord(
        id=quiz.id, lesson_id=quiz.lesson_id, title=quiz.title, description=quiz.description,
        passing_score=quiz.passing_score, settings=QuizSettings.model_validate(quiz.quiz_settings or {}),
    )


def pool_cache_key(quiz_id: str) -> str:
    return f"quiz:{quiz_id}:pool"


async def invalidate_pool(cache: Optional[RedisCache], quiz_id: str):
    """Drop a cached pool after its quiz or questions change."""
    if cache is not None:
        await cache.delete(pool_cache_key(quiz_id))


class QuestionRepository:
    """Reads quizzes and their question pools. Never writes."""

    def __init__(self, db: AsyncSession, cache: Optional[RedisCache] = None):
        self.db = db
        self.cache = cache

    def _pool_key(self, quiz_id: str) -> str:
        return pool_cache_key(quiz_id)

    async def get_quiz(self, quiz_id: str) -> QuizRecord:
        quiz = await self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))
        if not quiz:
            raise QuizNotFound()
        return _quiz_record(quiz)

    async def get_questions(self, quiz_id: str) -> List[QuestionRecord]:
        rows = await self.db.scalars(
            select(Question).where(Question.quiz_id == quiz_id).order_by(Question.created_at, Question.id)
        )
        return [QuestionRecord.model_validate(q) for q in rows]

    async def load_pool(self, quiz_id: str) -> QuizPool:
        """Quiz metadata plus its full ordered question set, canonical answers included."""
        if self.cache is not None:
            cached = await self.cache.get(self._pool_key(quiz_id))
            if cached is not None:
                return QuizPool.model_validate(cached)
        quiz = await self.get_quiz(quiz_id)
        questions = await self.get_questions(quiz_id)
        if not questions:
            raise NoQuestionsError()
        pool = QuizPool(quiz=quiz, questions=questions)
        if self.cache is not None:
            await self.cache.set(self._pool_key(quiz_id), pool.model_dump(mode="json"))
        return pool

    async def get_question(self, question_id: str) -> QuestionRecord:
        question = await self.db.scalar(select(Question).where(Question.id == question_id))
        if not question:
            raise QuestionNotFound()
        return QuestionRecord.model_validate(question)
