import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./lessonquiz-test.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["APP_SECRET"] = "test-secret"
os.environ["ENABLE_DEV_LOGIN"] = "true"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from lessonquiz.core.auth import create_token
from lessonquiz.core.database import build_engine, build_sessionmaker, get_db, init_db
from lessonquiz.main import app
from lessonquiz.models.orm import Question, QuestionType, Quiz, QuizAttempt, utcnow


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'quiz.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def seed_quiz(sessionmaker):
    """Factory that stores a quiz with ``n`` multiple choice questions whose answer is "A"."""

    async def _seed(
        n=5, points=10, passing_score=70.0, max_attempts=3, question_count=15, time_limit=30,
        hints=None, explanations=None,
    ):
        async with sessionmaker() as session:
            quiz = Quiz(
                title="Cell Biology Basics",
                lesson_id="lesson-1",
                passing_score=passing_score,
                quiz_settings={"max_attempts": max_attempts, "question_count": question_count},
            )
            session.add(quiz)
            await session.flush()
            base = utcnow()
            questions = [
                Question(
                    quiz_id=quiz.id,
                    question_text=f"Question {i + 1}",
                    question_type=QuestionType.MULTIPLE_CHOICE,
                    options=["A", "B", "C", "D"],
                    correct_answer="A",
                    points=points,
                    time_limit=time_limit,
                    hint=(hints or {}).get(i),
                    explanation=(explanations or {}).get(i),
                    created_at=base + timedelta(microseconds=i),
                )
                for i in range(n)
            ]
            session.add_all(questions)
            await session.commit()
            return quiz.id, [q.id for q in questions]

    return _seed


@pytest.fixture
def add_attempts(sessionmaker):
    async def _add(learner_id, quiz_id, count):
        async with sessionmaker() as session:
            for number in range(1, count + 1):
                session.add(QuizAttempt(
                    quiz_id=quiz_id, learner_id=learner_id, attempt_number=number,
                    total_questions=1, correct_answers=0, score=0, max_score=10,
                    score_percentage=0.0, time_spent=10.0, passed=False,
                ))
            await session.commit()

    return _add


@pytest.fixture
def auth_header():
    def _header(user_id="learner-1", roles=("student",)):
        return {"Authorization": f"Bearer {create_token(user_id, list(roles))}"}

    return _header


@pytest.fixture
async def client(sessionmaker):
    async def override_get_db():
        async with sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class MemoryCache:
    """In-process stand-in for RedisCache."""

    def __init__(self):
        self.store = {}

    async def get(self, key, default=None):
        return self.store.get(key, default)

    async def set(self, key, value, expire=None):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def memory_cache():
    return MemoryCache()
