import random
from datetime import timedelta

import pytest
from sqlalchemy import delete, select

from lessonquiz.core.errors import NoQuestionsError, QuestionNotFound, QuizNotFound, SessionNotFound
from lessonquiz.models.orm import Question, Quiz, QuizAttempt, QuizSession, QuizSessionItem, utcnow
from lessonquiz.services.repository import QuestionRepository
from lessonquiz.services.sessions import (
    latest_open_session, presented_questions, purge_expired_sessions, start_session,
)


async def test_load_pool_keeps_insertion_order(db, seed_quiz):
    quiz_id, question_ids = await seed_quiz(n=6, max_attempts=4, question_count=3)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    assert [q.id for q in pool.questions] == question_ids
    assert pool.quiz.settings.max_attempts == 4
    assert pool.quiz.settings.question_count == 3


async def test_unknown_quiz(db):
    with pytest.raises(QuizNotFound):
        await QuestionRepository(db).load_pool("missing")


async def test_quiz_without_questions(db):
    quiz = Quiz(title="Empty", passing_score=70.0, quiz_settings={})
    db.add(quiz)
    await db.commit()
    with pytest.raises(NoQuestionsError):
        await QuestionRepository(db).load_pool(quiz.id)


async def test_legacy_max_retries_setting(db):
    quiz = Quiz(title="Legacy", passing_score=60.0, quiz_settings={"max_retries": 5})
    db.add(quiz)
    await db.commit()
    record = await QuestionRepository(db).get_quiz(quiz.id)
    assert record.settings.max_attempts == 5
    assert record.settings.question_count == 15


async def test_pool_is_served_from_cache(db, seed_quiz, memory_cache):
    quiz_id, question_ids = await seed_quiz(n=3)
    cache = memory_cache
    first = await QuestionRepository(db, cache).load_pool(quiz_id)
    assert f"quiz:{quiz_id}:pool" in cache.store

    await db.execute(delete(Question).where(Question.quiz_id == quiz_id))
    await db.commit()
    second = await QuestionRepository(db, cache).load_pool(quiz_id)
    assert second == first


async def test_get_question(db, seed_quiz):
    _, question_ids = await seed_quiz(n=1)
    repo = QuestionRepository(db)
    assert (await repo.get_question(question_ids[0])).correct_answer == "A"
    with pytest.raises(QuestionNotFound):
        await repo.get_question("missing")


async def test_session_records_presented_order(db, seed_quiz):
    quiz_id, _ = await seed_quiz(n=10)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    session, selected = await start_session(db, pool, 4, random.Random(3))
    assert len(selected) == 4
    presented = await presented_questions(db, session.id, pool)
    assert [q.id for q in presented] == [q.id for q in selected]


async def test_session_uses_quiz_question_count(db, seed_quiz):
    quiz_id, _ = await seed_quiz(n=10, question_count=6)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    _, selected = await start_session(db, pool)
    assert len(selected) == 6


async def test_expired_or_foreign_session_rejected(db, seed_quiz):
    quiz_id, _ = await seed_quiz(n=3)
    other_id, _ = await seed_quiz(n=3)
    repo = QuestionRepository(db)
    pool = await repo.load_pool(quiz_id)
    other_pool = await repo.load_pool(other_id)

    session, _ = await start_session(db, pool)
    with pytest.raises(SessionNotFound):
        await presented_questions(db, session.id, other_pool)

    session.expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()
    with pytest.raises(SessionNotFound):
        await presented_questions(db, session.id, pool)

    with pytest.raises(SessionNotFound):
        await presented_questions(db, "missing", pool)


async def test_session_rows_are_stored(db, seed_quiz):
    quiz_id, _ = await seed_quiz(n=3)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    session, _ = await start_session(db, pool)
    stored = await db.get(QuizSession, session.id)
    assert stored is not None and stored.quiz_id == quiz_id


async def test_latest_open_session_skips_submitted_and_expired(db, seed_quiz):
    quiz_id, _ = await seed_quiz(n=5)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    assert await latest_open_session(db, "learner-1", quiz_id) is None

    older, _ = await start_session(db, pool, learner_id="learner-1")
    newer, _ = await start_session(db, pool, learner_id="learner-1")
    await start_session(db, pool)
    newer.started_at = older.started_at + timedelta(seconds=1)
    await db.commit()
    assert await latest_open_session(db, "learner-1", quiz_id) == newer.id
    assert await latest_open_session(db, "learner-2", quiz_id) is None

    db.add(QuizAttempt(
        quiz_id=quiz_id, learner_id="learner-1", attempt_number=1, session_id=newer.id,
        total_questions=5, correct_answers=0, score=0, max_score=50,
        score_percentage=0.0, time_spent=10.0, passed=False,
    ))
    await db.commit()
    assert await latest_open_session(db, "learner-1", quiz_id) == older.id

    older.expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()
    assert await latest_open_session(db, "learner-1", quiz_id) is None


async def test_purge_removes_only_expired_sessions(db, seed_quiz, sessionmaker):
    quiz_id, _ = await seed_quiz(n=4)
    pool = await QuestionRepository(db).load_pool(quiz_id)
    stale, _ = await start_session(db, pool, 3)
    fresh, _ = await start_session(db, pool, 3)
    stale.expires_at = utcnow() - timedelta(minutes=5)
    await db.commit()

    assert await purge_expired_sessions(db) == 1

    async with sessionmaker() as session:
        remaining = list(await session.scalars(select(QuizSession.id)))
        items = list(await session.scalars(select(QuizSessionItem.session_id)))
    assert remaining == [fresh.id]
    assert set(items) == {fresh.id}
