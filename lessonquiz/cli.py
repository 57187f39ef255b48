"""
Operator commands.

    python -m lessonquiz.cli init-db
    python -m lessonquiz.cli load-quiz quizzes/cardiology.json
    python -m lessonquiz.cli purge-sessions
    python -m lessonquiz.cli issue-token --user learner-1 --role student
"""
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
import argparse
import asyncio
import json
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.auth import create_token
from lessonquiz.core.cache import RedisCache, get_cache
from lessonquiz.core.config import settings
from lessonquiz.core.database import AsyncSessionLocal, close_db, init_db
from lessonquiz.models.orm import Question, QuestionType, Quiz, utcnow
from lessonquiz.models.schemas import QuizSettings
from lessonquiz.services.repository import invalidate_pool
from lessonquiz.services.sessions import purge_expired_sessions


async def import_quiz(
    db: AsyncSession, data: Dict[str, Any], cache: Optional[RedisCache] = None
) -> Tuple[str, int]:
    """Create or update a quiz and add the questions it does not have yet.

    Questions are matched on their text within the quiz, so loading the same
    file twice adds nothing. Any cached pool for the quiz is dropped. Returns
    the quiz id and the number of questions added.
    """
    quiz = None
    if data.get("id"):
        quiz = await db.scalar(select(Quiz).where(Quiz.id == data["id"]))
    if quiz is None:
        quiz = Quiz(id=data.get("id") or str(uuid.uuid4()))
        db.add(quiz)
    quiz.lesson_id = data.get("lesson_id")
    quiz.title = data["title"]
    quiz.description = data.get("description")
    quiz.passing_score = float(data.get("passing_score", settings.DEFAULT_PASSING_SCORE))
    quiz.quiz_settings = QuizSettings.model_validate(data.get("settings") or {}).model_dump()
    await db.flush()

    existing = set(await db.scalars(select(Question.question_text).where(Question.quiz_id == quiz.id)))
    base = utcnow()
    added = 0
    for i, q in enumerate(data.get("questions", [])):
        text = q.get("question_text")
        if not text or text in existing:
            continue
        db.add(Question(
            id=q.get("id") or str(uuid.uuid4()),
            quiz_id=quiz.id,
            question_text=text,
            question_type=QuestionType(q.get("question_type", QuestionType.MULTIPLE_CHOICE.value)),
            options=q.get("options"),
            correct_answer=str(q["correct_answer"]),
            points=int(q.get("points", 10)),
            hint=q.get("hint"),
            explanation=q.get("explanation"),
            difficulty=q.get("difficulty", "medium"),
            time_limit=q.get("time_limit"),
            # keeps file order stable under the created_at ordering
            created_at=base + timedelta(microseconds=i),
        ))
        existing.add(text)
        added += 1
    await db.commit()
    await invalidate_pool(cache, quiz.id)
    return quiz.id, added


async def _init_db():
    await init_db()
    await close_db()


async def _load_quiz(path: str):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    pool_cache = get_cache()
    if settings.CACHE_ENABLED:
        await pool_cache.connect()
    async with AsyncSessionLocal() as db:
        quiz_id, added = await import_quiz(db, data, pool_cache if pool_cache.enabled else None)
    await pool_cache.disconnect()
    await close_db()
    print(f"quiz={quiz_id} added_questions={added}")


async def _purge_sessions():
    async with AsyncSessionLocal() as db:
        removed = await purge_expired_sessions(db)
    await close_db()
    print(f"purged_sessions={removed}")


def main(argv=None):
    ap = argparse.ArgumentParser(prog="lessonquiz")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="create tables")
    load = sub.add_parser("load-quiz", help="import a quiz and its questions from JSON")
    load.add_argument("file")
    sub.add_parser("purge-sessions", help="delete expired quiz sessions")
    tok = sub.add_parser("issue-token", help="sign a bearer token for local testing")
    tok.add_argument("--user", required=True)
    tok.add_argument("--role", action="append", dest="roles")
    tok.add_argument("--ttl", type=int, default=None, help="minutes")
    args = ap.parse_args(argv)

    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    if args.command == "init-db":
        asyncio.run(_init_db())
    elif args.command == "load-quiz":
        asyncio.run(_load_quiz(args.file))
    elif args.command == "purge-sessions":
        asyncio.run(_purge_sessions())
    elif args.command == "issue-token":
        print(create_token(args.user, args.roles or ["student"], args.ttl))


if __name__ == "__main__":
    main()
