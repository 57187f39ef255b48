"""
Quiz submission: validate, score, and record one attempt.

Steps run in order and the first four never write:

1. the caller is authenticated by the API layer before ``submit`` runs;
2. the quiz and its full question pool are loaded (QUIZ_NOT_FOUND, NO_QUESTIONS);
3. the presented question set is resolved from the given quiz session, else the
   learner's latest open one, else the whole pool when it is no larger than the
   quiz's question count (SESSION_NOT_FOUND, SESSION_ALREADY_SUBMITTED);
4. the attempt ceiling is checked and an attempt number claimed
   (ATTEMPT_LIMIT_EXCEEDED);
5. every presented question is scored, missing answers score 0;
6. the attempt row and all of its response rows are committed together. A
   unique-constraint conflict on the attempt number rolls back and goes back to
   step 4. Any other store error or timeout rolls back and is reported as
   PERSISTENCE_FAILURE.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple
import asyncio
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lessonquiz.core.cache import RedisCache
from lessonquiz.core.config import settings
from lessonquiz.core.errors import NoQuestionsError, PersistenceFailure, SessionAlreadySubmitted, SessionNotFound
from lessonquiz.models.orm import QuizAttempt, QuizResponse
from lessonquiz.models.schemas import (
    AttemptOut, AttemptWithResponses, QuestionRecord, QuizPool, ResponseDetail,
    SubmissionIn, SubmissionResult, SubmissionSummary,
)
from lessonquiz.services import ledger
from lessonquiz.services.repository import QuestionRepository
from lessonquiz.services.scoring import QuestionScore, answers_match, score_question
from lessonquiz.services.sessions import latest_open_session, presented_questions

logger = logging.getLogger(__name__)


@dataclass
class ScoredQuestion:
    question: QuestionRecord
    answer: Optional[str]
    response_time: Optional[float]
    result: QuestionScore


@dataclass
class ScoreSheet:
    items: List[ScoredQuestion]
    passing_score: float

    @property
    def earned(self) -> int:
        return sum(s.result.points_earned for s in self.items)

    @property
    def max_score(self) -> int:
        return sum(s.question.points for s in self.items)

    @property
    def time_bonus(self) -> int:
        return sum(s.result.time_bonus for s in self.items)

    @property
    def correct(self) -> int:
        return sum(1 for s in self.items if s.result.is_correct)

    @property
    def percentage(self) -> float:
        return 100.0 * self.earned / self.max_score if self.max_score > 0 else 0.0

    @property
    def passed(self) -> bool:
        return self.percentage >= self.passing_score


def score_submission(questions: List[QuestionRecord], submission: SubmissionIn, passing_score: float) -> ScoreSheet:
    times = submission.response_times or {}
    items = []
    for q in questions:
        answer = submission.answers.get(q.id)
        response_time = times.get(q.id)
        result = score_question(
            q.points, answers_match(q.question_type, answer, q.correct_answer), response_time, q.time_limit
        )
        items.append(ScoredQuestion(question=q, answer=answer, response_time=response_time, result=result))
    return ScoreSheet(items=items, passing_score=passing_score)


class SubmissionOrchestrator:
    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[RedisCache] = None,
        claim_retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.repository = QuestionRepository(db, cache)
        self.claim_retries = settings.ATTEMPT_CLAIM_RETRIES if claim_retries is None else claim_retries
        self.timeout = settings.SUBMISSION_TIMEOUT_SECONDS if timeout is None else timeout

    async def submit(self, learner_id: str, quiz_id: str, submission: SubmissionIn) -> SubmissionResult:
        pool = await self.repository.load_pool(quiz_id)
        session_id, questions = await self._presented(learner_id, pool, submission.session_id)
        max_attempts = pool.quiz.settings.max_attempts
        attempt_number = await self._claim(learner_id, pool, session_id)

        sheet = score_submission(questions, submission, pool.quiz.passing_score)

        for claim in range(1, self.claim_retries + 1):
            try:
                attempt = await asyncio.wait_for(
                    self._persist(learner_id, pool, submission, sheet, attempt_number, session_id), self.timeout
                )
                break
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    f"Attempt number {attempt_number} for learner {learner_id} on quiz {quiz_id} "
                    f"already taken (claim {claim}/{self.claim_retries})"
                )
                attempt_number = await self._claim(learner_id, pool, session_id)
            except (SQLAlchemyError, asyncio.TimeoutError) as e:
                await self.db.rollback()
                logger.error(f"Failed to save attempt for quiz {quiz_id}: {e!r}", exc_info=True)
                raise PersistenceFailure()
        else:
            logger.error(f"Gave up claiming an attempt number for learner {learner_id} on quiz {quiz_id}")
            raise PersistenceFailure("Could not record the attempt, please retry")

        logger.info(
            f"Quiz {quiz_id}: learner {learner_id} attempt {attempt.attempt_number} "
            f"scored {sheet.earned}/{sheet.max_score} ({sheet.percentage:.2f}%), passed={sheet.passed}"
        )
        return self._result(attempt, sheet, max_attempts)

    async def _presented(
        self, learner_id: str, pool: QuizPool, session_id: Optional[str]
    ) -> Tuple[Optional[str], List[QuestionRecord]]:
        """Resolve the session being submitted and the questions it presented.

        Without an explicit session id the learner's latest open session is used.
        With no session at all, the whole pool is scored only when the quiz would
        have presented every question anyway.
        """
        if not session_id:
            session_id = await latest_open_session(self.db, learner_id, pool.quiz.id)
        if session_id:
            questions = await presented_questions(self.db, session_id, pool, learner_id)
            if not questions:
                raise NoQuestionsError()
            return session_id, questions
        if len(pool.questions) > pool.quiz.settings.question_count:
            raise SessionNotFound("No open quiz session, fetch the quiz before submitting")
        return None, pool.questions

    async def _claim(self, learner_id: str, pool: QuizPool, session_id: Optional[str]) -> int:
        if session_id and await ledger.session_submitted(self.db, session_id):
            raise SessionAlreadySubmitted()
        return await ledger.claim_attempt_number(self.db, learner_id, pool.quiz.id, pool.quiz.settings.max_attempts)

    async def _persist(
        self,
        learner_id: str,
        pool: QuizPool,
        submission: SubmissionIn,
        sheet: ScoreSheet,
        attempt_number: int,
        session_id: Optional[str],
    ) -> QuizAttempt:
        attempt = QuizAttempt(
            quiz_id=pool.quiz.id,
            learner_id=learner_id,
            attempt_number=attempt_number,
            session_id=session_id,
            total_questions=len(sheet.items),
            correct_answers=sheet.correct,
            score=sheet.earned,
            max_score=sheet.max_score,
            score_percentage=round(sheet.percentage, 2),
            time_spent=submission.total_time,
            passed=sheet.passed,
            focus_lost_count=submission.focus_lost_count,
            tab_switches=submission.tab_switches,
            responses=[
                QuizResponse(
                    question_id=s.question.id,
                    student_answer=s.answer,
                    is_correct=s.result.is_correct,
                    points_earned=s.result.points_earned,
                    time_spent=s.response_time,
                )
                for s in sheet.items
            ],
        )
        self.db.add(attempt)
        await self.db.commit()
        return attempt

    def _result(self, attempt: QuizAttempt, sheet: ScoreSheet, max_attempts: int) -> SubmissionResult:
        details = [
            ResponseDetail(
                question_id=s.question.id,
                question=s.question.question_text,
                user_answer=s.answer,
                correct_answer=s.question.correct_answer,
                is_correct=s.result.is_correct,
                points=s.result.points_earned,
                max_points=s.question.points,
                time_bonus=s.result.time_bonus,
                response_time=s.response_time,
            )
            for s in sheet.items
        ]
        summary = SubmissionSummary(
            score=sheet.earned,
            max_score=sheet.max_score,
            percentage=round(sheet.percentage, 2),
            correct_answers=sheet.correct,
            total_questions=len(sheet.items),
            passed=sheet.passed,
            time_spent=attempt.time_spent,
            attempt_number=attempt.attempt_number,
            time_bonus=sheet.time_bonus,
            remaining_attempts=max(0, max_attempts - attempt.attempt_number),
        )
        attempt_out = AttemptOut.model_validate(attempt)
        return SubmissionResult(
            attempt=AttemptWithResponses(**attempt_out.model_dump(), responses=details),
            summary=summary,
        )
