from dataclasses import dataclass
from typing import Optional

from lessonquiz.core.config import settings
from lessonquiz.models.orm import QuestionType

FAST_RATIO = 0.3
MODERATE_RATIO = 0.6


@dataclass(frozen=True)
class QuestionScore:
    is_correct: bool
    base_points: int
    time_bonus: int

    @property
    def points_earned(self) -> int:
        return self.base_points + self.time_bonus


def answers_match(
    question_type: QuestionType, submitted: Optional[str], correct: str, mode: Optional[str] = None
) -> bool:
    """Compare an answer with the canonical one.

    ``exact`` (the default) requires identical strings. ``normalized`` ignores
    surrounding whitespace for every type and case for true_false and
    short_answer questions.
    """
    if submitted is None:
        return False
    if (mode or settings.ANSWER_MATCHING) == "exact":
        return submitted == correct
    given, expected = submitted.strip(), correct.strip()
    if question_type in (QuestionType.TRUE_FALSE, QuestionType.SHORT_ANSWER):
        return given.casefold() == expected.casefold()
    return given == expected


def calculate_time_bonus(base_points: int, response_time: Optional[float], time_limit: Optional[float] = None) -> int:
    """Bonus for a correct answer given quickly relative to the question's time limit.

    ratio <= 0.3 earns floor(30%) of the base points, ratio <= 0.6 earns
    floor(15%), anything slower earns nothing. Without per-question timing
    there is no bonus.
    """
    if response_time is None or response_time < 0 or base_points <= 0:
        return 0
    limit = time_limit if time_limit and time_limit > 0 else settings.DEFAULT_QUESTION_TIME_LIMIT
    ratio = response_time / limit
    if ratio <= FAST_RATIO:
        return base_points * 3 // 10
    if ratio <= MODERATE_RATIO:
        return base_points * 3 // 20
    return 0


def score_question(
    points: int,
    is_correct: bool,
    response_time: Optional[float] = None,
    time_limit: Optional[float] = None,
) -> QuestionScore:
    if not is_correct:
        return QuestionScore(is_correct=False, base_points=0, time_bonus=0)
    return QuestionScore(
        is_correct=True,
        base_points=points,
        time_bonus=calculate_time_bonus(points, response_time, time_limit),
    )
