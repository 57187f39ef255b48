import random
from typing import List, Optional, Sequence, TypeVar

from lessonquiz.core.errors import NoQuestionsError

T = TypeVar("T")

_default_rng = random.Random()


def fisher_yates_shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return an unbiased shuffled copy of ``items``."""
    rng = rng or _default_rng
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def sample_session_questions(pool: Sequence[T], k: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick ``k`` distinct questions from ``pool`` in random order.

    A pool smaller than ``k`` yields every question (no error); an empty pool
    means the quiz cannot be taken.
    """
    if k < 1:
        raise ValueError(f"session size must be positive, got {k}")
    if not pool:
        raise NoQuestionsError()
    return fisher_yates_shuffle(pool, rng)[:k]
