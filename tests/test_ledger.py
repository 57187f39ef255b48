import pytest

from lessonquiz.core.errors import AttemptLimitExceeded
from lessonquiz.services import ledger


async def test_claim_starts_at_one(db, seed_quiz):
    quiz_id, _ = await seed_quiz()
    assert await ledger.claim_attempt_number(db, "learner-1", quiz_id, 3) == 1


async def test_claim_follows_existing_count(db, seed_quiz, add_attempts):
    quiz_id, _ = await seed_quiz()
    await add_attempts("learner-1", quiz_id, 2)
    assert await ledger.claim_attempt_number(db, "learner-1", quiz_id, 3) == 3
    assert await ledger.claim_attempt_number(db, "learner-2", quiz_id, 3) == 1


async def test_claim_refused_at_ceiling(db, seed_quiz, add_attempts):
    quiz_id, _ = await seed_quiz()
    await add_attempts("learner-1", quiz_id, 3)
    with pytest.raises(AttemptLimitExceeded) as exc:
        await ledger.claim_attempt_number(db, "learner-1", quiz_id, 3)
    assert exc.value.details == {"max_attempts": 3}
    assert "3" in exc.value.message


async def test_list_attempts_newest_first(db, seed_quiz, add_attempts):
    quiz_id, _ = await seed_quiz()
    await add_attempts("learner-1", quiz_id, 3)
    attempts = await ledger.list_attempts(db, "learner-1", quiz_id)
    assert [a.attempt_number for a in attempts] == [3, 2, 1]
    assert await ledger.list_attempts(db, "someone-else", quiz_id) == []
