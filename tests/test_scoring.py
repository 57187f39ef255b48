import pytest

from lessonquiz.models.orm import QuestionType
from lessonquiz.services.scoring import answers_match, calculate_time_bonus, score_question

LIMIT = 30


@pytest.mark.parametrize("ratio, expected", [(0.2, 13), (0.45, 11), (0.9, 10)])
def test_correct_answer_points_by_speed(ratio, expected):
    assert score_question(10, True, ratio * LIMIT, LIMIT).points_earned == expected


@pytest.mark.parametrize("response_time", [None, 0.0, 6.0, 29.0, 100.0])
def test_incorrect_answer_scores_zero(response_time):
    result = score_question(10, False, response_time, LIMIT)
    assert result.points_earned == 0
    assert result.time_bonus == 0


def test_tier_boundaries_are_inclusive():
    assert calculate_time_bonus(10, 0.3 * LIMIT, LIMIT) == 3
    assert calculate_time_bonus(10, 0.6 * LIMIT, LIMIT) == 1
    assert calculate_time_bonus(10, 0.61 * LIMIT, LIMIT) == 0


def test_bonus_floors():
    assert calculate_time_bonus(5, 1, LIMIT) == 1
    assert calculate_time_bonus(5, 15, LIMIT) == 0
    assert calculate_time_bonus(25, 1, LIMIT) == 7


def test_no_timing_means_no_bonus():
    assert calculate_time_bonus(10, None, LIMIT) == 0
    assert score_question(10, True).points_earned == 10


def test_missing_limit_uses_default():
    # default limit is 30 seconds
    assert calculate_time_bonus(10, 6, None) == 3
    assert calculate_time_bonus(10, 6, 0) == 3


def test_exact_matching_by_default():
    assert answers_match(QuestionType.MULTIPLE_CHOICE, "Mitochondria", "Mitochondria")
    assert not answers_match(QuestionType.MULTIPLE_CHOICE, " Mitochondria ", "Mitochondria")
    assert not answers_match(QuestionType.TRUE_FALSE, "TRUE", "true")
    assert not answers_match(QuestionType.SHORT_ANSWER, None, "osmosis")


def test_normalized_matching():
    mode = "normalized"
    assert answers_match(QuestionType.MULTIPLE_CHOICE, " Mitochondria ", "Mitochondria", mode)
    assert not answers_match(QuestionType.MULTIPLE_CHOICE, "mitochondria", "Mitochondria", mode)
    assert answers_match(QuestionType.TRUE_FALSE, "TRUE", "true", mode)
    assert answers_match(QuestionType.SHORT_ANSWER, "Osmosis", "osmosis ", mode)
    assert not answers_match(QuestionType.SHORT_ANSWER, None, "osmosis", mode)


def test_negative_time_earns_no_bonus():
    assert calculate_time_bonus(10, -500.0, LIMIT) == 0
