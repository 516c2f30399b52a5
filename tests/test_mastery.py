from __future__ import annotations

import pytest

from studycoach.study.mastery import (
    all_topics_mastered,
    apply_mastery_updates,
    calculate_mastery_level,
    get_difficulty_for_mastery,
    initialize_mastery,
    is_topic_mastered,
    update_mastery_counters,
)
from studycoach.study.models import MasteryUpdate, TopicMastery


@pytest.mark.parametrize(
    ("correct", "answered", "expected"),
    [(0, 0, 0), (1, 1, 52), (1, 2, 32), (2, 2, 64), (2, 3, 51), (4, 4, 88), (5, 5, 100), (4, 5, 80), (9, 10, 90), (1, 8, 13)],
)
def test_calculate_mastery_level_known_values(correct, answered, expected):
    assert calculate_mastery_level(correct, answered) == expected


def test_calculate_mastery_level_ramp_and_bounds():
    for answered in range(0, 15):
        previous = -1
        for correct in range(0, answered + 1):
            level = calculate_mastery_level(correct, answered)
            assert 0 <= level <= 100
            assert level >= previous
            previous = level
        if answered >= 5:
            assert calculate_mastery_level(answered, answered) == 100
        elif answered > 0:
            assert calculate_mastery_level(answered, answered) < 100


def test_initialize_mastery_zeroes_every_topic():
    mastery = initialize_mastery(["A", "B"])
    assert [m.topic for m in mastery] == ["A", "B"]
    assert all(m.level == 0 and m.questions_answered == 0 and m.questions_correct == 0 for m in mastery)


def test_apply_mastery_updates_clamps_and_ignores_unknown_topics():
    current = initialize_mastery(["A", "B", "C"])
    updated = apply_mastery_updates(
        current,
        [
            MasteryUpdate(topic="A", new_level=-20),
            MasteryUpdate(topic="B", new_level=140),
            MasteryUpdate(topic="Z", new_level=50),
        ],
    )
    assert [m.topic for m in updated] == ["A", "B", "C"]
    assert updated[0].level == 0
    assert updated[1].level == 100
    assert updated[2] == current[2]


def test_apply_mastery_updates_empty_list_is_identity():
    current = [TopicMastery(topic="A", level=42, questions_answered=3, questions_correct=2)]
    assert apply_mastery_updates(current, []) == current


def test_apply_mastery_updates_rounds_half_up_and_keeps_level_for_non_numbers():
    current = [TopicMastery(topic="A", level=10), TopicMastery(topic="B", level=33)]
    updated = apply_mastery_updates(
        current,
        [MasteryUpdate(topic="A", new_level=62.5), MasteryUpdate.model_validate({"topic": "B", "newLevel": "high"})],
    )
    assert updated[0].level == 63
    assert updated[1].level == 33


def test_apply_mastery_updates_is_idempotent():
    current = initialize_mastery(["A", "B"])
    updates = [MasteryUpdate(topic="A", new_level=71.4), MasteryUpdate(topic="B", new_level=12)]
    once = apply_mastery_updates(current, updates)
    twice = apply_mastery_updates(once, updates)
    assert once == twice


def test_update_mastery_counters_recomputes_level_from_counts():
    current = [
        TopicMastery(topic="A", level=95, questions_answered=1, questions_correct=1),
        TopicMastery(topic="B", level=20),
    ]
    updated = update_mastery_counters(current, "A", False, "2026-01-01T00:00:00+00:00")
    assert updated[0].questions_answered == 2
    assert updated[0].questions_correct == 1
    assert updated[0].level == calculate_mastery_level(1, 2) == 32
    assert updated[0].last_asked == "2026-01-01T00:00:00+00:00"
    assert updated[1] is current[1]


@pytest.mark.parametrize(("level", "expected"), [(0, False), (79, False), (80, True), (81, True), (100, True)])
def test_is_topic_mastered_threshold(level, expected):
    assert is_topic_mastered(level) is expected


def test_all_topics_mastered():
    assert all_topics_mastered([TopicMastery(topic="A", level=80), TopicMastery(topic="B", level=100)])
    assert not all_topics_mastered([TopicMastery(topic="A", level=80), TopicMastery(topic="B", level=79)])
    assert not all_topics_mastered([])


@pytest.mark.parametrize(
    ("level", "expected"),
    [(0, "easy"), (40, "easy"), (41, "medium"), (70, "medium"), (71, "hard"), (100, "hard")],
)
def test_get_difficulty_for_mastery_boundaries(level, expected):
    assert get_difficulty_for_mastery(level) == expected
