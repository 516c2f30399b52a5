"""Per-topic mastery scoring.

Pure functions only. ``update_mastery_counters`` is the authoritative update:
whatever level the agent proposes is superseded by the answer tally.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from studycoach.core.settings import settings
from studycoach.study.models import DifficultyLevel, MasteryUpdate, TopicMastery

MASTERY_THRESHOLD = settings.mastery_threshold
FULL_MASTERY_UNLOCK_ANSWERS = 5
RAMP_BASE = 40
RAMP_STEP = 12


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_mastery_level(questions_correct: int, questions_answered: int) -> int:
    if questions_answered <= 0:
        return 0
    accuracy = questions_correct / questions_answered
    # Early mastery is capped so one lucky answer cannot show 100%.
    if questions_answered >= FULL_MASTERY_UNLOCK_ANSWERS:
        max_possible = 100
    else:
        max_possible = RAMP_BASE + questions_answered * RAMP_STEP
    level = _round_half_up(min(100.0, accuracy * max_possible))
    return max(0, min(100, level))


def initialize_mastery(topics: Iterable[str]) -> list[TopicMastery]:
    return [TopicMastery(topic=topic) for topic in topics]


def apply_mastery_updates(
    current: Sequence[TopicMastery],
    updates: Iterable[MasteryUpdate],
) -> list[TopicMastery]:
    by_topic = {entry.topic: entry for entry in current}
    for update in updates:
        existing = by_topic.get(update.topic)
        if existing is None:
            continue
        candidate = update.new_level
        if candidate is None or math.isnan(candidate):
            new_level = existing.level
        else:
            new_level = _round_half_up(max(0.0, min(100.0, candidate)))
        by_topic[update.topic] = existing.model_copy(update={"level": new_level})
    return [by_topic[entry.topic] for entry in current]


def update_mastery_counters(
    mastery_levels: Sequence[TopicMastery],
    topic: str,
    is_correct: bool,
    timestamp: str,
) -> list[TopicMastery]:
    updated: list[TopicMastery] = []
    for entry in mastery_levels:
        if entry.topic != topic:
            updated.append(entry)
            continue
        answered = entry.questions_answered + 1
        correct = entry.questions_correct + (1 if is_correct else 0)
        updated.append(
            entry.model_copy(
                update={
                    "questions_answered": answered,
                    "questions_correct": correct,
                    "level": calculate_mastery_level(correct, answered),
                    "last_asked": timestamp,
                }
            )
        )
    return updated


def is_topic_mastered(level: int) -> bool:
    return level >= MASTERY_THRESHOLD


def all_topics_mastered(mastery_levels: Sequence[TopicMastery]) -> bool:
    return bool(mastery_levels) and all(is_topic_mastered(m.level) for m in mastery_levels)


def get_difficulty_for_mastery(level: int) -> DifficultyLevel:
    if level <= settings.difficulty_easy_max:
        return "easy"
    if level <= settings.difficulty_medium_max:
        return "medium"
    return "hard"
