"""Difficulty profiles for single-player rounds."""

from dataclasses import dataclass
from enum import StrEnum

from spotquest.domain.errors import UnknownDifficultyError


class Difficulty(StrEnum):
    """Closed set of difficulty levels."""

    EASY = "EASY"
    NORMAL = "NORMAL"
    HARD = "HARD"
    EXTREME = "EXTREME"


@dataclass(frozen=True)
class DifficultyProfile:
    """Per-difficulty round settings."""

    difficulty: Difficulty
    time_limit_seconds: int
    score_multiplier: float
    hint_cost_multiplier: float
    starting_zoom: int
    max_confidence_radius: float


PROFILES: dict[Difficulty, DifficultyProfile] = {
    Difficulty.EASY: DifficultyProfile(
        difficulty=Difficulty.EASY,
        time_limit_seconds=300,
        score_multiplier=0.8,
        hint_cost_multiplier=0.5,
        starting_zoom=10,
        max_confidence_radius=500,
    ),
    Difficulty.NORMAL: DifficultyProfile(
        difficulty=Difficulty.NORMAL,
        time_limit_seconds=180,
        score_multiplier=1.0,
        hint_cost_multiplier=1.0,
        starting_zoom=5,
        max_confidence_radius=1000,
    ),
    Difficulty.HARD: DifficultyProfile(
        difficulty=Difficulty.HARD,
        time_limit_seconds=120,
        score_multiplier=1.5,
        hint_cost_multiplier=1.5,
        starting_zoom=3,
        max_confidence_radius=2000,
    ),
    Difficulty.EXTREME: DifficultyProfile(
        difficulty=Difficulty.EXTREME,
        time_limit_seconds=60,
        score_multiplier=2.0,
        hint_cost_multiplier=2.0,
        starting_zoom=1,
        max_confidence_radius=5000,
    ),
}


def get_profile(difficulty: Difficulty | str) -> DifficultyProfile:
    """Return the profile for a difficulty, failing fast on unknown keys."""
    try:
        key = Difficulty(difficulty)
    except ValueError:
        raise UnknownDifficultyError(difficulty) from None
    return PROFILES[key]
