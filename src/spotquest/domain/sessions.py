"""Domain models for play sessions and rounds."""

from dataclasses import dataclass, field
from enum import StrEnum

from spotquest.domain.backend import HintContent, HintType
from spotquest.domain.difficulty import Difficulty

MAX_ROUNDS = 5


class SessionStatus(StrEnum):
    """Lifecycle status shared by sessions and rounds."""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in degrees."""

    lat: float
    lon: float


@dataclass(frozen=True)
class Guess:
    """A player's guess for a round."""

    lat: float
    lon: float
    azimuth: float | None = None
    confidence_radius: float = 1000.0
    submitted_at: float | None = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


@dataclass
class Hint:
    """Per-round state of one hint type."""

    hint_type: HintType
    base_cost: int
    unlocked: bool = False
    content: HintContent | None = None


@dataclass
class Round:
    """A single photo round; resolved exactly once."""

    number: int
    photo_id: int
    start_time: float
    hints: dict[HintType, Hint]
    actual_location: Coordinates | None = None
    actual_azimuth: float | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    guess: Guess | None = None
    score: int = 0
    score_norm: int = 0
    end_time: float | None = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def hints_purchased(self) -> set[HintType]:
        return {hint.hint_type for hint in self.hints.values() if hint.unlocked}

    def unlock_hint(self, hint_type: HintType, content: HintContent) -> None:
        """Record a purchased hint on an active round."""
        if not self.is_active:
            raise ValueError(f"Round {self.number} is no longer active")
        hint = self.hints[hint_type]
        hint.unlocked = True
        hint.content = content

    def complete(
        self, guess: Guess, score: int, score_norm: int, end_time: float
    ) -> None:
        """Mark the round completed with its guess and score."""
        if not self.is_active:
            raise ValueError(f"Round {self.number} was already resolved")
        self.guess = guess
        self.score = score
        self.score_norm = score_norm
        self.end_time = end_time
        self.status = SessionStatus.COMPLETED

    def abandon(self, end_time: float) -> None:
        """Mark an unresolved round abandoned."""
        if not self.is_active:
            return
        self.end_time = end_time
        self.status = SessionStatus.ABANDONED


@dataclass(frozen=True)
class RoundResult:
    """Terminal payload for the results view."""

    round_number: int
    photo_id: int
    guess: Coordinates
    actual_location: Coordinates | None
    score: int
    score_norm: int
    distance_meters: float | None
    elapsed_seconds: int
    difficulty: Difficulty
    timed_out: bool
    authoritative: bool
    azimuth_error: float | None = None


@dataclass
class Session:
    """A play-through of up to five rounds."""

    id: str
    created_at: float
    region_filter: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    round_number: int = 1
    round_results: list[RoundResult] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def total_score(self) -> int:
        return sum(result.score for result in self.round_results)


@dataclass(frozen=True)
class SessionSummary:
    """Final view of a finished session."""

    session_id: str
    status: SessionStatus
    round_results: tuple[RoundResult, ...]
    total_score: int
    estimated_reward: float
    player_reward: float | None
    final_reward: float


@dataclass(frozen=True)
class HintView:
    """Hint entry as shown to the player."""

    hint_type: HintType
    cost: int
    unlocked: bool
    description: str | None


@dataclass(frozen=True)
class RoundView:
    """Snapshot of the active round for the presentation layer."""

    session_id: str
    round_number: int
    max_rounds: int
    photo_id: int
    status: SessionStatus
    remaining_seconds: int
    time_limit_seconds: int
    difficulty: Difficulty
    starting_zoom: int
    balance: int
    hints: tuple[HintView, ...]
