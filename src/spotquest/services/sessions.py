"""Session state machine for five-round play-throughs."""

import asyncio
import logging
import math
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Protocol

from spotquest.adapters.game_backend import GameBackend
from spotquest.domain.backend import (
    GuessOutcome,
    HintContent,
    HintType,
    PhotoMetadata,
    SessionSettlement,
)
from spotquest.domain.difficulty import Difficulty, DifficultyProfile, get_profile
from spotquest.domain.errors import (
    BackendError,
    GuessValidationError,
    SessionReconciliationError,
    SessionStateError,
)
from spotquest.domain.sessions import (
    MAX_ROUNDS,
    Coordinates,
    Guess,
    HintView,
    Round,
    RoundResult,
    RoundView,
    Session,
    SessionStatus,
    SessionSummary,
)
from spotquest.services import scoring
from spotquest.services.guard import TransitionGuard, TransitionKind
from spotquest.services.hints import HintService
from spotquest.services.timer import RoundTimer

_logger = logging.getLogger(__name__)

SPOT_PER_MAX_SCORE = 1.0
REWARD_UNITS_PER_SPOT = 100
DEFAULT_CONFIDENCE_RADIUS = 1000.0


class ControllerState(StrEnum):
    """Lifecycle states of the session controller."""

    UNINITIALIZED = "uninitialized"
    CREATING = "creating"
    LOADING_ROUND = "loading_round"
    ROUND_ACTIVE = "round_active"
    ROUND_RESOLVING = "round_resolving"
    ROUND_COMPLETE = "round_complete"
    SESSION_FINALIZING = "session_finalizing"
    SESSION_TERMINAL = "session_terminal"


_IN_FLIGHT_STATES = frozenset(
    {
        ControllerState.CREATING,
        ControllerState.LOADING_ROUND,
        ControllerState.ROUND_RESOLVING,
        ControllerState.SESSION_FINALIZING,
    }
)


class RoundObserver(Protocol):
    """Receives timer-driven round events for the presentation layer."""

    def on_tick(self, remaining_seconds: int) -> None:
        """Handle a countdown tick."""

    def on_round_resolved(self, result: RoundResult) -> None:
        """Handle a resolved round, whether submitted or timed out."""


class NullRoundObserver(RoundObserver):
    """Observer that ignores every event."""

    def on_tick(self, remaining_seconds: int) -> None:
        return None

    def on_round_resolved(self, result: RoundResult) -> None:
        return None


@dataclass
class SessionController:
    """Drives one player's sessions through rounds, scoring and settlement.

    All round-ending paths (manual submit, timer expiry, exit) go through the
    ``TransitionGuard`` so that exactly one of them resolves each round.
    """

    backend: GameBackend
    hint_service: HintService
    principal: str
    difficulty: Difficulty | str = Difficulty.NORMAL
    observer: RoundObserver = field(default_factory=NullRoundObserver)
    timer: RoundTimer = field(default_factory=RoundTimer)
    guard: TransitionGuard = field(default_factory=TransitionGuard)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], float] = time.monotonic
    max_rounds: int = MAX_ROUNDS
    default_region_filter: str | None = None
    profile: DifficultyProfile = field(init=False)
    state: ControllerState = field(default=ControllerState.UNINITIALIZED, init=False)
    session: Session | None = field(default=None, init=False)
    current_round: Round | None = field(default=None, init=False)
    pending_guess: Guess | None = field(default=None, init=False)
    summary: SessionSummary | None = field(default=None, init=False)
    _finalize_task: asyncio.Task[SessionSummary] | None = field(
        default=None, init=False, repr=False
    )
    _pending: set[asyncio.Task[RoundResult | None]] = field(
        default_factory=set, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.profile = get_profile(self.difficulty)
        self.difficulty = self.profile.difficulty

    async def create_session(self, region_filter: str | None = None) -> Session:
        """Start a new session and load its first round."""
        if self.state in _IN_FLIGHT_STATES:
            raise SessionStateError(f"Cannot create a session while {self.state}")
        self._retire_current_session()
        self.state = ControllerState.CREATING
        try:
            await self._cleanup_stale_sessions()
            session_id = await self.backend.create_session()
        except BackendError:
            self.state = ControllerState.UNINITIALIZED
            raise

        session = Session(
            id=session_id,
            created_at=self.clock(),
            region_filter=region_filter or self.default_region_filter,
        )
        self.session = session
        self.current_round = None
        self.pending_guess = None
        self.summary = None
        self._finalize_task = None
        _logger.info("Created session %s (%s)", session_id, self.profile.difficulty)
        await self._load_round(session)
        return session

    async def get_next_round(
        self, region_filter: str | None = None
    ) -> RoundView | SessionSummary:
        """Advance to the next round, or settle the session once it is full."""
        session = self._require_session()
        if len(session.round_results) >= self.max_rounds:
            return await self.finalize_session()
        if not session.is_active:
            raise SessionStateError(f"Session {session.id} is {session.status}")
        if self.state is not ControllerState.ROUND_COMPLETE:
            raise SessionStateError(f"Cannot load a round while {self.state}")
        if region_filter is not None:
            session.region_filter = region_filter
        return await self._load_round(session)

    def set_guess(
        self,
        lat: float,
        lon: float,
        azimuth: float | None = None,
        confidence_radius: float | None = None,
    ) -> Guess:
        """Place or move the pending guess for the active round."""
        self._require_active_round()
        _validate_coordinates(lat, lon)
        radius = (
            DEFAULT_CONFIDENCE_RADIUS
            if confidence_radius is None
            else float(confidence_radius)
        )
        guess = Guess(
            lat=lat,
            lon=lon,
            azimuth=azimuth,
            confidence_radius=self._clamp_radius(radius),
        )
        self.pending_guess = guess
        return guess

    async def submit_guess(
        self, guess: Guess | None = None, is_timeout: bool = False
    ) -> RoundResult | None:
        """Resolve the active round with a guess.

        Shared by the manual submit and the timer. Returns None when another
        transition already ended the round.
        """
        session = self.session
        round_ = self.current_round
        if session is None or round_ is None or not session.is_active:
            if is_timeout:
                return None
            raise SessionStateError("No active round to submit a guess for")

        if not round_.is_active:
            _logger.debug("Ignoring submit; round %s already resolved", round_.number)
            return None

        if guess is not None:
            _validate_coordinates(guess.lat, guess.lon)
            guess = replace(
                guess, confidence_radius=self._clamp_radius(guess.confidence_radius)
            )
        elif self.pending_guess is not None:
            guess = self.pending_guess
        elif is_timeout:
            guess = self._random_guess()
        else:
            raise GuessValidationError("Place a guess on the map before submitting")

        kind = TransitionKind.TIMEOUT if is_timeout else TransitionKind.SUBMIT
        if not self.guard.try_enter_terminal_transition(kind):
            return None
        return await self._resolve_round(session, round_, guess, timed_out=is_timeout)

    async def purchase_hint(self, hint_type: HintType | str) -> HintContent:
        """Buy a hint for the active round and record it as unlocked."""
        session = self._require_session()
        round_ = self._require_active_round()
        hint_type = HintType(hint_type)
        content = await self.hint_service.purchase(
            session.id, round_, hint_type, self.profile
        )
        if self.current_round is round_ and round_.is_active:
            round_.unlock_hint(hint_type, content)
        return content

    def pause(self) -> None:
        """Stop the countdown while the round is off screen."""
        round_ = self.current_round
        if round_ is None or not round_.is_active:
            return
        self.timer.cancel()
        self.guard.mark_navigating_away()
        _logger.debug(
            "Paused round %s at %ss", round_.number, self.timer.remaining_seconds
        )

    def resume(self) -> None:
        """Restart the countdown unless the round ended while away."""
        self.guard.clear_navigating_away()
        round_ = self.current_round
        if (
            self.state is not ControllerState.ROUND_ACTIVE
            or round_ is None
            or not round_.is_active
            or self.guard.has_terminal_transition_occurred
            or self.timer.running
        ):
            return
        if self.timer.remaining_seconds <= 0:
            self._on_expire()
            return
        self.timer.start(self.timer.remaining_seconds, self._on_tick, self._on_expire)

    async def finalize_session(self) -> SessionSummary:
        """Settle the session once and return its summary."""
        if self.summary is not None:
            return self.summary
        session = self._require_session()
        if self._finalize_task is None:
            loop = asyncio.get_running_loop()
            self._finalize_task = loop.create_task(self._settle(session))
        return await self._finalize_task

    async def abandon_session(self) -> None:
        """Mark the session abandoned and tell the backend if possible."""
        session = self.session
        if session is None or not session.is_active or self._finalize_task is not None:
            return
        self._end_round_for_exit()
        session.status = SessionStatus.ABANDONED
        self.state = ControllerState.SESSION_TERMINAL
        self.summary = _build_summary(session, None)
        _logger.info(
            "Abandoned session %s after %s rounds",
            session.id,
            len(session.round_results),
        )
        try:
            await self.backend.abandon_session(session.id)
        except BackendError as exc:
            _logger.warning("Failed to abandon session %s: %s", session.id, exc)

    async def close(self) -> None:
        """Dispose the controller, settling a session that is still active."""
        self._end_round_for_exit()
        session = self.session
        if session is not None and session.is_active:
            await self.finalize_session()
        await self.wait_for_resolution()

    def snapshot(self) -> RoundView:
        """Return presentation state for the current round."""
        session = self._require_session()
        round_ = self.current_round
        if round_ is None:
            raise SessionStateError("No round has been loaded yet")
        hints = tuple(
            HintView(
                hint_type=hint.hint_type,
                cost=self.hint_service.hint_cost(hint.hint_type, self.profile),
                unlocked=hint.unlocked,
                description=self.hint_service.describe(hint.content)
                if hint.content is not None
                else None,
            )
            for hint in round_.hints.values()
        )
        return RoundView(
            session_id=session.id,
            round_number=round_.number,
            max_rounds=self.max_rounds,
            photo_id=round_.photo_id,
            status=round_.status,
            remaining_seconds=self.timer.remaining_seconds,
            time_limit_seconds=self.profile.time_limit_seconds,
            difficulty=self.profile.difficulty,
            starting_zoom=self.profile.starting_zoom,
            balance=self.hint_service.balance,
            hints=hints,
        )

    async def wait_for_resolution(self) -> None:
        """Wait for timer-driven resolutions that are still running."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _load_round(self, session: Session) -> RoundView | SessionSummary:
        if len(session.round_results) >= self.max_rounds:
            return await self.finalize_session()
        self.state = ControllerState.LOADING_ROUND
        try:
            descriptor = await self.backend.get_next_round(
                session.id, session.region_filter
            )
        except BackendError as exc:
            if self._is_stale(session):
                raise
            if exc.session_already_ended:
                return await self._reconcile_ended_session(session)
            self.state = ControllerState.ROUND_COMPLETE
            raise

        metadata, _ = await asyncio.gather(
            self._fetch_photo_metadata(descriptor.photo_id),
            self.hint_service.refresh_balance(),
        )
        if self._is_stale(session):
            raise SessionStateError(f"Session {session.id} ended while loading a round")

        round_ = Round(
            number=session.round_number,
            photo_id=descriptor.photo_id,
            start_time=self.clock(),
            hints=self.hint_service.new_round_hints(),
        )
        if metadata is not None:
            round_.actual_location = Coordinates(
                lat=metadata.latitude, lon=metadata.longitude
            )
            round_.actual_azimuth = metadata.azimuth
        for hint_type in descriptor.hints_purchased:
            round_.hints[hint_type].unlocked = True

        self.current_round = round_
        self.pending_guess = None
        self.guard.reset()
        self.state = ControllerState.ROUND_ACTIVE
        self.timer.start(
            self.profile.time_limit_seconds, self._on_tick, self._on_expire
        )
        _logger.info(
            "Round %s/%s started with photo %s",
            round_.number,
            self.max_rounds,
            round_.photo_id,
        )
        return self.snapshot()

    async def _reconcile_ended_session(self, session: Session) -> SessionSummary:
        _logger.warning(
            "Backend reports session %s already ended at round %s",
            session.id,
            session.round_number,
        )
        if session.round_number >= self.max_rounds:
            return await self.finalize_session()
        if session.round_results:
            _logger.info(
                "Treating session %s as completed early after %s rounds",
                session.id,
                len(session.round_results),
            )
            return await self.finalize_session()
        if await self._backend_reports_completed(session.id):
            return await self.finalize_session()

        session.status = SessionStatus.ABANDONED
        self.state = ControllerState.SESSION_TERMINAL
        raise SessionReconciliationError(session.id)

    async def _backend_reports_completed(self, session_id: str) -> bool:
        try:
            sessions = await self.backend.list_user_sessions(self.principal)
        except BackendError as exc:
            _logger.warning("Failed to list sessions for reconciliation: %s", exc)
            return False
        return any(
            info.id == session_id and info.status == SessionStatus.COMPLETED
            for info in sessions
        )

    async def _resolve_round(
        self, session: Session, round_: Round, guess: Guess, timed_out: bool
    ) -> RoundResult | None:
        self.timer.cancel()
        self.state = ControllerState.ROUND_RESOLVING
        elapsed = max(0, self.profile.time_limit_seconds - self.timer.remaining_seconds)
        guess = replace(guess, submitted_at=self.clock())
        local_score, local_norm, local_distance = self._local_score(round_, guess)

        outcome: GuessOutcome | None
        try:
            outcome = await self.backend.submit_guess(
                session.id,
                guess.lat,
                guess.lon,
                guess.azimuth,
                guess.confidence_radius,
            )
        except BackendError as exc:
            _logger.warning(
                "Guess submission failed for round %s, using local score: %s",
                round_.number,
                exc,
            )
            outcome = None

        if self._is_stale(session) or not round_.is_active:
            _logger.info("Discarding result for round %s", round_.number)
            return None

        if outcome is None:
            round_score, round_norm, distance = local_score, local_norm, local_distance
            actual = round_.actual_location
        else:
            round_score = outcome.display_score
            round_norm = outcome.normalized_score
            distance = outcome.distance
            actual = Coordinates(
                lat=outcome.actual_location.lat, lon=outcome.actual_location.lon
            )
        round_.complete(guess, round_score, round_norm, end_time=self.clock())

        azimuth_error = None
        if guess.azimuth is not None and round_.actual_azimuth is not None:
            azimuth_error = scoring.azimuth_error(guess.azimuth, round_.actual_azimuth)
        result = RoundResult(
            round_number=round_.number,
            photo_id=round_.photo_id,
            guess=guess.coordinates,
            actual_location=actual,
            score=round_score,
            score_norm=round_norm,
            distance_meters=distance,
            elapsed_seconds=elapsed,
            difficulty=self.profile.difficulty,
            timed_out=timed_out,
            authoritative=outcome is not None,
            azimuth_error=azimuth_error,
        )
        session.round_results.append(result)
        self.pending_guess = None
        _logger.info(
            "Round %s resolved by %s with score %s",
            round_.number,
            self.guard.terminal_kind,
            round_score,
        )
        self.observer.on_round_resolved(result)

        if len(session.round_results) >= self.max_rounds:
            await self.finalize_session()
        else:
            session.round_number += 1
            self.state = ControllerState.ROUND_COMPLETE
        return result

    def _local_score(
        self, round_: Round, guess: Guess
    ) -> tuple[int, int, float | None]:
        if round_.actual_location is None:
            return 0, 0, None
        distance = scoring.distance_meters(
            guess.lat,
            guess.lon,
            round_.actual_location.lat,
            round_.actual_location.lon,
        )
        base_score = scoring.score(distance)
        return (
            round(base_score * self.profile.score_multiplier),
            scoring.normalized_score(base_score),
            distance,
        )

    async def _settle(self, session: Session) -> SessionSummary:
        self._end_round_for_exit()
        settlement: SessionSettlement | None = None
        if session.is_active:
            self.state = ControllerState.SESSION_FINALIZING
            try:
                settlement = await self.backend.finalize_session(session.id)
            except BackendError as exc:
                _logger.warning("Failed to finalize session %s: %s", session.id, exc)
            if session.is_active:
                session.status = SessionStatus.COMPLETED
            await self.hint_service.refresh_balance()
        if self.session is session:
            self.state = ControllerState.SESSION_TERMINAL
        summary = _build_summary(session, settlement)
        self.summary = summary
        _logger.info(
            "Session %s finished with %s points (reward %.2f SPOT)",
            session.id,
            summary.total_score,
            summary.final_reward,
        )
        return summary

    def _retire_current_session(self) -> None:
        session = self.session
        if session is None or not session.is_active:
            return
        self._end_round_for_exit()
        session.status = SessionStatus.COMPLETED
        _logger.info("Marked stale session %s completed", session.id)

    async def _cleanup_stale_sessions(self) -> None:
        try:
            sessions = await self.backend.list_user_sessions(self.principal)
        except BackendError as exc:
            _logger.warning("Failed to list sessions for cleanup: %s", exc)
            return
        for info in sessions:
            if info.status != SessionStatus.ACTIVE:
                continue
            try:
                await self.backend.finalize_session(info.id)
            except BackendError as exc:
                _logger.warning("Failed to finalize stale session %s: %s", info.id, exc)
            else:
                _logger.info("Finalized stale session %s", info.id)

    async def _fetch_photo_metadata(self, photo_id: int) -> PhotoMetadata | None:
        try:
            return await self.backend.get_photo_metadata(photo_id)
        except BackendError as exc:
            _logger.warning("Photo metadata unavailable for %s: %s", photo_id, exc)
            return None

    def _end_round_for_exit(self) -> None:
        self.timer.cancel()
        self.guard.mark_navigating_away()
        round_ = self.current_round
        if round_ is not None and round_.is_active:
            self.guard.try_enter_terminal_transition(TransitionKind.ABANDON)
            round_.abandon(self.clock())

    def _on_tick(self, remaining_seconds: int) -> None:
        self.observer.on_tick(remaining_seconds)

    def _on_expire(self) -> None:
        if self.guard.is_navigating_away or self.guard.has_terminal_transition_occurred:
            _logger.debug("Dropping timeout; round already ended or off screen")
            return
        if not self.guard.note_timeout():
            return
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.submit_guess(is_timeout=True))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _random_guess(self) -> Guess:
        return Guess(
            lat=(self.rng.random() - 0.5) * 180,
            lon=(self.rng.random() - 0.5) * 360,
            confidence_radius=min(
                DEFAULT_CONFIDENCE_RADIUS, self.profile.max_confidence_radius
            ),
        )

    def _clamp_radius(self, radius: float) -> float:
        if not math.isfinite(radius) or radius < 0:
            raise GuessValidationError("Confidence radius must be a positive distance")
        return min(radius, self.profile.max_confidence_radius)

    def _is_stale(self, session: Session) -> bool:
        return self.session is not session or not session.is_active

    def _require_session(self) -> Session:
        if self.session is None:
            raise SessionStateError("No session has been created")
        return self.session

    def _require_active_round(self) -> Round:
        session = self._require_session()
        round_ = self.current_round
        if (
            not session.is_active
            or round_ is None
            or not round_.is_active
            or self.state is not ControllerState.ROUND_ACTIVE
        ):
            raise SessionStateError("There is no active round")
        return round_


def _validate_coordinates(lat: float, lon: float) -> None:
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise GuessValidationError("Guess coordinates must be finite numbers")
    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise GuessValidationError(f"Guess ({lat}, {lon}) is outside the map")


def _build_summary(
    session: Session, settlement: SessionSettlement | None
) -> SessionSummary:
    total_score = session.total_score
    estimated = sum(
        result.score / scoring.MAX_SCORE * SPOT_PER_MAX_SCORE
        for result in session.round_results
    )
    player_reward = (
        settlement.player_reward / REWARD_UNITS_PER_SPOT
        if settlement is not None
        else None
    )
    return SessionSummary(
        session_id=session.id,
        status=session.status,
        round_results=tuple(session.round_results),
        total_score=total_score,
        estimated_reward=estimated,
        player_reward=player_reward,
        final_reward=player_reward if player_reward else estimated,
    )
