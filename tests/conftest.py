"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field

import pytest

from spotquest.adapters.game_backend import GameBackend
from spotquest.config import Settings
from spotquest.domain.backend import (
    GuessOutcome,
    HintContent,
    HintData,
    HintType,
    LatLon,
    PhotoMetadata,
    RadiusHint,
    RoundDescriptor,
    SessionInfo,
    SessionSettlement,
)
from spotquest.domain.errors import BackendError, BackendUnavailableError
from spotquest.domain.sessions import RoundResult
from spotquest.services import scoring
from spotquest.services.hints import HintService
from spotquest.services.sessions import RoundObserver, SessionController

PLAYER = "player-1"

PHOTOS = {
    101: PhotoMetadata(id=101, latitude=35.6586, longitude=139.7454, azimuth=90.0),
    102: PhotoMetadata(id=102, latitude=48.8584, longitude=2.2945, azimuth=180.0),
    103: PhotoMetadata(id=103, latitude=40.6892, longitude=-74.0445),
    104: PhotoMetadata(id=104, latitude=-33.8568, longitude=151.2153),
    105: PhotoMetadata(id=105, latitude=51.5007, longitude=-0.1246),
}


def _default_photos() -> dict[int, PhotoMetadata]:
    return dict(PHOTOS)


@dataclass
class FakeGameBackend(GameBackend):
    """In-memory game backend that records every call."""

    photos: dict[int, PhotoMetadata] = field(default_factory=_default_photos)
    balance: int = 1000
    sessions: list[SessionInfo] = field(default_factory=list)
    settlement_reward: int = 0
    fail_submit: bool = False
    next_round_error: BackendError | None = None
    hint_error: BackendError | None = None
    balance_error: BackendError | None = None
    finalize_error: BackendError | None = None
    abandon_error: BackendError | None = None
    list_error: BackendError | None = None
    submit_gate: asyncio.Event | None = None
    finalize_gate: asyncio.Event | None = None
    hint_gate: asyncio.Event | None = None
    calls: list[tuple[str, object]] = field(default_factory=list)
    created: int = 0
    rounds_served: int = 0
    current_photo_id: int | None = None

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def call_args(self, method: str) -> list[object]:
        return [args for name, args in self.calls if name == method]

    async def create_session(self) -> str:
        self.created += 1
        session_id = f"session-{self.created}"
        self.calls.append(("create_session", session_id))
        return session_id

    async def get_next_round(
        self, session_id: str, region_filter: str | None = None
    ) -> RoundDescriptor:
        self.calls.append(("get_next_round", (session_id, region_filter)))
        if self.next_round_error is not None:
            raise self.next_round_error
        photo_ids = sorted(PHOTOS)
        photo_id = photo_ids[self.rounds_served % len(photo_ids)]
        self.rounds_served += 1
        self.current_photo_id = photo_id
        return RoundDescriptor(photo_id=photo_id)

    async def submit_guess(  # noqa: PLR0913
        self,
        session_id: str,
        lat: float,
        lon: float,
        azimuth: float | None,
        confidence_radius: float,
    ) -> GuessOutcome:
        self.calls.append(("submit_guess", (session_id, lat, lon, confidence_radius)))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.fail_submit:
            raise BackendUnavailableError("submitGuess", "timed out")
        photo = PHOTOS[self.current_photo_id]
        distance = scoring.distance_meters(lat, lon, photo.latitude, photo.longitude)
        display_score = scoring.score(distance)
        return GuessOutcome(
            display_score=display_score,
            normalized_score=scoring.normalized_score(display_score),
            distance=distance,
            actual_location=LatLon(lat=photo.latitude, lon=photo.longitude),
            guess_location=LatLon(lat=lat, lon=lon),
            photo_id=photo.id,
        )

    async def purchase_hint(self, session_id: str, hint_type: HintType) -> HintData:
        self.calls.append(("purchase_hint", hint_type))
        if self.hint_gate is not None:
            await self.hint_gate.wait()
        if self.hint_error is not None:
            raise self.hint_error
        self.balance -= 100
        if hint_type is HintType.DIRECTION_HINT:
            content = HintContent(direction_hint="East")
        else:
            content = HintContent(
                radius_hint=RadiusHint(
                    center_lat=35.6, center_lon=139.7, radius=5000.0
                )
            )
        return HintData(hint_type=hint_type, data=content)

    async def get_token_balance(self, principal: str) -> int:
        self.calls.append(("get_token_balance", principal))
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance

    async def finalize_session(self, session_id: str) -> SessionSettlement:
        self.calls.append(("finalize_session", session_id))
        if self.finalize_gate is not None:
            await self.finalize_gate.wait()
        if self.finalize_error is not None:
            raise self.finalize_error
        return SessionSettlement(
            session_id=session_id, player_reward=self.settlement_reward
        )

    async def abandon_session(self, session_id: str) -> None:
        self.calls.append(("abandon_session", session_id))
        if self.abandon_error is not None:
            raise self.abandon_error

    async def list_user_sessions(self, principal: str) -> list[SessionInfo]:
        self.calls.append(("list_user_sessions", principal))
        if self.list_error is not None:
            raise self.list_error
        return list(self.sessions)

    async def get_photo_metadata(self, photo_id: int) -> PhotoMetadata | None:
        self.calls.append(("get_photo_metadata", photo_id))
        return self.photos.get(photo_id)


@dataclass
class RecordingObserver(RoundObserver):
    """Observer that keeps every event it receives."""

    ticks: list[int] = field(default_factory=list)
    results: list[RoundResult] = field(default_factory=list)

    def on_tick(self, remaining_seconds: int) -> None:
        self.ticks.append(remaining_seconds)

    def on_round_resolved(self, result: RoundResult) -> None:
        self.results.append(result)


def build_controller(backend: FakeGameBackend, **kwargs) -> SessionController:
    """Create a controller wired to a fake backend."""
    return SessionController(
        backend=backend,
        hint_service=HintService(backend=backend, principal=PLAYER),
        principal=PLAYER,
        **kwargs,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        backend_base_url="https://backend.example.test",
        player_principal=PLAYER,
    )


@pytest.fixture
def backend() -> FakeGameBackend:
    return FakeGameBackend()
