"""Dependency container wiring for the game client."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from spotquest.adapters.game_backend import GameBackend, HttpxGameBackend
from spotquest.config import Settings, parse_region_filter
from spotquest.services.hints import HintService
from spotquest.services.sessions import RoundObserver, SessionController
from spotquest.services.timer import RoundTimer


@dataclass
class AppContainer:
    """Holds client-wide dependencies."""

    settings: Settings
    backend: GameBackend
    hint_service: HintService
    session_controller: SessionController
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None, observer: RoundObserver | None = None
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    backend = HttpxGameBackend.create(
        base_url=resolved_settings.backend_base_url,
        principal=resolved_settings.player_principal,
        timeout_seconds=resolved_settings.backend_timeout_seconds,
    )
    hint_service = HintService(
        backend=backend, principal=resolved_settings.player_principal
    )
    controller = SessionController(
        backend=backend,
        hint_service=hint_service,
        principal=resolved_settings.player_principal,
        difficulty=resolved_settings.difficulty,
        timer=RoundTimer(tick_seconds=resolved_settings.timer_tick_seconds),
        default_region_filter=parse_region_filter(resolved_settings.region_filter),
    )
    if observer is not None:
        controller.observer = observer

    async def close_resources() -> None:
        await controller.close()
        await backend.close()

    return AppContainer(
        settings=resolved_settings,
        backend=backend,
        hint_service=hint_service,
        session_controller=controller,
        close_resources=close_resources,
    )
