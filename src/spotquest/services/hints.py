"""In-round hint catalog, pricing and purchases."""

import logging
from dataclasses import dataclass, field

from spotquest.adapters.game_backend import GameBackend
from spotquest.domain.backend import HintContent, HintType
from spotquest.domain.difficulty import DifficultyProfile
from spotquest.domain.errors import (
    BackendError,
    HintAlreadyUnlockedError,
    HintPurchaseError,
    InsufficientBalanceError,
)
from spotquest.domain.sessions import Hint, Round

HINT_BASE_COSTS: dict[HintType, int] = {
    HintType.BASIC_RADIUS: 100,
    HintType.PREMIUM_RADIUS: 300,
    HintType.DIRECTION_HINT: 100,
}

_logger = logging.getLogger(__name__)


@dataclass
class HintService:
    """Hint pricing plus a cached view of the player's token balance.

    The balance is refreshed from the backend after every purchase and is
    only used for a fast local affordability check.
    """

    backend: GameBackend
    principal: str
    balance: int = 0
    _in_flight: set[tuple[str, int, HintType]] = field(
        default_factory=set, init=False, repr=False
    )

    def new_round_hints(self) -> dict[HintType, Hint]:
        """Return a fresh, fully locked catalog for a new round."""
        return {
            hint_type: Hint(hint_type=hint_type, base_cost=cost)
            for hint_type, cost in HINT_BASE_COSTS.items()
        }

    def hint_cost(self, hint_type: HintType, profile: DifficultyProfile) -> int:
        """Return the charged cost for a hint at a difficulty."""
        return round(HINT_BASE_COSTS[hint_type] * profile.hint_cost_multiplier)

    def can_afford(self, hint_type: HintType, profile: DifficultyProfile) -> bool:
        return self.balance >= self.hint_cost(hint_type, profile)

    async def refresh_balance(self) -> int:
        """Reload the balance; keeps the cached value if the backend fails."""
        try:
            self.balance = await self.backend.get_token_balance(self.principal)
        except BackendError as exc:
            _logger.warning("Failed to refresh token balance: %s", exc)
        return self.balance

    async def purchase(
        self,
        session_id: str,
        round_: Round,
        hint_type: HintType,
        profile: DifficultyProfile,
    ) -> HintContent:
        """Buy a hint for an active round and return its content.

        The round itself is not modified; the caller records the unlock.
        """
        if not round_.is_active:
            raise HintPurchaseError(f"Round {round_.number} is no longer active")
        key = (session_id, round_.number, hint_type)
        if hint_type in round_.hints_purchased or key in self._in_flight:
            raise HintAlreadyUnlockedError(
                f"{hint_type} was already purchased or is pending this round"
            )
        cost = self.hint_cost(hint_type, profile)
        if self.balance < cost:
            raise InsufficientBalanceError(required=cost, available=self.balance)

        self._in_flight.add(key)
        try:
            try:
                result = await self.backend.purchase_hint(session_id, hint_type)
            except BackendError as exc:
                _logger.warning("Hint purchase rejected: %s", exc)
                raise HintPurchaseError(exc.message) from exc

            _logger.info(
                "Purchased %s for round %s (cost=%s)", hint_type, round_.number, cost
            )
            await self.refresh_balance()
        finally:
            self._in_flight.discard(key)
        return result.data

    @staticmethod
    def describe(content: HintContent) -> str:
        """Return a player-facing description of revealed hint content."""
        if content.radius_hint is not None:
            hint = content.radius_hint
            return (
                f"Within {hint.radius:.0f} m of "
                f"{hint.center_lat:.4f}°, {hint.center_lon:.4f}°"
            )
        if content.direction_hint:
            return f"Photo taken facing {content.direction_hint}"
        return ""
