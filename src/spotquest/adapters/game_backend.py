"""Game backend RPC client."""

from dataclasses import dataclass
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from spotquest.domain.backend import (
    GuessOutcome,
    HintData,
    HintType,
    PhotoMetadata,
    RoundDescriptor,
    SessionInfo,
    SessionSettlement,
)
from spotquest.domain.errors import BackendError, BackendUnavailableError

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class GameBackend(Protocol):
    """Interface for the authoritative game backend."""

    async def create_session(self) -> str:
        """Create a play session and return its id."""

    async def get_next_round(
        self, session_id: str, region_filter: str | None = None
    ) -> RoundDescriptor:
        """Start the next round of a session."""

    async def submit_guess(  # noqa: PLR0913
        self,
        session_id: str,
        lat: float,
        lon: float,
        azimuth: float | None,
        confidence_radius: float,
    ) -> GuessOutcome:
        """Submit a guess and return the authoritative result."""

    async def purchase_hint(self, session_id: str, hint_type: HintType) -> HintData:
        """Buy a hint for the session's active round."""

    async def get_token_balance(self, principal: str) -> int:
        """Return the player's token balance in units."""

    async def finalize_session(self, session_id: str) -> SessionSettlement:
        """Settle rewards and close the session."""

    async def abandon_session(self, session_id: str) -> None:
        """Mark the session abandoned."""

    async def list_user_sessions(self, principal: str) -> list[SessionInfo]:
        """Return the sessions the backend holds for a player."""

    async def get_photo_metadata(self, photo_id: int) -> PhotoMetadata | None:
        """Return photo location metadata, if the photo exists."""


@dataclass
class HttpxGameBackend(GameBackend):
    """HTTPX-backed game backend client.

    Every call is ``POST {base_url}/rpc/{method}`` with a JSON body and
    answers ``{"ok": value}`` or ``{"err": message}``.
    """

    base_url: str
    principal: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 15

    @classmethod
    def create(
        cls, base_url: str, principal: str, timeout_seconds: float = 15
    ) -> "HttpxGameBackend":
        """Create a backend client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            principal=principal,
            http_client=httpx.AsyncClient(headers={"X-Principal": principal}),
            timeout_seconds=timeout_seconds,
        )

    async def create_session(self) -> str:
        """Create a play session."""
        payload = await self._call("createSession", {})
        if not isinstance(payload, str) or not payload:
            raise BackendError("createSession", "Malformed response")
        return payload

    async def get_next_round(
        self, session_id: str, region_filter: str | None = None
    ) -> RoundDescriptor:
        """Start the next round, optionally restricted to a region."""
        payload = await self._call(
            "getNextRound", {"sessionId": session_id, "regionFilter": region_filter}
        )
        return _parse("getNextRound", RoundDescriptor, payload)

    async def submit_guess(  # noqa: PLR0913
        self,
        session_id: str,
        lat: float,
        lon: float,
        azimuth: float | None,
        confidence_radius: float,
    ) -> GuessOutcome:
        """Submit a guess for the active round."""
        payload = await self._call(
            "submitGuess",
            {
                "sessionId": session_id,
                "guessLat": lat,
                "guessLon": lon,
                "guessAzimuth": azimuth,
                "confidenceRadius": confidence_radius,
            },
        )
        return _parse("submitGuess", GuessOutcome, payload)

    async def purchase_hint(self, session_id: str, hint_type: HintType) -> HintData:
        """Buy a hint for the active round."""
        payload = await self._call(
            "purchaseHint", {"sessionId": session_id, "hintType": hint_type.value}
        )
        return _parse("purchaseHint", HintData, payload)

    async def get_token_balance(self, principal: str) -> int:
        """Fetch the token balance for a player."""
        payload = await self._call("getTokenBalance", {"principal": principal})
        if isinstance(payload, bool) or not isinstance(payload, int | str):
            raise BackendError("getTokenBalance", "Malformed response")
        try:
            return int(payload)
        except ValueError as exc:
            raise BackendError("getTokenBalance", "Malformed response") from exc

    async def finalize_session(self, session_id: str) -> SessionSettlement:
        """Settle a session's rewards."""
        payload = await self._call("finalizeSession", {"sessionId": session_id})
        return _parse("finalizeSession", SessionSettlement, payload)

    async def abandon_session(self, session_id: str) -> None:
        """Mark a session abandoned."""
        await self._call("abandonSession", {"sessionId": session_id})

    async def list_user_sessions(self, principal: str) -> list[SessionInfo]:
        """List a player's sessions."""
        payload = await self._call("getUserSessions", {"principal": principal})
        items = payload if isinstance(payload, list) else []
        return [_parse("getUserSessions", SessionInfo, item) for item in items]

    async def get_photo_metadata(self, photo_id: int) -> PhotoMetadata | None:
        """Fetch the metadata for a photo."""
        payload = await self._call("getPhotoMetadata", {"photoId": photo_id})
        if payload is None:
            return None
        return _parse("getPhotoMetadata", PhotoMetadata, payload)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _call(self, method: str, body: dict[str, object]) -> object:
        """Post an RPC call and unwrap its ok/err envelope."""
        url = f"{self.base_url}/rpc/{method}"
        try:
            response = await self.http_client.post(
                url, json=body, timeout=self.timeout_seconds
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            detail = str(exc) or type(exc).__name__
            raise BackendUnavailableError(method, detail) from exc
        if not isinstance(result, dict):
            raise BackendError(method, "Malformed response")
        if "err" in result:
            raise BackendError(method, str(result["err"]))
        return result.get("ok")


def _parse(method: str, model: type[_ModelT], payload: object) -> _ModelT:
    """Validate a payload, reporting schema drift as a backend error."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise BackendError(method, f"Malformed response: {exc}") from exc
