"""Payload models returned by the game backend."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HintType(StrEnum):
    """Purchasable hint types."""

    BASIC_RADIUS = "BasicRadius"
    PREMIUM_RADIUS = "PremiumRadius"
    DIRECTION_HINT = "DirectionHint"


class LatLon(_Payload):
    """Coordinate pair as sent by the backend."""

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class RoundDescriptor(_Payload):
    """Round state returned when a new round starts."""

    photo_id: int
    status: str = "Active"
    start_time: int | None = None
    hints_purchased: list[HintType] = Field(default_factory=list)


class GuessOutcome(_Payload):
    """Authoritative round result computed by the backend."""

    display_score: int = Field(ge=0)
    normalized_score: int = Field(ge=0, le=100)
    distance: float = Field(ge=0.0)
    actual_location: LatLon
    guess_location: LatLon
    photo_id: int
    player_rating_change: int = 0
    new_player_rating: int | None = None


class RadiusHint(_Payload):
    """Circle known to contain the photo location."""

    center_lat: float
    center_lon: float
    radius: float = Field(ge=0.0)


class HintContent(_Payload):
    """Revealed hint data; exactly one field is set."""

    radius_hint: RadiusHint | None = None
    direction_hint: str | None = None


class HintData(_Payload):
    """Hint purchase result."""

    hint_type: HintType
    data: HintContent


class SessionSettlement(_Payload):
    """Reward settlement returned when a session is finalized."""

    session_id: str
    total_score: int = 0
    total_score_norm: int = 0
    completed_rounds: int = 0
    total_rounds: int = 5
    player_reward: int = 0
    duration: int = 0
    rank: int | None = None


class SessionInfo(_Payload):
    """Session entry from the player's session list."""

    id: str
    status: str
    created_at: int | None = None
    round_count: int = 0
    current_round: int | None = None


class PhotoMetadata(_Payload):
    """Photo details needed for local scoring."""

    id: int
    latitude: float
    longitude: float
    azimuth: float | None = None
    region: str | None = None
    country: str | None = None
