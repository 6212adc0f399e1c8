"""Wire messages exchanged over the buzzer WebSocket.

Every message is a JSON object carrying a ``type`` discriminator. Inbound
commands form a closed union so the coordinator can dispatch on the
model class; outbound events serialize with camelCase keys.
"""
from typing import Annotated, Any, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter, model_validator


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------

class JoinCommand(WireModel):
    # "join-game" is the event name older player pages send
    type: Literal["join", "join-game"]
    name: str = ""
    player_id: Optional[str] = Field(default=None, alias="playerId")


class BuzzCommand(WireModel):
    type: Literal["buzz"]


class ActivateBuzzerCommand(WireModel):
    # Older quizmaster pages send the question fields flat, e.g.
    # {"type": "activate-buzzer", "category": "X", "points": 10}
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Literal["activate-buzzer"]
    question: Any = None

    @model_validator(mode="after")
    def _collect_flat_question(self):
        if self.question is None and self.model_extra:
            self.question = dict(self.model_extra)
        return self


class ResetBuzzerCommand(WireModel):
    type: Literal["reset-buzzer"]


class UpdateScoreCommand(WireModel):
    type: Literal["update-score"]
    player_id: str = Field(alias="playerId")
    points: StrictInt


class GetPlayersCommand(WireModel):
    type: Literal["get-players"]


class ResetGameCommand(WireModel):
    type: Literal["reset-game"]


Command = Annotated[
    Union[
        JoinCommand,
        BuzzCommand,
        ActivateBuzzerCommand,
        ResetBuzzerCommand,
        UpdateScoreCommand,
        GetPlayersCommand,
        ResetGameCommand,
    ],
    Field(discriminator="type"),
]

COMMAND_TYPES = get_args(get_args(Command)[0])

_command_adapter = TypeAdapter(Command)


def parse_command(data: Any) -> Command:
    """Validate a decoded JSON value. Raises pydantic.ValidationError."""
    return _command_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------

class PlayerInfo(WireModel):
    name: str
    score: int
    player_id: str = Field(alias="playerId")


class JoinSuccess(WireModel):
    type: Literal["join-success"] = "join-success"
    player: PlayerInfo


class RejoinSuccess(WireModel):
    type: Literal["rejoin-success"] = "rejoin-success"
    player: PlayerInfo


class PlayerRejoined(WireModel):
    type: Literal["player-rejoined"] = "player-rejoined"
    name: str
    score: int


class PlayerLeft(WireModel):
    type: Literal["player-left"] = "player-left"
    name: str
    score: int


class PlayersUpdate(WireModel):
    type: Literal["players-update"] = "players-update"
    players: List[PlayerInfo]


class BuzzReceived(WireModel):
    type: Literal["buzz-received"] = "buzz-received"
    player_id: str = Field(alias="playerId")
    name: str
    timestamp: int


class BuzzerActive(WireModel):
    type: Literal["buzzer-active"] = "buzzer-active"
    question: Any = None


class BuzzerReset(WireModel):
    type: Literal["buzzer-reset"] = "buzzer-reset"


class GameReset(WireModel):
    type: Literal["game-reset"] = "game-reset"


Event = Union[
    JoinSuccess,
    RejoinSuccess,
    PlayerRejoined,
    PlayerLeft,
    PlayersUpdate,
    BuzzReceived,
    BuzzerActive,
    BuzzerReset,
    GameReset,
]
