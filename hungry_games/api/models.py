from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class PlayerStatus(StrEnum):
    normal = "normal"
    wounded = "wounded"
    zombie = "zombie"
    dead = "dead"


class Outcome(StrEnum):
    dies = "dies"
    wounded = "wounded"
    thrives = "thrives"
    none = "none"


class EventKind(StrEnum):
    resurrection = "resurrection"
    arena = "arena"
    player = "player"
    bleed_recovered = "bleed_recovered"
    bleed_died = "bleed_died"


class EventPool(StrEnum):
    bloodbath = "bloodbath"
    player = "player"
    arena = "arena"


class EventParty(BaseModel):
    # Positive: exact count. Negative: "at least abs(count)".
    count: int = 0
    outcome: Outcome = Outcome.none
    # Credits this side with one kill per member of the other side.
    killer: bool = False

    @property
    def is_multi(self) -> bool:
        return self.count < 0

    @property
    def minimum(self) -> int:
        return abs(self.count)


class EventTemplate(BaseModel):
    model_config = {"frozen": True}

    message: str = Field(..., min_length=1)
    victim: EventParty = Field(default_factory=EventParty)
    attacker: EventParty = Field(default_factory=EventParty)

    @property
    def min_participants(self) -> int:
        return self.victim.minimum + self.attacker.minimum

    @property
    def kills_anyone(self) -> bool:
        return self.victim.outcome == Outcome.dies or self.attacker.outcome == Outcome.dies


class ArenaEvent(BaseModel):
    model_config = {"frozen": True}

    message: str = Field(..., min_length=1)
    outcomes: list[EventTemplate] = Field(default_factory=list)


class CustomEvents(BaseModel):
    bloodbath: list[EventTemplate] = Field(default_factory=list)
    player: list[EventTemplate] = Field(default_factory=list)
    arena: list[ArenaEvent] = Field(default_factory=list)


class Member(BaseModel):
    """A community member that may be admitted to a game."""

    id: str
    name: str
    avatar_url: str | None = None
    is_bot: bool = False


class Player(BaseModel):
    id: str
    name: str
    # Opaque reference resolved by the presentation layer.
    avatar_url: str | None = None
    living: bool = True
    # Set when hit again while wounded; resolved at day end.
    bleeding: bool = False
    rank: int = 1
    state: PlayerStatus = PlayerStatus.normal
    kills: int = 0


class Team(BaseModel):
    id: int
    name: str
    players: list[str] = Field(default_factory=list)
    rank: int = 1
    num_alive: int = 0


class FinalEvent(BaseModel):
    kind: EventKind = EventKind.player
    message: str
    victim_ids: list[str] = Field(default_factory=list)
    attacker_ids: list[str] = Field(default_factory=list)

    @property
    def participant_ids(self) -> list[str]:
        return [*self.attacker_ids, *self.victim_ids]


class Day(BaseModel):
    # -1 until the first day is simulated; day 0 is the bloodbath.
    num: int = -1
    # 0: not simulated, 1: simulating, 2+k: next event to reveal is k.
    state: int = 0
    events: list[FinalEvent] = Field(default_factory=list)


class VictorKind(StrEnum):
    team = "team"
    player = "player"
    nobody = "nobody"


class Victor(BaseModel):
    kind: VictorKind
    team_id: int | None = None
    player_ids: list[str] = Field(default_factory=list)


class GameOptions(BaseModel):
    model_config = {"validate_assignment": True}

    arena_events: bool = True
    resurrection: bool = False
    include_bots: bool = False
    allow_no_victors: bool = True
    team_size: int = Field(0, ge=0)
    teammates_collaborate: bool = True
    mention_victor: bool = True
    mention_all: bool = False
    mention_everyone_at_start: bool = False

    # Milliseconds. Applied by the host, never by the engine.
    delay_events: int = Field(3500, ge=0)
    delay_days: int = Field(7000, ge=0)

    probability_of_resurrect: float = Field(0.1, ge=0.0, le=1.0)
    probability_of_arena_event: float = Field(0.25, ge=0.0, le=1.0)
    probability_of_bleed_to_death: float = Field(0.5, ge=0.0, le=1.0)

    @property
    def teams_enabled(self) -> bool:
        return self.team_size > 0

    @property
    def collaboration_active(self) -> bool:
        return self.teammates_collaborate and self.team_size > 0


class GameState(BaseModel):
    name: str
    included_players: list[Player] = Field(default_factory=list)
    teams: list[Team] = Field(default_factory=list)
    day: Day = Field(default_factory=Day)
    num_alive: int = 0
    in_progress: bool = False
    ended: bool = False
    victor: Victor | None = None

    def find_player(self, player_id: str) -> Player | None:
        return next((p for p in self.included_players if p.id == player_id), None)

    def team_of(self, player_id: str) -> Team | None:
        return next((t for t in self.teams if player_id in t.players), None)

    def living_players(self) -> list[Player]:
        return [p for p in self.included_players if p.living]


class InstanceState(BaseModel):
    instance_id: str
    name: str
    created_at: datetime
    last_updated_at: datetime

    # For reproducibility/debugging: day RNGs derive from (seed, games_started, day).
    seed: int
    games_started: int = 0

    members: list[Member] = Field(default_factory=list)
    excluded_players: list[str] = Field(default_factory=list)
    options: GameOptions = Field(default_factory=GameOptions)
    custom_events: CustomEvents = Field(default_factory=CustomEvents)
    current_game: GameState | None = None


class InstanceCreateRequest(BaseModel):
    instance_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    members: list[Member] = Field(default_factory=list)
    seed: int | None = None


class OptionRequest(BaseModel):
    value: Any


class PlayersRequest(BaseModel):
    members: list[Member] = Field(..., min_length=1)


class PlayerIdsRequest(BaseModel):
    player_ids: list[str] = Field(..., min_length=1)


class SwapRequest(BaseModel):
    player_id_a: str
    player_id_b: str


class RenameTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    team_id: int | None = None
    player_id: str | None = None


class ResetRequest(BaseModel):
    what: str


class AddEventRequest(BaseModel):
    pool: EventPool
    event: dict[str, Any]


class RevealResponse(BaseModel):
    instance: InstanceState
    event: FinalEvent | None = None
    day_ended: bool = False
    has_next_event: bool = False


class InstanceListResponse(BaseModel):
    instances: list[InstanceState]


class TemplateStatsResponse(BaseModel):
    pool: EventPool
    count: int
    kill_percent: float
    wound_percent: float
    thrive_percent: float
