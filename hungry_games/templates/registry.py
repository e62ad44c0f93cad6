from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from hungry_games.api.models import ArenaEvent, CustomEvents, EventParty, EventPool, EventTemplate, Outcome

logger = logging.getLogger(__name__)

TEMPLATES_FILENAME = "events.json"


class TemplateLoadError(RuntimeError):
    pass


class _LibraryDocument(BaseModel):
    bloodbath: list[EventTemplate] = Field(default_factory=list)
    player: list[EventTemplate] = Field(default_factory=list)
    arena: list[ArenaEvent] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TemplateLibrary:
    """Read-only template collections.

    Built-in templates come first; per-instance custom templates are appended by `merged`.
    """

    bloodbath: tuple[EventTemplate, ...] = ()
    player: tuple[EventTemplate, ...] = ()
    arena: tuple[ArenaEvent, ...] = ()

    def merged(self, custom: CustomEvents) -> "TemplateLibrary":
        return TemplateLibrary(
            bloodbath=(*self.bloodbath, *custom.bloodbath),
            player=(*self.player, *custom.player),
            arena=(*self.arena, *custom.arena),
        )

    def templates(self, which: EventPool) -> tuple[EventTemplate, ...]:
        """Every template that can be drawn from a pool; arena events contribute their outcomes."""

        if which == EventPool.bloodbath:
            return self.bloodbath
        if which == EventPool.player:
            return self.player
        return tuple(t for a in self.arena for t in a.outcomes)


@dataclass(frozen=True, slots=True)
class TemplateStats:
    count: int
    num_kill: int
    num_wound: int
    num_thrive: int

    def percent(self, n: int) -> float:
        if self.count == 0:
            return 0.0
        return round(n / self.count * 100, 1)


def template_stats(templates: Sequence[EventTemplate]) -> TemplateStats:
    def has(t: EventTemplate, outcome: Outcome) -> bool:
        return t.attacker.outcome == outcome or t.victim.outcome == outcome

    return TemplateStats(
        count=len(templates),
        num_kill=sum(1 for t in templates if has(t, Outcome.dies)),
        num_wound=sum(1 for t in templates if has(t, Outcome.wounded)),
        num_thrive=sum(1 for t in templates if has(t, Outcome.thrives)),
    )


def load_template_json(path: Path) -> TemplateLibrary:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise TemplateLoadError(f"Template file not found: {path}") from e

    try:
        doc = _LibraryDocument.model_validate_json(raw)
    except ValidationError as e:
        raise TemplateLoadError(f"Invalid template file {path}: {e}") from e

    if not doc.bloodbath or not doc.player:
        raise TemplateLoadError(f"Template file {path} needs bloodbath and player events")

    return TemplateLibrary(bloodbath=tuple(doc.bloodbath), player=tuple(doc.player), arena=tuple(doc.arena))


def _t(message: str, victim: tuple[int, str, bool] = (1, "none", False), attacker: tuple[int, str, bool] = (0, "none", False)) -> EventTemplate:
    return EventTemplate(
        message=message,
        victim=EventParty(count=victim[0], outcome=Outcome(victim[1]), killer=victim[2]),
        attacker=EventParty(count=attacker[0], outcome=Outcome(attacker[1]), killer=attacker[2]),
    )


def _fallback_library() -> TemplateLibrary:
    """Tiny built-in library used when no template file is available.

    Covers every outcome and a multi-victim event so a game can always finish.
    """

    bloodbath = (
        _t("{victim} grab[Vs|] a backpack and retreat[Vs|]."),
        _t("{victim} step[Vs|] off the podium too soon and blow[Vs|] up.", victim=(1, "dies", False)),
        _t("{attacker} kill[As|] {victim} at the Cornucopia.", victim=(1, "dies", False), attacker=(1, "none", True)),
        _t("{attacker} wound[As|] {victim} while fleeing.", victim=(1, "wounded", False), attacker=(1, "none", False)),
    )
    player = (
        _t("{victim} hunt[Vs|] for other tributes."),
        _t("{victim} find[Vs|] a clean water source.", victim=(1, "thrives", False)),
        _t("{victim} fall[Vs|] and injure[Vs|] themselves.", victim=(1, "wounded", False)),
        _t("{attacker} ambush[Aes|] and kill[As|] {victim}.", victim=(1, "dies", False), attacker=(1, "none", True)),
        _t("{attacker} set[As|] a trap that kills {victim}.", victim=(-2, "dies", False), attacker=(1, "none", True)),
        _t("{victim} forage[Vs|] for berries near {dead}'s body."),
    )
    arena = (
        ArenaEvent(
            message="A wildfire sweeps through the arena.",
            outcomes=[
                _t("{victim} outrun[Vs|] the flames."),
                _t("{victim} [Vis|are] burned but survive[Vs|].", victim=(1, "wounded", False)),
                _t("{victim} [Vis|are] consumed by the fire.", victim=(1, "dies", False)),
            ],
        ),
    )
    return TemplateLibrary(bloodbath=bloodbath, player=player, arena=arena)


def templates_path(*, root: Path) -> Path:
    override = os.getenv("HUNGRY_GAMES_TEMPLATES_PATH", "").strip()
    if override:
        return Path(override)
    return root / "assets" / TEMPLATES_FILENAME


def _strict() -> bool:
    return os.getenv("HUNGRY_GAMES_STRICT_TEMPLATES", "").strip().lower() in {"1", "true", "yes"}


class TemplateStore:
    """Holds the loaded library and reloads it when the file changes on disk.

    Games copy their template pool at day start, so a reload never affects an in-flight day.
    """

    def __init__(self, path: Path):
        self.path = path
        self._mtime: float | None = None
        self.library = self._load()

    def _current_mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _load(self) -> TemplateLibrary:
        mtime = self._current_mtime()
        try:
            library = load_template_json(self.path)
        except TemplateLoadError:
            if _strict():
                raise
            logger.warning("Falling back to built-in templates (could not load %s)", self.path)
            library = _fallback_library()
        self._mtime = mtime
        return library

    def refresh_if_changed(self) -> bool:
        mtime = self._current_mtime()
        if mtime is None or mtime == self._mtime:
            return False

        logger.info("Re-reading event templates from %s", self.path)
        try:
            self.library = load_template_json(self.path)
        except TemplateLoadError as e:
            # Keep serving the previous library; the next change retries.
            logger.error("Failed to reload templates: %s", e)
        self._mtime = mtime
        return True


def load_template_store(*, root: Path) -> TemplateStore:
    return TemplateStore(templates_path(root=root))
