from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from hungry_games.api.models import EventTemplate, Outcome, Team
from hungry_games.core.distribution import extra_participants
from hungry_games.errors import NoValidEvent
from hungry_games.simulation.teams import (
    Anchor,
    find_anchor,
    largest_team_size,
    split_orientation,
    teams_in_pool,
)

logger = logging.getLogger(__name__)

# Consecutive rejected draws before the day is given up.
MAX_ATTEMPTS = 100


class Rejection(StrEnum):
    empty_template = "empty_template"
    too_few_players = "too_few_players"
    single_team_kill = "single_team_kill"
    largest_team_split = "largest_team_split"
    no_anchor_team = "no_anchor_team"
    no_survivors = "no_survivors"


@dataclass(frozen=True, slots=True)
class SelectionContext:
    """What the rules may look at while judging a draw."""

    pool_size: int
    num_alive: int
    teams: tuple[Team, ...] = ()
    team_counts: dict[int, int] = field(default_factory=dict)
    collaborate: bool = False
    allow_no_victors: bool = True


@dataclass(frozen=True, slots=True)
class Candidate:
    template: EventTemplate
    num_victim: int
    num_attacker: int


class SelectionRule(ABC):
    """One reason a resolved draw can be thrown back."""

    @abstractmethod
    def check(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TeamPresenceRule(SelectionRule):
    """Teammates don't kill each other: a lone team in the pool only gets harmless events."""

    def check(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        if teams_in_pool(ctx.team_counts) < 2 and candidate.template.kills_anyone:
            return Rejection.single_team_kill
        return None


@dataclass(frozen=True, slots=True)
class LargestTeamSplitRule(SelectionRule):
    def check(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        fits = split_orientation(
            anchor_size=largest_team_size(ctx.team_counts),
            pool_size=ctx.pool_size,
            num_victim=candidate.num_victim,
            num_attacker=candidate.num_attacker,
        )
        return Rejection.largest_team_split if fits is None else None


@dataclass(frozen=True, slots=True)
class AnchorTeamRule(SelectionRule):
    def check(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        anchor = find_anchor(
            ctx.teams,
            ctx.team_counts,
            pool_size=ctx.pool_size,
            num_victim=candidate.num_victim,
            num_attacker=candidate.num_attacker,
        )
        return Rejection.no_anchor_team if anchor is None else None


@dataclass(frozen=True, slots=True)
class NoSurvivorsRule(SelectionRule):
    """Keep at least one player alive."""

    def check(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        remaining = ctx.num_alive
        if candidate.template.victim.outcome == Outcome.dies:
            remaining -= candidate.num_victim
        if candidate.template.attacker.outcome == Outcome.dies:
            remaining -= candidate.num_attacker
        return Rejection.no_survivors if remaining < 1 else None


@dataclass(frozen=True, slots=True)
class RulePipeline:
    rules: tuple[SelectionRule, ...]

    def first_rejection(self, *, ctx: SelectionContext, candidate: Candidate) -> Rejection | None:
        for rule in self.rules:
            reason = rule.check(ctx=ctx, candidate=candidate)
            if reason is not None:
                return reason
        return None


def pipeline_for(ctx: SelectionContext) -> RulePipeline:
    rules: list[SelectionRule] = []
    if ctx.collaborate:
        rules.extend([TeamPresenceRule(), LargestTeamSplitRule(), AnchorTeamRule()])
    if not ctx.allow_no_victors:
        rules.append(NoSurvivorsRule())
    return RulePipeline(rules=tuple(rules))


@dataclass(frozen=True, slots=True)
class Selection:
    template: EventTemplate
    num_victim: int
    num_attacker: int
    anchor: Anchor | None
    attempts: int
    rejections: dict[str, int]


def resolve_counts(
    template: EventTemplate,
    *,
    pool_size: int,
    rng: random.Random,
    max_attempts: int = MAX_ATTEMPTS,
) -> tuple[int, int]:
    """Concrete (victims, attackers) for a template whose minimum fits the pool.

    "At least N" sides get N plus a weighted extra, re-drawn while the total
    overflows the pool. If every re-draw overflows, the minimums are used.
    """

    victim, attacker = template.victim, template.attacker
    num_victim, num_attacker = victim.minimum, attacker.minimum
    if not (victim.is_multi or attacker.is_multi):
        return num_victim, num_attacker

    for _ in range(max_attempts):
        if attacker.is_multi:
            num_attacker = attacker.minimum + extra_participants(rng)
        if victim.is_multi:
            num_victim = victim.minimum + extra_participants(rng)
        if num_victim + num_attacker <= pool_size:
            return num_victim, num_attacker

    logger.debug("Falling back to minimum counts for %r", template.message)
    return victim.minimum, attacker.minimum


def select_event(
    templates: Sequence[EventTemplate],
    *,
    ctx: SelectionContext,
    rng: random.Random,
    max_attempts: int = MAX_ATTEMPTS,
) -> Selection:
    """Draw templates until one fits the pool and every active rule.

    Raises NoValidEvent once `max_attempts` draws in a row were rejected.
    """

    rejections: Counter[str] = Counter()
    pipeline = pipeline_for(ctx)

    attempts = 0
    while attempts < max_attempts and templates:
        attempts += 1
        template = rng.choice(templates)

        if template.min_participants == 0:
            rejections[Rejection.empty_template] += 1
            continue
        if template.min_participants > ctx.pool_size:
            rejections[Rejection.too_few_players] += 1
            continue

        num_victim, num_attacker = resolve_counts(template, pool_size=ctx.pool_size, rng=rng, max_attempts=max_attempts)
        candidate = Candidate(template=template, num_victim=num_victim, num_attacker=num_attacker)

        reason = pipeline.first_rejection(ctx=ctx, candidate=candidate)
        if reason is not None:
            rejections[reason] += 1
            continue

        anchor = None
        if ctx.collaborate:
            anchor = find_anchor(
                ctx.teams,
                ctx.team_counts,
                pool_size=ctx.pool_size,
                num_victim=num_victim,
                num_attacker=num_attacker,
            )

        if rejections:
            logger.debug("Selected event after %d attempts (rejections: %s)", attempts, dict(rejections))
        return Selection(
            template=template,
            num_victim=num_victim,
            num_attacker=num_attacker,
            anchor=anchor,
            attempts=attempts,
            rejections=dict(rejections),
        )

    logger.warning(
        "Failed to find suitable event for %d players from %d templates (rejections: %s)",
        ctx.pool_size,
        len(templates),
        dict(rejections),
    )
    raise NoValidEvent(
        pool_size=ctx.pool_size,
        num_templates=len(templates),
        attempts=attempts,
        rejections=rejections,
    )
