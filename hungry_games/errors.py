from __future__ import annotations

from collections.abc import Mapping


class GameError(ValueError):
    """Base class for errors reported back to the host.

    Subclasses ValueError so callers that only care about "the request was bad"
    can keep catching ValueError.
    """

    status_code: int = 422


class AlreadyInProgress(GameError):
    status_code = 409


class GameNotInProgress(GameError):
    status_code = 409


class InstanceBusy(GameError):
    status_code = 409


class InstanceNotFound(GameError):
    status_code = 404


class InstanceExists(GameError):
    status_code = 409


class InvalidOption(GameError):
    pass


class InvalidRequest(GameError):
    pass


class NoValidEvent(GameError):
    """The selector ran out of attempts for the current pool.

    Fatal to the current day only: already applied effects stay and the day
    is put back into its not-started state.
    """

    def __init__(self, *, pool_size: int, num_templates: int, attempts: int, rejections: Mapping[str, int]):
        self.pool_size = pool_size
        self.num_templates = num_templates
        self.attempts = attempts
        self.rejections = dict(rejections)
        reasons = ", ".join(f"{k}={v}" for k, v in sorted(self.rejections.items())) or "none"
        super().__init__(
            f"No valid event for {pool_size} remaining players from {num_templates} templates "
            f"after {attempts} attempts (rejections: {reasons})"
        )


class TeamInconsistency(RuntimeError):
    """A living player belongs to no team while teams are enabled."""


class InvariantViolation(RuntimeError):
    """Alive counters disagree with the players' living flags."""
