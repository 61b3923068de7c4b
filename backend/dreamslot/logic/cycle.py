"""Spin cycle phase machine.

IDLE -> LEVER_PULLED -> SPINNING -> REVEALED -> SETTLING -> IDLE
                                 \\-> SETTLING (malfunction) -> IDLE

A new pull is accepted only while no spin is running (IDLE or REVEALED).
"""
import logging
from enum import Enum


logger = logging.getLogger(__name__)


class SpinPhase(str, Enum):
    """Phases of one pull."""

    IDLE = "IDLE"
    LEVER_PULLED = "LEVER_PULLED"
    SPINNING = "SPINNING"
    SETTLING = "SETTLING"
    REVEALED = "REVEALED"


ALLOWED_TRANSITIONS: dict[SpinPhase, frozenset[SpinPhase]] = {
    SpinPhase.IDLE: frozenset({SpinPhase.LEVER_PULLED}),
    SpinPhase.LEVER_PULLED: frozenset({SpinPhase.SPINNING}),
    SpinPhase.SPINNING: frozenset({SpinPhase.REVEALED, SpinPhase.SETTLING}),
    SpinPhase.REVEALED: frozenset({SpinPhase.SETTLING, SpinPhase.LEVER_PULLED}),
    SpinPhase.SETTLING: frozenset({SpinPhase.IDLE}),
}

# Phases during which the spin guard is held
RUNNING_PHASES = frozenset({SpinPhase.LEVER_PULLED, SpinPhase.SPINNING, SpinPhase.SETTLING})


class InvalidTransition(Exception):
    """Raised when a phase change is not allowed from the current phase."""

    def __init__(self, current: SpinPhase, target: SpinPhase):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.value} to {target.value}")


class SpinCycle:
    """Tracks the current phase and enforces legal transitions."""

    def __init__(self, phase: SpinPhase = SpinPhase.IDLE):
        self._phase = phase
        self.history: list[SpinPhase] = [phase]

    @property
    def phase(self) -> SpinPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase in RUNNING_PHASES

    @property
    def accepts_pull(self) -> bool:
        return SpinPhase.LEVER_PULLED in ALLOWED_TRANSITIONS[self._phase]

    def can_advance(self, target: SpinPhase) -> bool:
        return target in ALLOWED_TRANSITIONS[self._phase]

    def advance(self, target: SpinPhase) -> None:
        if not self.can_advance(target):
            raise InvalidTransition(self._phase, target)
        logger.debug("Spin phase %s -> %s", self._phase.value, target.value)
        self._phase = target
        self.history.append(target)

    def force_idle(self) -> None:
        """Return to IDLE outside the normal flow (explicit reset or an interrupted pull)."""
        self._phase = SpinPhase.IDLE
        self.history.append(SpinPhase.IDLE)
