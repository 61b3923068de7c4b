"""Round pipeline shared by the in-process session and the game server.

open_round:  pull counted -> decide_round
decide_round: special/failure pre-checks -> decide -> strips
close_round: commit -> settle strips for the silent swap
"""
from dataclasses import dataclass
from typing import Sequence

from pydantic import BaseModel

from dreamslot.logic.catalog import get_item
from dreamslot.logic.engine import OutcomeEngine
from dreamslot.logic.ledger import commit, record_pull
from dreamslot.logic.models import Item, OutcomeKind, ProgressionState, SpinResult
from dreamslot.logic.pool import restricted_pool
from dreamslot.logic.strips import ReelStrip, build_settle_strips, build_spin_strips


@dataclass(frozen=True)
class RoundPlan:
    """Everything decided when the lever is pulled."""

    progression: ProgressionState
    result: SpinResult
    strips: list[ReelStrip]
    is_special: bool
    is_failure: bool


@dataclass(frozen=True)
class RoundClosing:
    """State after the result is committed."""

    progression: ProgressionState
    was_new_unlock: bool
    settle_strips: list[ReelStrip]


class PendingRound(BaseModel):
    """
    Persisted record of an open round.

    Kept until the client signals the animation finished, so a round that
    was started always gets committed.
    """

    round_id: str
    pull_count: int
    slot_ids: list[str]
    kind: OutcomeKind
    is_win: bool
    lock_token: str | None = None
    opened_at: float = 0.0

    @classmethod
    def from_result(
        cls,
        round_id: str,
        pull_count: int,
        result: SpinResult,
        lock_token: str | None,
        opened_at: float,
    ) -> "PendingRound":
        return cls(
            round_id=round_id,
            pull_count=pull_count,
            slot_ids=result.slot_ids,
            kind=result.kind,
            is_win=result.is_win,
            lock_token=lock_token,
            opened_at=opened_at,
        )

    def to_result(self) -> SpinResult | None:
        """Rebuild the SpinResult; None if an id is no longer in the catalog."""
        items = [get_item(i) for i in self.slot_ids]
        if len(items) != 3 or any(item is None for item in items):
            return None
        slots = (items[0], items[1], items[2])
        if self.is_win:
            return SpinResult.win(slots[0], self.kind)
        return SpinResult.loss(slots, self.kind)


def open_round(
    engine: OutcomeEngine,
    progression: ProgressionState,
    visible: Sequence[Item | None] = (),
) -> RoundPlan:
    """
    Count the pull, decide the result and build the spin strips.

    The pull counter is advanced before the decision so thresholds see
    this pull.
    """
    return decide_round(engine, record_pull(progression), visible)


def decide_round(
    engine: OutcomeEngine,
    progression: ProgressionState,
    visible: Sequence[Item | None] = (),
) -> RoundPlan:
    """Decide an already counted pull and build its spin strips."""
    is_special = engine.is_guaranteed_special_pull(progression)
    is_failure = engine.is_failure_pull(is_special)
    result = engine.decide(progression, is_special=is_special, is_failure=is_failure)

    pool = restricted_pool(engine.catalog, progression)
    strips = build_spin_strips(
        visible, result, engine.config.spin_strip_lengths, pool, engine.rng
    )
    return RoundPlan(
        progression=progression,
        result=result,
        strips=strips,
        is_special=is_special,
        is_failure=is_failure,
    )


def close_round(
    engine: OutcomeEngine,
    progression: ProgressionState,
    result: SpinResult,
) -> RoundClosing:
    """Commit the result and build settle strips parked on the landed items."""
    progression, was_new_unlock = commit(progression, result)
    pool = restricted_pool(engine.catalog, progression)
    settle = build_settle_strips(
        result.slots, engine.config.settle_strip_lengths, pool, engine.rng
    )
    return RoundClosing(
        progression=progression,
        was_new_unlock=was_new_unlock,
        settle_strips=settle,
    )
