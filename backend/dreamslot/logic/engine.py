"""Outcome engine: decides the result of every pull from progression state."""
import logging

from dreamslot.logic.catalog import CATALOG
from dreamslot.logic.models import (
    EngineConfig,
    Item,
    OutcomeKind,
    ProgressionState,
    ProgressionSummary,
    SpinResult,
)
from dreamslot.logic.pool import first_pool_with, widening_pools
from dreamslot.logic.rng import ProductionRNG, RNGBase


logger = logging.getLogger(__name__)


class OutcomeEngine:
    """
    Pull resolution.

    Implements, in order (each step short-circuits the next):
    - Malfunction (fake failure flavor event)
    - Special pull forcing the hidden item
    - Dynamic win probability from the unlock curve
    - Progress block at the hidden count threshold
    - Pity mode forcing a locked item
    - Normal win / near miss / chaos resolution
    """

    def __init__(
        self,
        rng: RNGBase | None = None,
        config: EngineConfig | None = None,
        catalog: tuple[Item, ...] = CATALOG,
    ):
        self.rng = rng or ProductionRNG()
        self.config = config or EngineConfig()
        self.catalog = catalog

    # === Pre-checks ===

    def summarize(self, progression: ProgressionState) -> ProgressionSummary:
        return progression.summary(self.catalog)

    def is_guaranteed_special_pull(self, progression: ProgressionState) -> bool:
        """Hidden item locked, pull gate open and count gate open."""
        return self._is_special(self.summarize(progression))

    def is_failure_pull(self, is_special: bool) -> bool:
        """
        Roll for the malfunction event.

        Special pulls never malfunction and consume no draw.
        """
        if is_special:
            return False
        return self.rng.random() < self.config.malfunction_probability

    def win_probability(self, summary: ProgressionSummary) -> float:
        """Per-pull win chance indexed by unlocked standard count."""
        table = self.config.win_probabilities
        index = summary.unlocked_standard_count
        if index < len(table):
            return table[index]
        return self.config.probability_after_all_unlocked

    def is_progress_blocked(self, summary: ProgressionSummary) -> bool:
        """New standard unlocks stall until the hidden item is captured."""
        return (
            not summary.hidden_unlocked
            and summary.unlocked_standard_count >= self.config.hidden_threshold_count
        )

    def is_guaranteed_pull(self, summary: ProgressionSummary) -> bool:
        """Pity mode: past the threshold with standard items still locked."""
        return (
            summary.pull_count >= self.config.guaranteed_threshold_pulls
            and not summary.all_standard_unlocked
        )

    # === Resolution ===

    def decide(
        self,
        progression: ProgressionState,
        is_special: bool | None = None,
        is_failure: bool = False,
    ) -> SpinResult:
        """
        Resolve one pull.

        Args:
            progression: State with pull_count already incremented for this pull
            is_special: Pre-computed special flag (computed here when None)
            is_failure: Pre-rolled malfunction flag from is_failure_pull()

        Returns:
            SpinResult with exactly three slots
        """
        summary = self.summarize(progression)
        pools = widening_pools(self.catalog, progression)
        if is_special is None:
            is_special = self._is_special(summary)

        # 1) Malfunction: losing, non-matching result from the visual pool
        if is_failure and not is_special:
            return self._losing_result(pools, OutcomeKind.MALFUNCTION)

        # 2) Special pull: three hidden items, probability bypassed
        if is_special:
            hidden = next((item for item in self.catalog if item.is_hidden), None)
            if hidden is not None:
                logger.info(
                    "Special pull at %d: forcing hidden item %s",
                    summary.pull_count,
                    hidden.id,
                )
                return SpinResult.win(hidden, OutcomeKind.SPECIAL)

        # 3) Dynamic win probability
        win_probability = self.win_probability(summary)

        # 4) Progress block
        blocked = self.is_progress_blocked(summary)

        # 5) Pity mode
        if not blocked and self.is_guaranteed_pull(summary):
            locked = [self._by_id(i) for i in summary.locked_standard]
            item = self.rng.choice(locked)
            logger.info(
                "Guaranteed pull at %d: rewarding locked item %s",
                summary.pull_count,
                item.id,
            )
            return SpinResult.win(item, OutcomeKind.GUARANTEED)

        # 6) Normal resolution
        r = self.rng.random()
        if r < win_probability:
            if blocked:
                unlocked = [self._by_id(i) for i in summary.unlocked_standard]
                return SpinResult.win(
                    self.rng.choice(unlocked or pools[-1]), OutcomeKind.BLOCKED_WIN
                )
            standard = [item for item in self.catalog if not item.is_hidden]
            return SpinResult.win(self.rng.choice(standard or pools[-1]))

        # Remaining mass split 50/50 between near miss and chaos
        near_miss_cutoff = win_probability + (1.0 - win_probability) / 2.0
        if r < near_miss_cutoff:
            return self._near_miss_result(pools)
        return self._chaos_result(pools)

    # === Loss shapes ===

    def _losing_result(self, pools: list[list[Item]], kind: OutcomeKind) -> SpinResult:
        """Three independent draws; the third is redrawn if all three match."""
        pool = first_pool_with(pools, 2)
        first = self.rng.choice(pool)
        second = self.rng.choice(pool)
        if first.id == second.id:
            third = self.rng.choice(self._excluding(pool, {first.id}))
        else:
            third = self.rng.choice(pool)
        return self._loss_or_degenerate((first, second, third), kind)

    def _near_miss_result(self, pools: list[list[Item]]) -> SpinResult:
        """Two matching slots, the third differs."""
        pool = first_pool_with(pools, 2)
        matched = self.rng.choice(pool)
        odd = self.rng.choice(self._excluding(pool, {matched.id}))
        return self._loss_or_degenerate((matched, matched, odd), OutcomeKind.NEAR_MISS)

    def _chaos_result(self, pools: list[list[Item]]) -> SpinResult:
        """All three slots differ."""
        pool = first_pool_with(pools, 3)
        first = self.rng.choice(pool)
        second = self.rng.choice(self._excluding(pool, {first.id}))
        third = self.rng.choice(self._excluding(pool, {first.id, second.id}))
        return self._loss_or_degenerate((first, second, third), OutcomeKind.CHAOS)

    # === Helpers ===

    def _is_special(self, summary: ProgressionSummary) -> bool:
        has_hidden = any(item.is_hidden for item in self.catalog)
        return (
            has_hidden
            and not summary.hidden_unlocked
            and summary.pull_count >= self.config.hidden_threshold_pulls
            and summary.unlocked_standard_count >= self.config.hidden_threshold_count
        )

    def _by_id(self, item_id: str) -> Item:
        return next(item for item in self.catalog if item.id == item_id)

    @staticmethod
    def _excluding(pool: list[Item], excluded: set[str]) -> list[Item]:
        remaining = [item for item in pool if item.id not in excluded]
        return remaining or pool

    @staticmethod
    def _loss_or_degenerate(
        slots: tuple[Item, Item, Item], kind: OutcomeKind
    ) -> SpinResult:
        # Only reachable with a single-item catalog, where no loss shape exists
        if slots[0].id == slots[1].id == slots[2].id:
            return SpinResult.win(slots[0])
        return SpinResult.loss(slots, kind)
