"""In-process slot machine session.

Drives one player's pulls through the spin cycle phases with declared stage
durations. The only mutual-exclusion rule is the spin guard: a pull is
rejected while another is running. Flavor text is delivered in the
background and never holds up a pull.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from dreamslot.errors import ErrorCode, GameError
from dreamslot.logic.cycle import SpinCycle, SpinPhase
from dreamslot.logic.engine import OutcomeEngine
from dreamslot.logic.ledger import record_pull, reset_progression
from dreamslot.logic.messages import (
    GALLERY_BUTTON_TEXT,
    lose_message,
    milestone_message,
    retry_text,
)
from dreamslot.logic.models import Item, ProgressionState, SpinResult
from dreamslot.logic.rng import ProductionRNG, RNGBase
from dreamslot.logic.rounds import RoundClosing, RoundPlan, close_round, decide_round
from dreamslot.logic.strips import ReelStrip


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reveal:
    """What presentation shows once a result lands."""

    result: SpinResult
    was_new_unlock: bool
    message: str
    button_text: str
    milestone: str | None = None


class Presenter(Protocol):
    """
    Presentation collaborator.

    Each call starts a stage and returns promptly; the machine times the
    stages itself from the engine config. Failures are logged, never raised.
    """

    async def lever(self) -> None: ...

    async def spin(self, result: SpinResult, strips: list[ReelStrip], duration: float) -> None: ...

    async def settle(self, strips: list[ReelStrip]) -> None: ...

    async def reveal(self, reveal: Reveal) -> None: ...

    async def flavor(self, text: str) -> None: ...


class ProgressStore(Protocol):
    """Persistence collaborator."""

    async def load(self) -> ProgressionState: ...

    async def save(self, state: ProgressionState) -> None: ...

    async def clear(self) -> None: ...


class FlavorSource(Protocol):
    """Flavor-text collaborator."""

    async def whisper(self, label: str) -> str: ...


class NullPresenter:
    """Presenter that renders nothing."""

    async def lever(self) -> None:
        pass

    async def spin(self, result: SpinResult, strips: list[ReelStrip], duration: float) -> None:
        pass

    async def settle(self, strips: list[ReelStrip]) -> None:
        pass

    async def reveal(self, reveal: Reveal) -> None:
        pass

    async def flavor(self, text: str) -> None:
        pass


class SlotMachine:
    """
    One player's session.

    Owns the ProgressionState (single writer) and the spin cycle.
    """

    def __init__(
        self,
        engine: OutcomeEngine | None = None,
        progression: ProgressionState | None = None,
        presenter: Presenter | None = None,
        store: ProgressStore | None = None,
        flavor: FlavorSource | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        message_rng: RNGBase | None = None,
    ):
        self.engine = engine or OutcomeEngine()
        self._progression = progression if progression is not None else ProgressionState()
        self.presenter = presenter or NullPresenter()
        self.store = store
        self.flavor = flavor
        self._sleep = sleep
        self._message_rng = message_rng or ProductionRNG()
        self.cycle = SpinCycle()
        self.visible: list[Item | None] = [None, None, None]
        self.last_result: SpinResult | None = None
        self._settle_strips: list[ReelStrip] = []
        self._background: set[asyncio.Task] = set()

    @classmethod
    async def restore(cls, store: ProgressStore, **kwargs) -> "SlotMachine":
        """Start a session from persisted progress (read once)."""
        progression = await store.load()
        return cls(progression=progression, store=store, **kwargs)

    @property
    def progression(self) -> ProgressionState:
        """Snapshot of current progression."""
        return self._progression.model_copy(deep=True)

    @property
    def phase(self) -> SpinPhase:
        return self.cycle.phase

    @property
    def is_spinning(self) -> bool:
        return self.cycle.is_running

    async def pull(self) -> SpinResult:
        """
        Run one full pull: lever, spin, then reveal or malfunction settle.

        Raises ROUND_IN_PROGRESS if a spin is already running. Once the
        lever is pulled the result is always committed; presenter failures
        are logged and the cycle still reaches REVEALED or IDLE.
        """
        if not self.cycle.accepts_pull:
            raise GameError(
                ErrorCode.ROUND_IN_PROGRESS,
                "A spin is already running.",
            )
        config = self.engine.config

        # 1) Lever: the pull is counted and saved immediately
        self.cycle.advance(SpinPhase.LEVER_PULLED)
        self._progression = record_pull(self._progression)
        await self._save()

        plan = None
        closing = None
        try:
            await self._present("lever")
            await self._sleep(config.lever_delay_seconds)

            # 2) Decide after the lever delay, then spin
            plan = decide_round(self.engine, self._progression, self.visible)
            self.last_result = plan.result
            self.cycle.advance(SpinPhase.SPINNING)
            await self._present("spin", plan.result, plan.strips, config.spin_duration_seconds)
            await self._sleep(config.spin_duration_seconds)

            # 3) Commit
            closing = await self._commit(plan)

            # 4a) Malfunction: shake, then park the reels silently
            if plan.result.is_malfunction:
                self.cycle.advance(SpinPhase.SETTLING)
                await self._sleep(config.malfunction_settle_seconds)
                await self._present("settle", closing.settle_strips)
                self.cycle.advance(SpinPhase.IDLE)
                return plan.result
        except asyncio.CancelledError:
            # A decided result still lands
            if plan is not None and closing is None:
                await self._commit(plan)
            self.cycle.force_idle()
            raise

        # 4b) Reveal
        self.cycle.advance(SpinPhase.REVEALED)
        await self._present(
            "reveal",
            Reveal(
                result=plan.result,
                was_new_unlock=closing.was_new_unlock,
                message=plan.result.item.message if plan.result.is_win else lose_message(self._message_rng),
                button_text=retry_text(self._message_rng),
                milestone=milestone_message(self._progression.pull_count),
            ),
        )
        if plan.result.is_win:
            self._send_flavor(plan.result.item)
        return plan.result

    async def _commit(self, plan: RoundPlan) -> RoundClosing:
        closing = close_round(self.engine, self._progression, plan.result)
        self._progression = closing.progression
        self.visible = list(plan.result.slots)
        self._settle_strips = closing.settle_strips
        if closing.was_new_unlock:
            await self._save()
            logger.info("Unlocked %s at pull %d", plan.result.item.id, self._progression.pull_count)
        return closing

    async def dismiss(self) -> None:
        """Close the reveal and park the reels on the landed items."""
        if self.phase is not SpinPhase.REVEALED:
            return
        self.cycle.advance(SpinPhase.SETTLING)
        await self._present("settle", self._settle_strips)
        self.cycle.advance(SpinPhase.IDLE)

    async def view_item(self, item_id: str) -> Reveal:
        """Show an unlocked item as a synthetic win. Progression is untouched."""
        item = next((i for i in self.engine.catalog if i.id == item_id), None)
        if item is None:
            raise GameError(ErrorCode.INVALID_REQUEST, f"Unknown item {item_id}.")
        if not self._progression.is_unlocked(item.id):
            raise GameError(ErrorCode.ITEM_LOCKED, f"Item {item_id} is not unlocked yet.")

        reveal = Reveal(
            result=SpinResult.win(item),
            was_new_unlock=False,
            message=item.message,
            button_text=GALLERY_BUTTON_TEXT,
        )
        await self._present("reveal", reveal)
        self._send_flavor(item)
        return reveal

    async def reset(self, confirm: bool = False) -> None:
        """
        Wipe progression and persisted storage.

        Requires explicit confirmation and no running spin.
        """
        if not confirm:
            raise GameError(
                ErrorCode.RESET_NOT_CONFIRMED,
                "Reset wipes all progress; pass confirm=True to proceed.",
            )
        if self.cycle.is_running:
            raise GameError(ErrorCode.ROUND_IN_PROGRESS, "Cannot reset while a spin is running.")

        self._progression = reset_progression()
        self.last_result = None
        self._settle_strips = []
        self.cycle.force_idle()
        if self.store is not None:
            await self.store.clear()
        logger.info("Progress reset")

    async def drain(self) -> None:
        """Wait for flavor text deliveries still in flight."""
        if self._background:
            await asyncio.gather(*self._background)

    async def close(self) -> None:
        """Cancel flavor text deliveries still in flight."""
        for task in self._background:
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _present(self, stage: str, *args) -> None:
        try:
            await getattr(self.presenter, stage)(*args)
        except Exception as e:
            logger.warning("Presenter %s failed: %s", stage, e)

    async def _save(self) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(self._progression)
        except Exception as e:
            logger.warning("Progress save failed: %s", e)

    def _send_flavor(self, item: Item) -> None:
        if self.flavor is None:
            return
        task = asyncio.create_task(self._deliver_flavor(item))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _deliver_flavor(self, item: Item) -> None:
        try:
            text = await self.flavor.whisper(item.label)
        except Exception as e:
            logger.warning("Flavor text failed for %s: %s", item.id, e)
            return
        await self._present("flavor", text)
