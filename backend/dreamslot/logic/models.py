"""Progression and outcome models per the Dream Slot engine rules."""
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Design probability table, indexed by unlocked standard item count.
# Intentionally harder mid-game and easier at the tail.
DEFAULT_WIN_PROBABILITIES: tuple[float, ...] = (
    0.40, 0.40, 0.35, 0.25, 0.15,  # 1-5
    0.30, 0.25, 0.25, 0.20, 0.15,  # 6-10
    0.30, 0.15, 0.25, 0.10, 0.15,  # 11-15
    0.40, 0.20, 0.10, 0.25, 0.40,  # 16-20
    0.10, 0.15, 0.40, 0.15, 0.35,  # 21-25
)

# Trailing slots kept after the landing point so the reel can decelerate.
STRIP_TARGET_OFFSET = 5


class Item(BaseModel):
    """A collectible catalog entry. Never mutated after load."""

    model_config = ConfigDict(frozen=True)

    id: str
    glyph: str
    label: str
    message: str
    is_hidden: bool = False


class OutcomeKind(str, Enum):
    """Why a spin ended the way it did."""

    SPECIAL = "special"
    GUARANTEED = "guaranteed"
    WIN = "win"
    BLOCKED_WIN = "blocked_win"
    NEAR_MISS = "near_miss"
    CHAOS = "chaos"
    MALFUNCTION = "malfunction"


class EngineConfig(BaseModel):
    """
    Tuning for the outcome engine.

    Passed to the engine as an argument so tests can run alternate tunings.
    Defaults are the design values.
    """

    model_config = ConfigDict(frozen=True)

    # Hidden item gate (both must be met)
    hidden_threshold_pulls: int = Field(default=420, ge=0)
    hidden_threshold_count: int = Field(default=23, ge=0)

    # Pity mode
    guaranteed_threshold_pulls: int = Field(default=500, ge=0)

    # Win curve
    win_probabilities: tuple[float, ...] = DEFAULT_WIN_PROBABILITIES
    probability_after_all_unlocked: float = Field(default=0.9, ge=0.0, le=1.0)

    # Fake "malfunction" flavor event
    malfunction_probability: float = Field(default=0.05, ge=0.0, le=1.0)

    # Reel strips (per reel)
    spin_strip_lengths: tuple[int, int, int] = (30, 60, 80)
    settle_strip_lengths: tuple[int, int, int] = (40, 45, 50)

    # Stage durations in seconds
    lever_delay_seconds: float = Field(default=0.4, ge=0.0)
    spin_duration_seconds: float = Field(default=4.5, ge=0.0)
    malfunction_settle_seconds: float = Field(default=0.5, ge=0.0)

    # Gallery milestones (unlocked item count)
    gallery_unlock_threshold: int = Field(default=12, ge=0)
    story_unlock_threshold: int = Field(default=20, ge=0)

    @field_validator("win_probabilities")
    @classmethod
    def _check_probabilities(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        for p in value:
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"win probability {p} outside [0, 1]")
        return value

    @field_validator("spin_strip_lengths", "settle_strip_lengths")
    @classmethod
    def _check_strip_lengths(cls, value: tuple[int, int, int]) -> tuple[int, int, int]:
        for length in value:
            if length <= STRIP_TARGET_OFFSET:
                raise ValueError(
                    f"strip length {length} must exceed the {STRIP_TARGET_OFFSET}-slot margin"
                )
        return value


class ProgressionState(BaseModel):
    """
    Player progression.

    The only entity that survives across pulls. unlocked and pull_count
    never shrink except through an explicit reset.
    """

    unlocked: set[str] = Field(default_factory=set)
    pull_count: int = Field(default=0, ge=0)

    def is_unlocked(self, item_id: str) -> bool:
        return item_id in self.unlocked

    def summary(self, catalog: "list[Item] | tuple[Item, ...]") -> "ProgressionSummary":
        """Derive the per-decision counts once."""
        standard_ids = [item.id for item in catalog if not item.is_hidden]
        hidden_ids = {item.id for item in catalog if item.is_hidden}
        unlocked_standard = tuple(i for i in standard_ids if i in self.unlocked)
        locked_standard = tuple(i for i in standard_ids if i not in self.unlocked)
        return ProgressionSummary(
            pull_count=self.pull_count,
            unlocked_standard=unlocked_standard,
            locked_standard=locked_standard,
            hidden_unlocked=bool(hidden_ids) and hidden_ids <= self.unlocked,
        )


@dataclass(frozen=True)
class ProgressionSummary:
    """Immutable snapshot of a ProgressionState against a catalog."""

    pull_count: int
    unlocked_standard: tuple[str, ...]
    locked_standard: tuple[str, ...]
    hidden_unlocked: bool

    @property
    def unlocked_standard_count(self) -> int:
        return len(self.unlocked_standard)

    @property
    def all_standard_unlocked(self) -> bool:
        return not self.locked_standard


class SpinResult(BaseModel):
    """
    Result of a single pull.

    is_jackpot always tracks is_win; the two flags are kept separate
    for presentation but no tiering exists.
    """

    model_config = ConfigDict(frozen=True)

    slots: tuple[Item, Item, Item]
    is_win: bool
    is_jackpot: bool
    kind: OutcomeKind

    @model_validator(mode="after")
    def _check_win_shape(self) -> "SpinResult":
        matching = self.slots[0].id == self.slots[1].id == self.slots[2].id
        if matching != self.is_win:
            raise ValueError("is_win must be true iff all three slots match")
        if self.is_jackpot != self.is_win:
            raise ValueError("is_jackpot must equal is_win")
        return self

    @classmethod
    def win(cls, item: Item, kind: OutcomeKind = OutcomeKind.WIN) -> "SpinResult":
        return cls(slots=(item, item, item), is_win=True, is_jackpot=True, kind=kind)

    @classmethod
    def loss(cls, slots: "tuple[Item, Item, Item]", kind: OutcomeKind) -> "SpinResult":
        return cls(slots=slots, is_win=False, is_jackpot=False, kind=kind)

    @property
    def item(self) -> Item:
        """The rewarded item (first slot)."""
        return self.slots[0]

    @property
    def is_malfunction(self) -> bool:
        return self.kind == OutcomeKind.MALFUNCTION

    @property
    def slot_ids(self) -> list[str]:
        return [slot.id for slot in self.slots]
