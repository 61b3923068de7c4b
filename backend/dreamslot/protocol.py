"""Protocol models for the Dream Slot HTTP API."""
from pydantic import BaseModel, Field

from dreamslot.config import settings
from dreamslot.logic.models import EngineConfig, Item, ProgressionState, SpinResult


# === Shared views ===


class ItemView(BaseModel):
    """Catalog entry as sent to clients."""

    id: str
    glyph: str
    label: str
    message: str
    isHidden: bool

    @classmethod
    def from_item(cls, item: Item) -> "ItemView":
        return cls(
            id=item.id,
            glyph=item.glyph,
            label=item.label,
            message=item.message,
            isHidden=item.is_hidden,
        )


class Timings(BaseModel):
    """Stage durations in milliseconds."""

    leverDelayMs: int
    spinDurationMs: int
    malfunctionSettleMs: int

    @classmethod
    def from_config(cls, config: EngineConfig) -> "Timings":
        return cls(
            leverDelayMs=round(config.lever_delay_seconds * 1000),
            spinDurationMs=round(config.spin_duration_seconds * 1000),
            malfunctionSettleMs=round(config.malfunction_settle_seconds * 1000),
        )


class ResultView(BaseModel):
    """Spin result with slots as item ids."""

    slots: list[str]
    isWin: bool
    isJackpot: bool
    kind: str

    @classmethod
    def from_result(cls, result: SpinResult) -> "ResultView":
        return cls(
            slots=result.slot_ids,
            isWin=result.is_win,
            isJackpot=result.is_jackpot,
            kind=result.kind.value,
        )


class ProgressionView(BaseModel):
    """Progression as sent to clients."""

    unlocked: list[str]
    pullCount: int
    unlockedStandardCount: int
    hiddenUnlocked: bool
    galleryUnlocked: bool
    storyUnlocked: bool

    @classmethod
    def from_state(
        cls, state: ProgressionState, catalog: tuple[Item, ...], config: EngineConfig
    ) -> "ProgressionView":
        summary = state.summary(catalog)
        unlocked_total = len(state.unlocked)
        return cls(
            unlocked=sorted(state.unlocked),
            pullCount=state.pull_count,
            unlockedStandardCount=summary.unlocked_standard_count,
            hiddenUnlocked=summary.hidden_unlocked,
            galleryUnlocked=unlocked_total >= config.gallery_unlock_threshold,
            storyUnlocked=unlocked_total >= config.story_unlock_threshold,
        )


# === Request Models ===


class PullRequest(BaseModel):
    """POST /pull request body."""

    clientRequestId: str = Field(..., description="UUIDv4 idempotency key")
    visibleItems: list[str] | None = Field(
        default=None, description="Item ids currently shown on the three reels"
    )


class ResetRequest(BaseModel):
    """POST /reset request body. Destructive; must be confirmed."""

    confirm: bool = False


# === Response Models ===


class Configuration(BaseModel):
    """Configuration object in /init response."""

    catalog: list[ItemView]
    spinStripLengths: list[int]
    settleStripLengths: list[int]
    timings: Timings
    galleryUnlockThreshold: int
    storyUnlockThreshold: int
    hiddenThresholdPulls: int


class RestoredRound(BaseModel):
    """A round whose animation is still running for this player."""

    roundId: str
    pullCount: int
    result: ResultView


class InitResponse(BaseModel):
    """GET /init response."""

    protocolVersion: str = settings.protocol_version
    configuration: Configuration
    progression: ProgressionView
    milestoneMessage: str | None = None
    restoredRound: RestoredRound | None = None


class PullResponse(BaseModel):
    """POST /pull response."""

    protocolVersion: str = settings.protocol_version
    roundId: str
    pullCount: int
    result: ResultView
    strips: list[list[str]]
    timings: Timings
    milestoneMessage: str | None = None


class CompleteResponse(BaseModel):
    """POST /pull/{roundId}/complete response."""

    protocolVersion: str = settings.protocol_version
    roundId: str
    result: ResultView
    wasNewUnlock: bool
    progression: ProgressionView
    message: str
    retryText: str
    flavorText: str | None = None
    settleStrips: list[list[str]]


class GalleryResponse(BaseModel):
    """GET /gallery/{itemId} response: an unlocked item shown as a win."""

    protocolVersion: str = settings.protocol_version
    item: ItemView
    result: ResultView
    buttonText: str
    flavorText: str


class ResetResponse(BaseModel):
    """POST /reset response."""

    protocolVersion: str = settings.protocol_version
    progression: ProgressionView
