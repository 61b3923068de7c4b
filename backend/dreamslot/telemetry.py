"""Server-side telemetry events."""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class InitServedEvent:
    """init_served: progression handed to a client."""

    player_id: str
    pull_count: int
    unlocked_count: int
    hidden_unlocked: bool
    recovered_round: bool
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PullProcessedEvent:
    """pull_processed: a round was opened."""

    player_id: str
    client_request_id: str
    round_id: str
    pull_count: int
    kind: str  # OutcomeKind value
    is_win: bool
    is_special: bool
    is_failure: bool
    unlocked_standard_count: int
    win_probability: float
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PullRejectedEvent:
    """pull_rejected: the spin guard was held."""

    player_id: str
    client_request_id: str | None
    reason: str  # "ROUND_IN_PROGRESS" | ...

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RoundCompletedEvent:
    """round_completed: a result was committed."""

    player_id: str
    round_id: str
    pull_count: int
    kind: str
    item_id: str | None  # rewarded item on wins
    was_new_unlock: bool
    unlocked_count: int
    recovered: bool  # committed on behalf of a client that never completed
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProgressResetEvent:
    """progress_reset: explicit, confirmed wipe."""

    player_id: str
    pull_count_before: int
    unlocked_count_before: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TelemetryService:
    """Service for emitting server telemetry events."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0  # Counter for sink failures

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    @property
    def sink_errors(self) -> int:
        return self._sink_errors

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """
        Emit event with exception safety.

        Sink failures MUST NOT break HTTP requests.
        """
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def emit_init_served(self, event: InitServedEvent) -> None:
        self._safe_emit("init_served", event.to_dict())

    def emit_pull_processed(self, event: PullProcessedEvent) -> None:
        self._safe_emit("pull_processed", event.to_dict())

    def emit_pull_rejected(self, event: PullRejectedEvent) -> None:
        self._safe_emit("pull_rejected", event.to_dict())

    def emit_round_completed(self, event: RoundCompletedEvent) -> None:
        self._safe_emit("round_completed", event.to_dict())

    def emit_progress_reset(self, event: ProgressResetEvent) -> None:
        self._safe_emit("progress_reset", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
