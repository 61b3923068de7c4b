"""Dream Slot FastAPI Application."""
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from dreamslot.config import settings
from dreamslot.config_hash import get_config_hash
from dreamslot.errors import ErrorCode, GameError
from dreamslot.flavor import flavor_service
from dreamslot.logic.catalog import get_item
from dreamslot.logic.engine import OutcomeEngine
from dreamslot.logic.messages import GALLERY_BUTTON_TEXT, lose_message, milestone_message, retry_text
from dreamslot.logic.models import ProgressionState, SpinResult
from dreamslot.logic.rng import ProductionRNG
from dreamslot.logic.rounds import PendingRound, close_round, open_round
from dreamslot.middleware import ErrorHandlerMiddleware, PlayerIdMiddleware
from dreamslot.protocol import (
    CompleteResponse,
    Configuration,
    GalleryResponse,
    InitResponse,
    ItemView,
    ProgressionView,
    PullRequest,
    PullResponse,
    ResetRequest,
    ResetResponse,
    RestoredRound,
    ResultView,
    Timings,
)
from dreamslot.redis_service import redis_service
from dreamslot.telemetry import (
    InitServedEvent,
    ProgressResetEvent,
    PullProcessedEvent,
    PullRejectedEvent,
    RoundCompletedEvent,
    telemetry_service,
)
from dreamslot.validators import validate_pull_request, validate_reset


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage Redis connection lifecycle."""
    logging.getLogger("dreamslot").setLevel(settings.log_level)
    await redis_service.connect()
    yield
    await redis_service.close()


app = FastAPI(
    title="Dream Slot",
    version="0.1.0",
    debug=settings.debug,
    description="Progression and outcome server for the Dream Slot bedtime machine",
    lifespan=lifespan,
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(PlayerIdMiddleware)

# Engine and message randomness are independent sources
engine = OutcomeEngine(config=settings.engine)
message_rng = ProductionRNG()


def _progression_view(state: ProgressionState) -> ProgressionView:
    return ProgressionView.from_state(state, engine.catalog, engine.config)


def _configuration() -> Configuration:
    config = engine.config
    return Configuration(
        catalog=[ItemView.from_item(item) for item in engine.catalog],
        spinStripLengths=list(config.spin_strip_lengths),
        settleStripLengths=list(config.settle_strip_lengths),
        timings=Timings.from_config(config),
        galleryUnlockThreshold=config.gallery_unlock_threshold,
        storyUnlockThreshold=config.story_unlock_threshold,
        hiddenThresholdPulls=config.hidden_threshold_pulls,
    )


async def _commit_pending(
    player_id: str,
    pending: PendingRound,
    progression: ProgressionState,
    recovered: bool,
):
    """
    Claim an open round, commit it and persist the progression.

    The record is cleared first with a compare-and-delete on its round id,
    so each round commits at most once. Returns (progression, closing,
    result); closing and result are None when the round was already
    claimed or no longer maps to catalog items.
    """
    claimed = await redis_service.clear_pending_round(player_id, pending.round_id)
    if not claimed:
        logger.info("Round %s for %s was already committed", pending.round_id, player_id)
        return progression, None, None

    result = pending.to_result()
    if result is None:
        logger.warning("Discarding unreadable round %s for %s", pending.round_id, player_id)
        return progression, None, None

    closing = close_round(engine, progression, result)
    await redis_service.save_progress(player_id, closing.progression)

    telemetry_service.emit_round_completed(
        RoundCompletedEvent(
            player_id=player_id,
            round_id=pending.round_id,
            pull_count=pending.pull_count,
            kind=result.kind.value,
            item_id=result.item.id if result.is_win else None,
            was_new_unlock=closing.was_new_unlock,
            unlocked_count=len(closing.progression.unlocked),
            recovered=recovered,
            config_hash=get_config_hash(engine.config),
        )
    )
    return closing.progression, closing, result


async def _recover_stale_round(
    player_id: str, progression: ProgressionState
) -> tuple[ProgressionState, bool]:
    """
    Commit a round whose client never reported completion.

    Only applies once the spin guard has expired; a round that is still
    animating is left alone.
    """
    pending = await redis_service.get_pending_round(player_id)
    if pending is None:
        return progression, False
    if await redis_service.is_round_locked(player_id):
        return progression, False
    progression, closing, _ = await _commit_pending(
        player_id, pending, progression, recovered=True
    )
    if closing is None:
        # Claimed by a concurrent request; its progress is the current one
        return await redis_service.load_progress(player_id), False
    return progression, True


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/init")
async def init(request: Request) -> dict:
    """
    GET /init.

    Returns configuration, current progression and any running round.
    """
    player_id = request.state.player_id

    progression = await redis_service.load_progress(player_id)
    progression, recovered = await _recover_stale_round(player_id, progression)

    restored_round = None
    pending = await redis_service.get_pending_round(player_id)
    if pending is not None:
        result = pending.to_result()
        if result is not None:
            restored_round = RestoredRound(
                roundId=pending.round_id,
                pullCount=pending.pull_count,
                result=ResultView.from_result(result),
            )

    response = InitResponse(
        configuration=_configuration(),
        progression=_progression_view(progression),
        milestoneMessage=milestone_message(progression.pull_count),
        restoredRound=restored_round,
    )

    summary = progression.summary(engine.catalog)
    telemetry_service.emit_init_served(
        InitServedEvent(
            player_id=player_id,
            pull_count=progression.pull_count,
            unlocked_count=len(progression.unlocked),
            hidden_unlocked=summary.hidden_unlocked,
            recovered_round=recovered,
            config_hash=get_config_hash(engine.config),
        )
    )

    return response.model_dump()


@app.post("/pull")
async def pull(request: Request, body: PullRequest) -> dict:
    """
    POST /pull.

    Implements:
    - Request validation
    - Idempotency (same clientRequestId returns cached response)
    - Spin guard (ROUND_IN_PROGRESS while a round is animating)
    - Recovery of a stale round before the new one
    - Outcome decision and strip generation
    """
    player_id = request.state.player_id

    # 1) Validate request
    visible = validate_pull_request(body)
    payload = {"visibleItems": body.visibleItems}

    # 2) Check idempotency cache (fast path)
    cached = await redis_service.check_idempotency(player_id, body.clientRequestId, payload)
    if cached is not None:
        return cached

    # 3) Acquire spin guard; held until /complete or lock TTL
    token = await redis_service.acquire_round_lock(player_id)
    if token is None:
        telemetry_service.emit_pull_rejected(
            PullRejectedEvent(
                player_id=player_id,
                client_request_id=body.clientRequestId,
                reason=ErrorCode.ROUND_IN_PROGRESS.value,
            )
        )
        raise GameError(
            ErrorCode.ROUND_IN_PROGRESS,
            "A spin is already running for this player.",
        )

    try:
        # 4) Re-check idempotency inside the guard (slow path)
        cached = await redis_service.check_idempotency(
            player_id, body.clientRequestId, payload
        )
        if cached is not None:
            await redis_service.release_round_lock(player_id, token)
            return cached

        # 5) Load progression, committing any abandoned round first
        progression = await redis_service.load_progress(player_id)
        pending = await redis_service.get_pending_round(player_id)
        if pending is not None:
            progression, _, _ = await _commit_pending(
                player_id, pending, progression, recovered=True
            )

        # 6) Count the pull, decide, build strips
        plan = open_round(engine, progression, visible)
        await redis_service.save_progress(player_id, plan.progression)

        # 7) Record the open round
        round_id = str(uuid.uuid4())
        await redis_service.save_pending_round(
            player_id,
            PendingRound.from_result(
                round_id=round_id,
                pull_count=plan.progression.pull_count,
                result=plan.result,
                lock_token=token,
                opened_at=time.time(),
            ),
        )

        response = PullResponse(
            roundId=round_id,
            pullCount=plan.progression.pull_count,
            result=ResultView.from_result(plan.result),
            strips=[[item.id for item in strip] for strip in plan.strips],
            timings=Timings.from_config(engine.config),
            milestoneMessage=milestone_message(plan.progression.pull_count),
        )
        response_dict = response.model_dump()

        # 8) Store in idempotency cache
        await redis_service.store_idempotency(
            player_id, body.clientRequestId, payload, response_dict
        )
    except BaseException:
        await redis_service.release_round_lock(player_id, token)
        raise

    # 9) Telemetry (fresh rounds only)
    summary = progression.summary(engine.catalog)
    telemetry_service.emit_pull_processed(
        PullProcessedEvent(
            player_id=player_id,
            client_request_id=body.clientRequestId,
            round_id=round_id,
            pull_count=plan.progression.pull_count,
            kind=plan.result.kind.value,
            is_win=plan.result.is_win,
            is_special=plan.is_special,
            is_failure=plan.is_failure,
            unlocked_standard_count=summary.unlocked_standard_count,
            win_probability=engine.win_probability(summary),
            config_hash=get_config_hash(engine.config),
        )
    )

    return response_dict


@app.post("/pull/{round_id}/complete")
async def complete(request: Request, round_id: str) -> dict:
    """
    POST /pull/{roundId}/complete.

    Presentation finished: commit the result, release the spin guard and
    return reveal texts plus settle strips for the silent swap. Runs under
    the spin guard; a round whose guard now belongs to another pull has been
    superseded and is rejected.
    """
    player_id = request.state.player_id

    pending = await redis_service.get_pending_round(player_id)
    if pending is None or pending.round_id != round_id:
        raise GameError(ErrorCode.ROUND_NOT_FOUND, f"No open round {round_id}.")

    token = pending.lock_token
    if not token or not await redis_service.owns_round_lock(player_id, token):
        # Guard expired: retake it, then make sure the round is still open
        token = await redis_service.acquire_round_lock(player_id)
        if token is None:
            raise GameError(ErrorCode.ROUND_NOT_FOUND, f"Round {round_id} was superseded.")
        pending = await redis_service.get_pending_round(player_id)
        if pending is None or pending.round_id != round_id:
            await redis_service.release_round_lock(player_id, token)
            raise GameError(ErrorCode.ROUND_NOT_FOUND, f"Round {round_id} was superseded.")

    try:
        progression = await redis_service.load_progress(player_id)
        progression, closing, result = await _commit_pending(
            player_id, pending, progression, recovered=False
        )
    finally:
        await redis_service.release_round_lock(player_id, token)
    if closing is None or result is None:
        raise GameError(ErrorCode.ROUND_NOT_FOUND, f"Round {round_id} is no longer valid.")

    # Flavor text is fetched after the commit and never affects it
    flavor_text = None
    if result.is_win:
        message = result.item.message
        flavor_text = await flavor_service.whisper(result.item.label)
    else:
        message = lose_message(message_rng)

    response = CompleteResponse(
        roundId=round_id,
        result=ResultView.from_result(result),
        wasNewUnlock=closing.was_new_unlock,
        progression=_progression_view(progression),
        message=message,
        retryText=retry_text(message_rng),
        flavorText=flavor_text,
        settleStrips=[[item.id for item in strip] for strip in closing.settle_strips],
    )
    return response.model_dump()


@app.get("/gallery/{item_id}")
async def gallery(request: Request, item_id: str) -> dict:
    """
    GET /gallery/{itemId}.

    Replays an unlocked item as a win for display. Never touches progression.
    """
    player_id = request.state.player_id

    item = get_item(item_id)
    if item is None:
        raise GameError(ErrorCode.INVALID_REQUEST, f"Unknown item {item_id}.")

    progression = await redis_service.load_progress(player_id)
    if not progression.is_unlocked(item.id):
        raise GameError(ErrorCode.ITEM_LOCKED, f"Item {item_id} is not unlocked yet.")

    response = GalleryResponse(
        item=ItemView.from_item(item),
        result=ResultView.from_result(SpinResult.win(item)),
        buttonText=GALLERY_BUTTON_TEXT,
        flavorText=await flavor_service.whisper(item.label),
    )
    return response.model_dump()


@app.post("/reset")
async def reset(request: Request, body: ResetRequest) -> dict:
    """
    POST /reset.

    Destructive: wipes progression. Requires confirm=true and no running round.
    """
    player_id = request.state.player_id

    validate_reset(body)
    if await redis_service.is_round_locked(player_id):
        raise GameError(
            ErrorCode.ROUND_IN_PROGRESS,
            "Cannot reset while a spin is running.",
        )

    before = await redis_service.load_progress(player_id)
    await redis_service.clear_progress(player_id)
    logger.info("Progress reset for %s", player_id)

    telemetry_service.emit_progress_reset(
        ProgressResetEvent(
            player_id=player_id,
            pull_count_before=before.pull_count,
            unlocked_count_before=len(before.unlocked),
        )
    )

    return ResetResponse(progression=_progression_view(ProgressionState())).model_dump()
