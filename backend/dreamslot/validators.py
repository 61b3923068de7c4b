"""Request validators."""
from dreamslot.errors import ErrorCode, GameError
from dreamslot.logic.catalog import get_item
from dreamslot.logic.models import Item
from dreamslot.protocol import PullRequest, ResetRequest


def validate_visible_items(request: PullRequest) -> list[Item | None]:
    """
    Resolve the reels' currently visible items.

    Raises INVALID_REQUEST for anything other than three known item ids.
    Returns three Nones when the client sent nothing.
    """
    if request.visibleItems is None:
        return [None, None, None]
    if len(request.visibleItems) != 3:
        raise GameError(
            ErrorCode.INVALID_REQUEST,
            f"visibleItems must hold 3 item ids, got {len(request.visibleItems)}",
        )
    items = [get_item(item_id) for item_id in request.visibleItems]
    unknown = [i for i, item in zip(request.visibleItems, items) if item is None]
    if unknown:
        raise GameError(
            ErrorCode.INVALID_REQUEST,
            f"Unknown item ids in visibleItems: {unknown}",
        )
    return items


def validate_reset(request: ResetRequest) -> None:
    """Reset is destructive and must be explicitly confirmed."""
    if not request.confirm:
        raise GameError(
            ErrorCode.RESET_NOT_CONFIRMED,
            "Reset wipes all progress; send confirm=true to proceed.",
        )


def validate_pull_request(request: PullRequest) -> list[Item | None]:
    """Run all validations on pull request."""
    if not request.clientRequestId:
        raise GameError(ErrorCode.INVALID_REQUEST, "clientRequestId is required.")
    return validate_visible_items(request)
