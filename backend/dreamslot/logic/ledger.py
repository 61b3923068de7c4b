"""Unlock ledger: applies results to progression."""
from dreamslot.logic.models import ProgressionState, SpinResult


def commit(
    progression: ProgressionState, result: SpinResult
) -> tuple[ProgressionState, bool]:
    """
    Apply a spin result to progression.

    Only wins change state. Idempotent: committing an already unlocked item
    returns an equal state and was_new_unlock=False.

    Returns:
        (updated progression, was_new_unlock)
    """
    if not result.is_win:
        return progression, False

    item_id = result.item.id
    if item_id in progression.unlocked:
        return progression, False

    updated = progression.model_copy(
        update={"unlocked": progression.unlocked | {item_id}}
    )
    return updated, True


def record_pull(progression: ProgressionState) -> ProgressionState:
    """Advance the pull counter by exactly one."""
    return progression.model_copy(update={"pull_count": progression.pull_count + 1})


def reset_progression() -> ProgressionState:
    """Empty state for an explicit, confirmed reset."""
    return ProgressionState()
