"""Visual pool restriction.

Once the player has won anything, reels only show items already won until
the hidden item is captured. This keeps every reel looking "so close" to a
complete set.
"""
from dreamslot.logic.models import Item, ProgressionState


def restricted_pool(
    catalog: tuple[Item, ...], progression: ProgressionState
) -> list[Item]:
    """
    Return the items allowed on the reels, in catalog order.

    Never empty: falls back to the full non-hidden pool when narrowing
    leaves nothing, and to the whole catalog if it has no standard items.
    """
    standard = [item for item in catalog if not item.is_hidden]
    hidden_ids = {item.id for item in catalog if item.is_hidden}
    hidden_unlocked = bool(hidden_ids) and hidden_ids <= progression.unlocked

    if not hidden_unlocked and progression.unlocked:
        narrowed = [item for item in standard if item.id in progression.unlocked]
        if narrowed:
            return narrowed

    return standard or list(catalog)


def widening_pools(
    catalog: tuple[Item, ...], progression: ProgressionState
) -> list[list[Item]]:
    """Candidate pools from narrowest to broadest: restricted, standard, catalog."""
    standard = [item for item in catalog if not item.is_hidden]
    pools = [restricted_pool(catalog, progression), standard, list(catalog)]
    return [pool for pool in pools if pool]


def first_pool_with(pools: list[list[Item]], minimum_distinct: int) -> list[Item]:
    """
    Return the first pool holding at least minimum_distinct items.

    Falls back to the broadest pool when none is large enough.
    """
    for pool in pools:
        if len({item.id for item in pool}) >= minimum_distinct:
            return pool
    return pools[-1]
