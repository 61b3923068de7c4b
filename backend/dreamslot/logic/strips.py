"""Reel strip generation for spin and settle animations."""
from typing import Sequence

from dreamslot.logic.models import STRIP_TARGET_OFFSET, Item, SpinResult
from dreamslot.logic.rng import RNGBase


ReelStrip = list[Item]


def build_strip(
    previous: Item | None,
    target: Item | None,
    length: int,
    pool: Sequence[Item],
    rng: RNGBase,
) -> ReelStrip:
    """
    Build one reel strip.

    Every position is drawn from pool, then index 0 is overwritten with the
    previously visible item and index length - 5 with the landing target.
    A strip without a target is a settle strip, played with no motion.
    """
    if length <= STRIP_TARGET_OFFSET:
        raise ValueError(
            f"Strip length {length} must exceed the {STRIP_TARGET_OFFSET}-slot margin"
        )
    if not pool:
        raise ValueError("Strip pool must not be empty")

    strip = [rng.choice(pool) for _ in range(length)]
    if previous is not None:
        strip[0] = previous
    if target is not None:
        strip[landing_index(length)] = target
    return strip


def landing_index(length: int) -> int:
    """Index where the target lands for a strip of the given length."""
    return length - STRIP_TARGET_OFFSET


def build_spin_strips(
    visible: Sequence[Item | None],
    result: SpinResult,
    lengths: Sequence[int],
    pool: Sequence[Item],
    rng: RNGBase,
) -> list[ReelStrip]:
    """Three strips starting at the visible items and landing on the result."""
    return [
        build_strip(_visible_at(visible, reel), result.slots[reel], lengths[reel], pool, rng)
        for reel in range(3)
    ]


def build_settle_strips(
    landed: Sequence[Item],
    lengths: Sequence[int],
    pool: Sequence[Item],
    rng: RNGBase,
) -> list[ReelStrip]:
    """Target-less strips parking each reel on its landed item (silent swap)."""
    return [
        build_strip(landed[reel], None, lengths[reel], pool, rng)
        for reel in range(3)
    ]


def _visible_at(visible: Sequence[Item | None], reel: int) -> Item | None:
    if reel < len(visible):
        return visible[reel]
    return None
