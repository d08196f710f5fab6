"""
Transition policy for library view updates.

Decides whether a new listing should be animated in or swapped in place:
small batches of additions (a background import trickling in) animate,
everything else (shrinking, bulk growth, re-filtering, reordering) is
replaced immediately.
"""

from enum import Enum
from typing import Sequence

from ..models import BookRecord

DEFAULT_MAX_ANIMATED_GROWTH = 5


class Transition(Enum):
    INCREMENTAL_ANIMATED = "incremental_animated"
    IMMEDIATE = "immediate"

    @property
    def animated(self) -> bool:
        return self is Transition.INCREMENTAL_ANIMATED


def same_ids(previous: Sequence[BookRecord], current: Sequence[BookRecord]) -> bool:
    """True if both listings hold the same ids in the same order."""
    if len(previous) != len(current):
        return False
    return all(a.id == b.id for a, b in zip(previous, current))


def is_same_listing(previous: Sequence[BookRecord], current: Sequence[BookRecord]) -> bool:
    """True if nothing visible changed: same ids, same order, same values."""
    return same_ids(previous, current) and all(a == b for a, b in zip(previous, current))


class TransitionPolicy:
    """
    Classifies the change between two listings.

    Args:
        max_animated_growth: Largest number of added books still animated
    """

    def __init__(self, max_animated_growth: int = DEFAULT_MAX_ANIMATED_GROWTH):
        if max_animated_growth < 0:
            raise ValueError("max_animated_growth must not be negative")
        self.max_animated_growth = max_animated_growth

    def classify(
        self,
        previous: Sequence[BookRecord],
        current: Sequence[BookRecord]
    ) -> Transition:
        growth = len(current) - len(previous)
        if 0 < growth <= self.max_animated_growth:
            return Transition.INCREMENTAL_ANIMATED
        return Transition.IMMEDIATE

    def __repr__(self):
        return f"<TransitionPolicy(max_animated_growth={self.max_animated_growth})>"
