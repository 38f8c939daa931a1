"""Random draws used by every subsystem.

All helpers consume only ``rng.random()`` so a scripted source can drive any
operation deterministically in tests.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def uniform(rng: random.Random, low: float, high: float) -> float:
    """Draw from ``[low, high)``."""
    return low + rng.random() * (high - low)


def pick(rng: random.Random, items: Sequence[T]) -> T:
    """Pick one item uniformly."""
    index = min(int(rng.random() * len(items)), len(items) - 1)
    return items[index]


def shuffled(rng: random.Random, items: Sequence[T]) -> list[T]:
    """Return a random permutation of ``items``."""
    keyed = [(rng.random(), i) for i in range(len(items))]
    keyed.sort()
    return [items[i] for _, i in keyed]


def coin(rng: random.Random) -> bool:
    return rng.random() > 0.5


def weighted_choice(
    rng: random.Random,
    options: Sequence[tuple[T, float]],
    fallback: T | None = None,
) -> T:
    """Pick an option with probability proportional to its weight.

    Args:
        rng: Random source.
        options: ``(value, weight)`` pairs; weights must be non-negative.
        fallback: Value returned when rounding leaves the roll past the
            cumulative total. Defaults to the last option.

    Returns:
        The selected value.
    """
    total = sum(weight for _, weight in options)
    roll = rng.random() * total
    cumulative = 0.0
    for value, weight in options:
        cumulative += weight
        if roll < cumulative:
            return value
    return options[-1][0] if fallback is None else fallback
