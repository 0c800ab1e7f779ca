"""Uniform note sampling, seedable for tests."""

import random
from collections.abc import Sequence
from typing import TypeVar

from memoryvault.errors import InsufficientData

T = TypeVar("T")


def pick_note(notes: Sequence[T], rng: random.Random | None = None) -> T:
    """
    Pick one note uniformly at random.

    Args:
        notes: Candidates
        rng: Optional ``random.Random`` (seeded in tests); the module RNG otherwise

    Raises:
        InsufficientData: If ``notes`` is empty
    """
    if not notes:
        raise InsufficientData("No memories found. Please add some memories first!")
    return (rng or random).choice(notes)
