from __future__ import annotations

import random
from typing import Any

from rumble.contracts import RandomSource


class PythonRandomSource(RandomSource):
    """Injected randomness source for number draws and test determinism."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def shuffle(self, items: list[Any]) -> None:
        self._rng.shuffle(items)


def party_random() -> PythonRandomSource:
    return PythonRandomSource(seed=None)


def seeded_random(seed: int) -> PythonRandomSource:
    return PythonRandomSource(seed=seed)
