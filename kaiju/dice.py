"""
Injectable random source.

Every die roll and random selection in the engine goes through one Dice
instance owned by the TurnManager, so a seed (or a scripted sequence) makes
a whole game reproducible.
"""

import random
from collections import deque
from typing import Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")


class Dice:
    """Seeded die roller."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = random.Random(seed)

    def roll(self, sides: int = 6) -> int:
        return self.rng.randint(1, sides)

    def choice(self, options: Sequence[T]) -> T:
        if not options:
            raise ValueError("Cannot choose from an empty sequence")
        return self.rng.choice(list(options))


class ScriptedDice(Dice):
    """
    Replays a fixed sequence of die faces.

    Choices consume scripted indices when given, otherwise the first option
    is taken. Running out of rolls raises, so a test never silently falls
    back to real randomness.
    """

    def __init__(self, rolls: Iterable[int] = (), choices: Iterable[int] = ()):
        super().__init__(seed=0)
        self.rolls = deque(rolls)
        self.choices = deque(choices)
        self.history: list[int] = []

    def push(self, *rolls: int):
        self.rolls.extend(rolls)

    def roll(self, sides: int = 6) -> int:
        if not self.rolls:
            raise RuntimeError("Scripted dice exhausted")
        value = self.rolls.popleft()
        if not 1 <= value <= sides:
            raise ValueError(f"Scripted roll {value} outside 1..{sides}")
        self.history.append(value)
        return value

    def choice(self, options: Sequence[T]) -> T:
        if not options:
            raise ValueError("Cannot choose from an empty sequence")
        options = list(options)
        index = self.choices.popleft() if self.choices else 0
        return options[index % len(options)]
