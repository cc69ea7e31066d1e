"""
Weighted random selection ("roulette wheel") and probabilistic rounding.
"""

import math
from typing import Optional, Sequence

import numpy as np


class RouletteWheelLayout:
    """Sectors of a roulette wheel, one per labelled outcome.

    Probabilities are used as proportions of their total and need not sum to
    one. When every probability is zero all outcomes become equally likely.
    """

    def __init__(self, probabilities: Sequence[float], labels: Optional[Sequence[int]] = None):
        self.probabilities = np.array(probabilities, dtype=float)
        if labels is None:
            labels = range(len(self.probabilities))
        self.labels = [int(label) for label in labels]
        if len(self.labels) != len(self.probabilities):
            raise ValueError("probabilities and labels differ in length")
        if np.any(self.probabilities < 0.0) or not np.all(np.isfinite(self.probabilities)):
            raise ValueError("probabilities must be finite and non-negative")

        self.total = float(self.probabilities.sum())
        if self.total == 0.0 and len(self.probabilities) > 0:
            self.probabilities = np.ones(len(self.probabilities))
            self.total = float(len(self.probabilities))

    def remove_outcome(self, label: int) -> "RouletteWheelLayout":
        """Return a new layout without the given outcome."""
        idx = self.labels.index(label)
        return RouletteWheelLayout(
            np.delete(self.probabilities, idx),
            self.labels[:idx] + self.labels[idx + 1:],
        )

    def __len__(self):
        return len(self.labels)

    def __repr__(self):
        return f"RouletteWheelLayout(labels={self.labels}, total={self.total})"


def single_throw(layout: RouletteWheelLayout, rng: np.random.Generator) -> int:
    """Spin the wheel once and return the winning label."""
    if len(layout) == 0:
        raise ValueError("Cannot throw on an empty roulette wheel")
    throw = layout.total * rng.random()
    accumulator = 0.0
    for probability, label in zip(layout.probabilities, layout.labels):
        accumulator += probability
        if throw < accumulator:
            return label

    # Float rounding can leave the throw equal to the total
    for probability, label in zip(layout.probabilities, layout.labels):
        if probability != 0.0:
            return label
    raise ValueError("No non-zero probabilities to select")


def single_throw_probability(probability: float, rng: np.random.Generator) -> bool:
    """True with the given probability."""
    return rng.random() < probability


def single_throw_even(outcome_count: int, rng: np.random.Generator) -> int:
    """Pick one of outcome_count equally likely outcomes."""
    if outcome_count < 1:
        raise ValueError("Need at least one outcome")
    return int(rng.integers(outcome_count))


def probabilistic_round(value: float, rng: np.random.Generator) -> int:
    """Round down or up with probability given by the fractional part.

    3.7 becomes 4 seven times out of ten and 3 otherwise, so repeated
    rounding carries no systematic bias.
    """
    floor = math.floor(value)
    fraction = value - floor
    if rng.random() < fraction:
        return int(floor) + 1
    return int(floor)
