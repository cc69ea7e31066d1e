"""
Small classification datasets for evolving and checking networks.
Both generators return (X, y) with X shaped (n, 2) and y shaped (n, 1).
"""

from typing import Tuple

import numpy as np


def xor_dataset() -> Tuple[np.ndarray, np.ndarray]:
    """The four rows of the XOR truth table."""
    X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([[0.0], [1.0], [1.0], [0.0]])
    return X, y


def noisy_xor(
    n_samples: int = 200, noise: float = 0.05, seed: int = 42
) -> Tuple[np.ndarray, np.ndarray]:
    """XOR corners with Gaussian jitter.

    Args:
        n_samples: Number of points, spread evenly over the four corners
        noise: Standard deviation of the jitter
        seed: Seed for the generator

    Returns:
        X: Input points with shape (n_samples, 2)
        y: Binary labels with shape (n_samples, 1)
    """
    rng = np.random.default_rng(seed)
    corners, labels = xor_dataset()

    idx = np.arange(n_samples) % len(corners)
    X = corners[idx] + rng.normal(0.0, noise, size=(n_samples, 2))
    y = labels[idx]

    order = rng.permutation(n_samples)
    return X[order], y[order]
