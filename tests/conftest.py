"""Shared fixtures for the dtree_python test suite."""

from __future__ import annotations

import numpy as np
import pytest


@pytest.fixture
def separable_classification() -> tuple[np.ndarray, np.ndarray]:
    """Four samples separated perfectly by the first feature.

    Returns:
        tuple[np.ndarray, np.ndarray]: X of shape (4, 2) and labels [0, 0, 1, 1].
    """
    X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([0, 0, 1, 1])
    return X, y


@pytest.fixture
def step_regression() -> tuple[np.ndarray, np.ndarray]:
    """One feature, four samples with an outlier target at the top.

    Returns:
        tuple[np.ndarray, np.ndarray]: X = [[1], [2], [3], [4]] and y = [1, 2, 3, 10].
    """
    X = np.array([[1.0], [2.0], [3.0], [4.0]])
    y = np.array([1.0, 2.0, 3.0, 10.0])
    return X, y


@pytest.fixture
def noisy_classification() -> tuple[np.ndarray, np.ndarray]:
    """Three class problem with overlapping classes and five features.

    Returns:
        tuple[np.ndarray, np.ndarray]: X of shape (120, 5) and integer labels in {0, 1, 2}.
    """
    rng = np.random.RandomState(7)
    X = rng.normal(size=(120, 5))
    score = X[:, 0] + 0.5 * X[:, 2] + rng.normal(scale=0.5, size=120)
    y = np.digitize(score, [-0.5, 0.5])
    return X, y


@pytest.fixture
def noisy_regression() -> tuple[np.ndarray, np.ndarray]:
    """Regression problem with four features and additive noise.

    Returns:
        tuple[np.ndarray, np.ndarray]: X of shape (100, 4) and real targets.
    """
    rng = np.random.RandomState(11)
    X = rng.uniform(-2.0, 2.0, size=(100, 4))
    y = 3.0 * X[:, 1] - X[:, 3] ** 2 + rng.normal(scale=0.2, size=100)
    return X, y
