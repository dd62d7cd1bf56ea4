from __future__ import annotations

import numpy as np
import pytest


def solid_frame(value=0.5, shape=(64, 64)) -> np.ndarray:
    """Float RGB frame filled with one color (scalar -> gray)."""
    color = np.broadcast_to(np.asarray(value, dtype=np.float64), (3,))
    return np.tile(color, shape + (1,)).copy()


@pytest.fixture
def block_pair():
    """Mid-gray frame and the same frame with a bright 10x10 block at rows/cols 25..34."""
    f1 = solid_frame(0.5)
    f2 = f1.copy()
    f2[25:35, 25:35, :] = 0.9
    return [f1, f2]


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
