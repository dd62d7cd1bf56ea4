"""
Pairwise grayscale differencing with a scene-dependent noise floor.
"""
from __future__ import annotations

import numpy as np

Array = np.ndarray


def pair_difference(gray_prev: Array, gray_curr: Array, valid_mask: Array, noise_floor: float) -> Array:
    """Absolute intensity difference, zero outside the valid area and below the noise floor."""
    if gray_prev.shape != gray_curr.shape:
        raise ValueError(f"Shape mismatch: {gray_prev.shape} vs {gray_curr.shape}")
    diff = np.abs(gray_curr - gray_prev)
    diff[~valid_mask] = 0.0
    diff[diff < noise_floor] = 0.0
    return diff
