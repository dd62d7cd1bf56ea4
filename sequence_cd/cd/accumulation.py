"""
Temporal accumulation of per-pair change masks.

Masks must be fed in acquisition order: a pixel counts as changed only at the
first step where it is detected, and the cumulative mask never shrinks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np


Array = np.ndarray


@dataclass
class CumulativeMetrics:
    cum_changes: List[float]
    rel_growth: List[float]
    new_pixels: List[int]


class TemporalAccumulator:
    def __init__(self, shape, n_valid_pixels: int):
        if n_valid_pixels <= 0:
            raise ValueError(f"n_valid_pixels must be positive, got {n_valid_pixels}")
        self.n_valid_pixels = int(n_valid_pixels)
        self.cumulative = np.zeros(shape, dtype=bool)
        self.cum_changes: List[float] = []
        self.rel_growth: List[float] = []

    def step(self, raw_mask: Array) -> Array:
        """Consume the next raw mask and return only its newly changed pixels."""
        if raw_mask.shape != self.cumulative.shape:
            raise ValueError(f"Shape mismatch: {raw_mask.shape} vs {self.cumulative.shape}")
        new = raw_mask.astype(bool) & ~self.cumulative
        self.cumulative |= new
        ratio = float(np.count_nonzero(self.cumulative)) / self.n_valid_pixels
        growth = ratio - self.cum_changes[-1] if self.cum_changes else 0.0
        self.cum_changes.append(ratio)
        self.rel_growth.append(growth)
        return new

    def run(self, raw_masks: Sequence[Array]) -> List[Array]:
        return [self.step(m) for m in raw_masks]


def cumulative_change_metrics(masks: Sequence[Array], analysed_area: int) -> CumulativeMetrics:
    """
    Cumulative changed fraction of `analysed_area` per step, its first
    difference (0 for the first step) and the absolute count of new pixels.
    """
    if not masks:
        return CumulativeMetrics(cum_changes=[], rel_growth=[], new_pixels=[])
    acc: Optional[Array] = None
    cum: List[float] = []
    new_px: List[int] = []
    for m in masks:
        m = m.astype(bool)
        acc = np.zeros_like(m) if acc is None else acc
        new_px.append(int(np.count_nonzero(m & ~acc)))
        acc = acc | m
        cum.append(float(np.count_nonzero(acc)) / analysed_area)
    rel = [0.0] + [float(b - a) for a, b in zip(cum[:-1], cum[1:])]
    return CumulativeMetrics(cum_changes=cum, rel_growth=rel, new_pixels=new_px)
