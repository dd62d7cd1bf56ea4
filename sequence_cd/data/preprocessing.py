"""
Preprocessing for registered frame sequences.

Implements:
- Intensity normalisation of color frames to [0, 1] and luminance grayscale.
- The common validity footprint across a sequence (nonzero in every frame),
  cropped to its bounding box and eroded by a fixed border margin.
- Embedding cropped masks back into the original frame geometry.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy import ndimage

from sequence_cd.errors import EmptyRegionError, InputError


Array = np.ndarray

GRAY_WEIGHTS = np.array([0.2989, 0.5870, 0.1140], dtype=np.float64)


def to_unit_float(img: Array) -> Array:
    """Scale integer images to float64 in [0, 1]; floats are returned as float64 unchanged."""
    if img.dtype == bool:
        return img.astype(np.float64)
    if np.issubdtype(img.dtype, np.integer):
        return img.astype(np.float64) / float(np.iinfo(img.dtype).max)
    return img.astype(np.float64)


def rgb_to_gray(rgb: Array) -> Array:
    if rgb.ndim != 3 or rgb.shape[2] < 3:
        raise InputError(f"Expected (H,W,3) color frame, got shape {rgb.shape}")
    return to_unit_float(rgb[..., :3]) @ GRAY_WEIGHTS


@dataclass
class CroppedSequence:
    color: List[Array]  # (Hc, Wc, 3) float in [0, 1]
    gray: List[Array]  # (Hc, Wc)
    valid_mask: Array  # (Hc, Wc) bool, eroded by the border margin
    n_valid_pixels: int
    bbox: Tuple[int, int, int, int]  # rmin, rmax, cmin, cmax (inclusive)
    full_shape: Tuple[int, int]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.valid_mask.shape

    @property
    def border_mask(self) -> Array:
        """Perimeter pixels of the analysed area."""
        inner = ndimage.binary_erosion(self.valid_mask, border_value=0)
        return self.valid_mask & ~inner


def check_sequence(frames: Sequence[Array]) -> None:
    if frames is None or len(frames) == 0:
        raise InputError("Frame sequence is empty.")
    if len(frames) < 2:
        raise InputError(f"Need at least 2 frames, got {len(frames)}.")
    ref = frames[0].shape
    if len(ref) != 3 or ref[2] < 3:
        raise InputError(f"Expected (H,W,3) color frames, got shape {ref}")
    for k, f in enumerate(frames[1:], start=2):
        if f.shape != ref:
            raise InputError(f"Shape mismatch: frame 1 {ref} vs frame {k} {f.shape}")


def crop_to_valid_region(frames: Sequence[Array], border: int = 15) -> CroppedSequence:
    """
    Crop all frames to the bounding box of their common nonzero footprint.

    A pixel is valid when its grayscale value is > 0 in every frame. The
    cropped validity mask then loses `border` pixels on all four edges.
    """
    check_sequence(frames)
    color = [to_unit_float(f[..., :3]) for f in frames]
    gray = [c @ GRAY_WEIGHTS for c in color]

    mask_all = np.ones(gray[0].shape, dtype=bool)
    for g in gray:
        mask_all &= g > 0
    rows, cols = np.where(mask_all)
    if rows.size == 0:
        raise EmptyRegionError("No common valid region across the sequence.")
    rmin, rmax = int(rows.min()), int(rows.max())
    cmin, cmax = int(cols.min()), int(cols.max())
    sl = (slice(rmin, rmax + 1), slice(cmin, cmax + 1))

    valid = mask_all[sl].copy()
    if border > 0:
        valid[:border, :] = False
        valid[-border:, :] = False
        valid[:, :border] = False
        valid[:, -border:] = False
    n_valid = int(valid.sum())
    if n_valid == 0:
        raise EmptyRegionError(
            f"Common region {rmax - rmin + 1}x{cmax - cmin + 1} is empty after eroding a {border}px border."
        )

    return CroppedSequence(
        color=[c[sl] for c in color],
        gray=[g[sl] for g in gray],
        valid_mask=valid,
        n_valid_pixels=n_valid,
        bbox=(rmin, rmax, cmin, cmax),
        full_shape=gray[0].shape,
    )


def expand_to_full(mask: Array, bbox: Tuple[int, int, int, int], full_shape: Tuple[int, int]) -> Array:
    """Place a cropped mask into an all-false raster of the original size."""
    rmin, rmax, cmin, cmax = bbox
    if mask.shape != (rmax - rmin + 1, cmax - cmin + 1):
        raise ValueError(f"Mask shape {mask.shape} does not match crop box {bbox}")
    out = np.zeros(full_shape, dtype=bool)
    out[rmin : rmax + 1, cmin : cmax + 1] = mask
    return out
