"""
Scene-specific semantic masks and the gate that applies them to change maps.

| scene           | mask                                  | gating            |
|-----------------|---------------------------------------|-------------------|
| urbanization    | saturation <= q30, small blobs removed | keep inside mask  |
| deforestation   | VARI >= q10                           | keep inside mask  |
| glacier melting | value <= q60                          | drop inside mask  |
| desiccation     | hue in [0.22, 0.67], first pair only  | drop inside mask  |
| general         | none                                  | none              |

Quantiles are taken over the valid area only and every mask is false
outside it.
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from matplotlib.colors import rgb_to_hsv
from scipy import ndimage

from sequence_cd.config import MaskKind, SceneParams


Array = np.ndarray

EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def _valid_quantile(channel: Array, valid_mask: Array, q: float) -> float:
    return float(np.quantile(channel[valid_mask], q, method="hazen"))


def remove_small_components(mask: Array, min_size: int) -> Array:
    """Drop 8-connected components with fewer than `min_size` pixels."""
    if min_size <= 1 or not mask.any():
        return mask
    labels, n = ndimage.label(mask, structure=EIGHT_CONNECTED)
    sizes = np.bincount(labels.ravel(), minlength=n + 1)
    keep = sizes >= min_size
    keep[0] = False
    return keep[labels]


def saturation_mask(rgb: Array, valid_mask: Array, q: float = 0.30, min_size: int = 50) -> Array:
    sat = rgb_to_hsv(np.clip(rgb, 0.0, 1.0))[..., 1]
    mask = (sat <= _valid_quantile(sat, valid_mask, q)) & valid_mask
    return remove_small_components(mask, min_size)


def value_mask(rgb: Array, valid_mask: Array, q: float = 0.60) -> Array:
    val = rgb_to_hsv(np.clip(rgb, 0.0, 1.0))[..., 2]
    return (val <= _valid_quantile(val, valid_mask, q)) & valid_mask


def vari_index(rgb: Array) -> Array:
    """Visible Atmospherically Resistant Index (G - R) / (G + R - B)."""
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    denom = g + r - b
    denom = np.where(denom == 0, np.finfo(np.float64).eps, denom)
    return (g - r) / denom


def vari_mask(rgb: Array, valid_mask: Array, q: float = 0.10) -> Array:
    vari = vari_index(rgb)
    return (vari >= _valid_quantile(vari, valid_mask, q)) & valid_mask


def hue_band_mask(rgb: Array, valid_mask: Array, band: Tuple[float, float] = (0.22, 0.67)) -> Array:
    hue = rgb_to_hsv(np.clip(rgb, 0.0, 1.0))[..., 0]
    lo, hi = band
    return (hue >= lo) & (hue <= hi) & valid_mask


def compute_scene_mask(params: SceneParams, rgb: Array, valid_mask: Array) -> Optional[Array]:
    """Semantic mask for one color frame, or None for scenes without gating."""
    kind = params.mask_kind
    if kind is MaskKind.NONE:
        return None
    if kind is MaskKind.SATURATION:
        return saturation_mask(rgb, valid_mask, params.quantile, params.min_component_px)
    if kind is MaskKind.VARI:
        return vari_mask(rgb, valid_mask, params.quantile)
    if kind is MaskKind.VALUE:
        return value_mask(rgb, valid_mask, params.quantile)
    if kind is MaskKind.HUE_BAND:
        return hue_band_mask(rgb, valid_mask, params.hue_band)
    raise ValueError(f"Unknown mask kind: {kind}")


def apply_scene_gate(change_map: Array, scene_mask: Optional[Array], params: SceneParams) -> Array:
    """AND the change map with the scene mask, or with its complement for exclusion scenes."""
    if scene_mask is None:
        return change_map
    if params.keep_inside:
        return change_map & scene_mask
    return change_map & ~scene_mask
