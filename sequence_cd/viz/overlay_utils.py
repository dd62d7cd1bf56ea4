"""
Overlay utilities for change-map visualization.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from matplotlib import colormaps


def overlay_mask_on_rgb(rgb: np.ndarray, mask: np.ndarray, color: Tuple[float, float, float] = (1.0, 0.0, 0.0), alpha: float = 0.3) -> np.ndarray:
  out = rgb.astype(np.float32).copy()
  m = mask.astype(bool)
  out[m] = (1 - alpha) * out[m] + alpha * np.array(color)
  return out


def step_colors(n: int, cmap_name: str = "tab10") -> np.ndarray:
  """One RGB color per time step from a qualitative colormap."""
  cmap = colormaps[cmap_name]
  return np.array([cmap(i % cmap.N)[:3] for i in range(n)], dtype=np.float32)


def accumulated_color_frames(frames: Sequence[np.ndarray], change_maps: Sequence[np.ndarray], alpha: float = 0.4) -> List[np.ndarray]:
  """
  Blend the changes accumulated so far onto each frame.
  Pixels first flagged at step k keep the color of step k in every later frame.
  frames: float RGB in [0, 1]; change_maps[k] belongs to frame k + 1.
  """
  if len(change_maps) != len(frames) - 1:
    raise ValueError(f"Expected {len(frames) - 1} change maps, got {len(change_maps)}")
  colors = step_colors(len(frames))
  acc_mask = np.zeros(frames[0].shape[:2], dtype=bool)
  acc_col = np.zeros(frames[0].shape[:2] + (3,), dtype=np.float32)
  out = []
  for i, frame in enumerate(frames):
    if i > 0:
      new_px = change_maps[i - 1] & ~acc_mask
      acc_mask |= change_maps[i - 1]
      acc_col[new_px] = colors[i]
    blended = frame[..., :3].astype(np.float32).copy()
    blended[acc_mask] = (1 - alpha) * blended[acc_mask] + alpha * acc_col[acc_mask]
    out.append(np.clip(blended, 0, 1))
  return out
