"""
Cumulative change curve, per-pair panels and animated progress export.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.animation import FuncAnimation, PillowWriter

from sequence_cd.viz.overlay_utils import overlay_mask_on_rgb


def plot_cumulative_change(cum_changes: Sequence[float], rel_growth: Sequence[float], out_path: Path | None = None):
  """
  Top: cumulative change ratio per step. Bottom: rate of change per interval.
  """
  n = len(cum_changes)
  steps = np.arange(1, n + 1)
  fig, axes = plt.subplots(2, 1, figsize=(8, 7))
  axes[0].plot(steps, cum_changes, "b-o", linewidth=2)
  axes[0].set_ylabel("Cumulative change (ratio)")
  axes[0].set_xlabel("Time step")
  axes[0].set_title("Cumulative change relative to analyzed area")
  axes[0].set_ylim(0, 1)
  axes[0].grid(True)

  if n > 1:
    intervals = np.arange(1, n)
    axes[1].plot(intervals, rel_growth[1:], "r--s", linewidth=2)
    axes[1].set_xticks(intervals)
    axes[1].set_xticklabels([f"{i}-{i + 1}" for i in intervals])
  axes[1].set_ylabel("Rate of change")
  axes[1].set_xlabel("Intervals")
  axes[1].grid(True)
  fig.tight_layout()
  if out_path is not None:
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
  return fig


def save_progress_gif(frames: Sequence[np.ndarray], out_path: Path, delay: float = 1.0) -> Path:
  """Write blended RGB frames to an infinitely looping GIF."""
  out_path = Path(out_path)
  out_path.parent.mkdir(parents=True, exist_ok=True)
  h, w = frames[0].shape[:2]
  fig = plt.figure(figsize=(w / 100, h / 100), dpi=100)
  ax = fig.add_axes([0, 0, 1, 1])
  ax.axis("off")
  im = ax.imshow(frames[0])

  def update(i):
    im.set_data(frames[i])
    return (im,)

  anim = FuncAnimation(fig, update, frames=len(frames), blit=True)
  fps = 1.0 / delay if delay > 0 else 10.0
  anim.save(out_path, writer=PillowWriter(fps=fps))
  plt.close(fig)
  return out_path


def save_pair_panels(
  frames: Sequence[np.ndarray],
  change_maps: Sequence[np.ndarray],
  scene_masks: Sequence[Optional[np.ndarray]],
  out_dir: Path,
  mask_name: Optional[str] = None,
  invert_mask: bool = False,
) -> List[Path]:
  """
  Per pair k: the later frame with its change map overlaid in red
  (pair_XX_overlay.png) and, when the scene has one, the scene mask
  (pair_XX_<mask_name>_mask.png).
  frames: float RGB in [0, 1]; change_maps[k] and scene_masks[k] belong to frame k + 1.
  """
  out_dir = Path(out_dir)
  out_dir.mkdir(parents=True, exist_ok=True)
  written = []
  for k, (cm, sm) in enumerate(zip(change_maps, scene_masks), start=1):
    overlay = overlay_mask_on_rgb(frames[k][..., :3], cm, alpha=0.3)
    path = out_dir / f"pair_{k:02d}_overlay.png"
    plt.imsave(path, np.clip(overlay, 0, 1))
    written.append(path)
    if sm is not None and mask_name:
      shown = ~sm if invert_mask else sm
      path = out_dir / f"pair_{k:02d}_{mask_name}_mask.png"
      plt.imsave(path, shown.astype(np.float32), cmap="gray", vmin=0, vmax=1)
      written.append(path)
  return written
