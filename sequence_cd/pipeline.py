"""
End-to-end change detection over a registered frame sequence.

The validity crop runs once; pairs are independent and may run on worker
threads; the accumulator then consumes the pair masks in time order.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from sequence_cd.cd.accumulation import TemporalAccumulator
from sequence_cd.cd.celik_pca_kmeans import PairResult, pair_change_map
from sequence_cd.cd.scene_masks import compute_scene_mask
from sequence_cd.config import SCENE_PARAMS, MaskSource, PipelineConfig, Scene, parse_scene
from sequence_cd.data.preprocessing import CroppedSequence, check_sequence, crop_to_valid_region, expand_to_full
from sequence_cd.errors import InputError


Array = np.ndarray

logger = logging.getLogger(__name__)


@dataclass
class ChangeDetectionResult:
    change_maps: List[Array]  # newly changed pixels per pair, full frame size
    n_valid_pixels: int
    cum_changes: List[float]
    rel_growth: List[float]
    crop: CroppedSequence
    pairs: List[PairResult]
    scene: Scene


def _scene_mask(crop: CroppedSequence, scene: Scene, pair: int, cached: Optional[Array]) -> Optional[Array]:
    """Scene mask for pair (pair, pair + 1), 1-based."""
    params = SCENE_PARAMS[scene]
    if params.source is MaskSource.FIRST_PAIR:
        return cached
    frame = pair if params.source is MaskSource.LATER else pair - 1
    return compute_scene_mask(params, crop.color[frame], crop.valid_mask)


def detect_changes(
    frames: Sequence[Array],
    scene: Union[str, Scene] = Scene.GENERAL,
    cfg: Optional[PipelineConfig] = None,
) -> ChangeDetectionResult:
    """
    Run the per-pair PCA + k-means detector and accumulate its masks.

    Configuration is checked before anything is computed; a failure in any
    pair aborts the whole run.
    """
    cfg = (cfg or PipelineConfig()).validate()
    scene = parse_scene(scene)
    check_sequence(frames)
    params = SCENE_PARAMS[scene]
    noise_floor = cfg.noise_floor(scene)

    crop = crop_to_valid_region(frames, border=cfg.border)
    n_rows, n_cols = crop.shape
    if min(n_rows, n_cols) < cfg.h:
        raise InputError(f"Common region {crop.shape} is smaller than one {cfg.h}x{cfg.h} block.")
    if (n_rows // cfg.h) * (n_cols // cfg.h) < cfg.S:
        raise InputError(
            f"Common region {crop.shape} yields fewer {cfg.h}x{cfg.h} training blocks than S={cfg.S}."
        )
    logger.info(
        "Analysing %d frames, crop %s, %d valid pixels, scene '%s'",
        len(frames),
        crop.shape,
        crop.n_valid_pixels,
        scene.value,
    )

    # computed once from the first frame and shared by every pair
    first_pair_mask = None
    if params.source is MaskSource.FIRST_PAIR:
        first_pair_mask = compute_scene_mask(params, crop.color[0], crop.valid_mask)

    def run_pair(i: int) -> PairResult:
        logger.info("=== Processing pair %d vs %d ===", i + 1, i)
        return pair_change_map(
            crop.gray[i - 1],
            crop.gray[i],
            crop.valid_mask,
            params,
            cfg,
            noise_floor,
            scene_mask=_scene_mask(crop, scene, i, first_pair_mask),
            index=i,
        )

    pair_ids = range(1, len(frames))
    if cfg.n_workers > 1:
        with ThreadPoolExecutor(max_workers=cfg.n_workers) as pool:
            pairs = list(pool.map(run_pair, pair_ids))
    else:
        pairs = [run_pair(i) for i in pair_ids]

    acc = TemporalAccumulator(crop.shape, crop.n_valid_pixels)
    steps = acc.run([p.change_map for p in pairs])
    change_maps = [expand_to_full(m, crop.bbox, crop.full_shape) for m in steps]
    logger.info("Cumulative change after %d steps: %.4f", len(steps), acc.cum_changes[-1])

    return ChangeDetectionResult(
        change_maps=change_maps,
        n_valid_pixels=crop.n_valid_pixels,
        cum_changes=acc.cum_changes,
        rel_growth=acc.rel_growth,
        crop=crop,
        pairs=pairs,
        scene=scene,
    )
