"""
Celik 2009 block PCA + k-means change map for one frame pair.

T. Celik, "Unsupervised Change Detection in Satellite Images Using Principal
Component Analysis and k-Means Clustering", IEEE GRSL 6(4):772-776, 2009.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
from sklearn.cluster import KMeans

from sequence_cd.cd.differencing import pair_difference
from sequence_cd.cd.pca_utils import FeatureField, extract_training_blocks, fit_block_basis, sliding_features
from sequence_cd.cd.scene_masks import apply_scene_gate
from sequence_cd.config import PipelineConfig, SceneParams


Array = np.ndarray

logger = logging.getLogger(__name__)


@dataclass
class PairResult:
    index: int  # 1-based: pair (index, index + 1)
    change_map: Array  # raw change mask after validity and scene gating
    scene_mask: Optional[Array]


def cluster_means(diff: Array, field: FeatureField, labels: Array, k: int = 2) -> Array:
    """Mean raw difference of the pixels assigned to each cluster (NaN for empty clusters)."""
    values = diff[field.rows, field.cols]
    means = np.full(k, np.nan)
    for c in range(k):
        sel = labels == c
        if np.any(sel):
            means[c] = values[sel].mean()
    return means


def kmeans_change_map(
    field: FeatureField,
    diff: Array,
    n_init: int = 2,
    max_iter: int = 100,
    tol: float = 1e-3,
    random_state: Optional[int] = 1234,
) -> Array:
    """
    Split feature vectors into two clusters; the cluster whose pixels have the
    larger mean raw difference is marked as changed.
    """
    cm = np.zeros(diff.shape, dtype=bool)
    feats = field.features
    if feats.shape[0] < 2 or not np.any(np.ptp(feats, axis=0) > 0):
        return cm
    kmeans = KMeans(n_clusters=2, n_init=n_init, max_iter=max_iter, tol=tol, random_state=random_state)
    labels = kmeans.fit_predict(feats)
    means = cluster_means(diff, field, labels)
    if np.isnan(means).any():
        return cm
    changed = int(np.argmax(means))
    sel = labels == changed
    cm[field.rows[sel], field.cols[sel]] = True
    return cm


def pair_change_map(
    gray_prev: Array,
    gray_curr: Array,
    valid_mask: Array,
    params: SceneParams,
    cfg: PipelineConfig,
    noise_floor: float,
    scene_mask: Optional[Array] = None,
    index: int = 1,
) -> PairResult:
    """Difference -> block PCA features -> 2-means -> validity and scene gating."""
    t0 = time.perf_counter()
    diff = pair_difference(gray_prev, gray_curr, valid_mask, noise_floor)
    logger.info("Pair %d: diff computation: %.4f s", index, time.perf_counter() - t0)

    t0 = time.perf_counter()
    blocks = extract_training_blocks(diff, cfg.h)
    logger.info("Pair %d: training blocks: %.4f s", index, time.perf_counter() - t0)

    t0 = time.perf_counter()
    basis = fit_block_basis(blocks, cfg.S)
    logger.info("Pair %d: PCA basis: %.4f s", index, time.perf_counter() - t0)

    t0 = time.perf_counter()
    field = sliding_features(diff, cfg.h, basis)
    logger.info("Pair %d: sliding features: %.4f s", index, time.perf_counter() - t0)

    t0 = time.perf_counter()
    cm = kmeans_change_map(
        field,
        diff,
        n_init=cfg.kmeans_restarts,
        max_iter=cfg.kmeans_max_iter,
        tol=cfg.kmeans_tol,
        random_state=cfg.random_state,
    )
    logger.info("Pair %d: k-means clustering: %.4f s", index, time.perf_counter() - t0)

    t0 = time.perf_counter()
    cm &= valid_mask
    cm = apply_scene_gate(cm, scene_mask, params)
    logger.info("Pair %d: masking: %.4f s", index, time.perf_counter() - t0)
    return PairResult(index=index, change_map=cm, scene_mask=scene_mask)
