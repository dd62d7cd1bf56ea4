from __future__ import annotations

import logging

import numpy as np

from sequence_cd.cd.celik_pca_kmeans import cluster_means, kmeans_change_map, pair_change_map
from sequence_cd.cd.pca_utils import FeatureField, extract_training_blocks, fit_block_basis, sliding_features
from sequence_cd.config import SCENE_PARAMS, PipelineConfig, Scene


def _field(values, rows, cols):
    return FeatureField(features=np.asarray(values, dtype=float), rows=np.asarray(rows), cols=np.asarray(cols))


def _features(diff, h=2, n_components=3):
    return sliding_features(diff, h, fit_block_basis(extract_training_blocks(diff, h), n_components))


def test_changed_cluster_has_larger_mean_difference():
    diff = np.zeros((4, 4))
    diff[0, :] = 0.8
    # features are decoupled from the raw difference: the high-difference
    # pixels sit at the *low* end of feature space
    rows = np.repeat(np.arange(4), 4)
    cols = np.tile(np.arange(4), 4)
    feats = np.where(rows[:, None] == 0, -5.0, 5.0) + np.zeros((16, 2))
    cm = kmeans_change_map(_field(feats, rows, cols), diff)
    assert cm[0].all()
    assert not cm[1:].any()


def test_selected_cluster_mean_not_lower(rng):
    diff = rng.random((20, 20)) * 0.3
    diff[5:12, 5:12] += 0.6
    field = _features(diff)
    cm = kmeans_change_map(field, diff)
    assert cm.any()
    assert diff[cm].mean() >= diff[~cm].mean()


def test_constant_difference_gives_empty_map():
    diff = np.zeros((10, 10))
    field = _features(diff)
    assert not kmeans_change_map(field, diff).any()


def test_cluster_means_empty_cluster_is_nan():
    diff = np.ones((2, 2))
    field = _field(np.zeros((4, 1)), [0, 0, 1, 1], [0, 1, 0, 1])
    means = cluster_means(diff, field, np.zeros(4, dtype=int))
    assert means[0] == 1.0 and np.isnan(means[1])


def test_pair_change_map_respects_valid_mask():
    g1 = np.full((40, 40), 0.5)
    g2 = g1.copy()
    g2[5:15, 5:15] = 0.9
    g2[22:32, 22:32] = 0.9
    valid = np.zeros((40, 40), dtype=bool)
    valid[20:, 20:] = True
    cfg = PipelineConfig()
    res = pair_change_map(g1, g2, valid, SCENE_PARAMS[Scene.GENERAL], cfg, cfg.noise_floor(Scene.GENERAL))
    assert res.scene_mask is None
    assert not (res.change_map & ~valid).any()
    assert res.change_map[23:31, 23:31].all()


def test_noise_floor_suppresses_small_differences():
    g1 = np.full((32, 32), 0.5)
    g2 = g1 + 0.05
    g2[10:20, 10:20] = 0.55 + 0.3
    valid = np.ones((32, 32), dtype=bool)
    cfg = PipelineConfig()
    res = pair_change_map(g1, g2, valid, SCENE_PARAMS[Scene.GENERAL], cfg, 0.12)
    rows, cols = np.where(res.change_map)
    assert rows.size > 0
    assert rows.min() >= 9 and rows.max() <= 19
    assert cols.min() >= 9 and cols.max() <= 19


def test_stage_timings_logged(caplog):
    g1 = np.full((24, 24), 0.5)
    g2 = g1.copy()
    g2[8:14, 8:14] = 0.9
    cfg = PipelineConfig()
    with caplog.at_level(logging.INFO, logger="sequence_cd.cd.celik_pca_kmeans"):
        pair_change_map(g1, g2, np.ones((24, 24), dtype=bool), SCENE_PARAMS[Scene.GENERAL], cfg, 0.12, index=3)
    stages = [r.getMessage().split(":")[1].strip() for r in caplog.records]
    assert stages == [
        "diff computation",
        "training blocks",
        "PCA basis",
        "sliding features",
        "k-means clustering",
        "masking",
    ]
    assert all(r.getMessage().startswith("Pair 3:") for r in caplog.records)
