from __future__ import annotations

import numpy as np
import pytest

from sequence_cd.cd.pca_utils import (
    extract_training_blocks,
    fit_block_basis,
    sliding_features,
)


def test_training_blocks_disjoint_and_truncated():
    diff = np.arange(5 * 7, dtype=float).reshape(5, 7)
    blocks = extract_training_blocks(diff, 2)
    # 2 full tile rows x 3 full tile cols, remainder dropped
    assert blocks.shape == (6, 4)
    assert blocks[0].tolist() == [0, 1, 7, 8]
    assert blocks[1].tolist() == [2, 3, 9, 10]
    assert blocks[3].tolist() == [14, 15, 21, 22]


def test_training_blocks_too_small():
    with pytest.raises(ValueError):
        extract_training_blocks(np.zeros((1, 5)), 2)


def test_basis_orthonormal_and_sorted(rng):
    blocks = rng.normal(size=(500, 9)) * np.arange(1, 10)
    basis = fit_block_basis(blocks, 4)
    assert basis.basis.shape == (9, 4)
    assert np.allclose(basis.basis.T @ basis.basis, np.eye(4), atol=1e-10)
    assert np.all(np.diff(basis.eigenvalues) <= 0)
    assert np.allclose(basis.mean, blocks.mean(axis=0))
    # largest variance lies on the last coordinate
    assert abs(basis.basis[8, 0]) > 0.9


def test_basis_rejects_too_many_components():
    with pytest.raises(ValueError):
        fit_block_basis(np.zeros((10, 4)), 5)


def test_sliding_feature_grid_h2(rng):
    diff = rng.random((12, 10))
    basis = fit_block_basis(extract_training_blocks(diff, 2), 3)
    field = sliding_features(diff, 2, basis)
    assert field.features.shape == (11 * 9, 3)
    assert (field.rows.min(), field.rows.max()) == (0, 10)
    assert (field.cols.min(), field.cols.max()) == (0, 8)
    # the first window is the top-left 2x2 patch, centred by the training mean
    expected = (diff[:2, :2].ravel() - basis.mean) @ basis.basis
    assert np.allclose(field.features[0], expected)


def test_sliding_feature_offset_h3(rng):
    diff = rng.random((9, 9))
    basis = fit_block_basis(extract_training_blocks(diff, 3), 2)
    field = sliding_features(diff, 3, basis)
    assert field.features.shape == (49, 2)
    assert field.rows.min() == 1 and field.rows.max() == 7
    assert field.cols.min() == 1 and field.cols.max() == 7


def test_basis_matches_block_covariance(rng):
    blocks = rng.normal(size=(300, 4)) @ rng.normal(size=(4, 4))
    basis = fit_block_basis(blocks, 3)
    x = blocks - blocks.mean(axis=0)
    cov = (x.T @ x) / blocks.shape[0]
    eigvals, eigvecs = np.linalg.eigh(cov)
    top = eigvecs[:, ::-1][:, :3]
    assert np.allclose(basis.eigenvalues, eigvals[::-1][:3])
    # same directions up to sign
    assert np.allclose(np.abs(np.sum(top * basis.basis, axis=0)), 1.0)


def test_basis_rejects_fewer_blocks_than_components():
    with pytest.raises(ValueError):
        fit_block_basis(np.zeros((2, 4)), 3)
