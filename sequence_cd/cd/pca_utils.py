"""
Block PCA helpers for the Celik change map.

Two windowing passes run over the same difference raster:
- disjoint h x h tiles, used only to estimate the PCA basis;
- a dense stride-1 h x h window, projected on that basis so that every
  interior pixel receives a feature vector.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from sklearn.decomposition import PCA


Array = np.ndarray


@dataclass
class PCABasis:
    mean: Array  # shape (h*h,)
    basis: Array  # shape (h*h, S), orthonormal columns
    eigenvalues: Array  # shape (S,), descending


@dataclass
class FeatureField:
    features: Array  # shape (N, S)
    rows: Array  # shape (N,)
    cols: Array  # shape (N,)


def extract_training_blocks(diff: Array, h: int) -> Array:
    """
    Tile `diff` into disjoint h x h blocks, dropping incomplete rows/columns.
    Returns shape (M, h*h).
    """
    height, width = diff.shape
    n_y, n_x = height // h, width // h
    if n_y == 0 or n_x == 0:
        raise ValueError(f"Raster {diff.shape} is smaller than one {h}x{h} block.")
    tiles = diff[: n_y * h, : n_x * h].reshape(n_y, h, n_x, h)
    return tiles.transpose(0, 2, 1, 3).reshape(n_y * n_x, h * h)


def fit_block_basis(blocks: Array, n_components: int) -> PCABasis:
    """
    Fit PCA on training blocks (M, d) and keep the `n_components` leading
    eigenvectors of their covariance. Eigenvalues are reported for the
    (1/M) X^T X normalisation.
    """
    if blocks.ndim != 2:
        raise ValueError(f"Expected (M, d) matrix, got {blocks.shape}")
    m, d = blocks.shape
    if n_components > min(m, d):
        raise ValueError(f"n_components ({n_components}) exceeds min(blocks, block dimension) = {min(m, d)}.")
    pca = PCA(n_components=n_components, svd_solver="full")
    pca.fit(blocks)
    # sklearn normalises by M - 1
    eigvals = pca.explained_variance_ * ((m - 1) / m)
    return PCABasis(mean=pca.mean_, basis=pca.components_.T, eigenvalues=eigvals)


def project(basis: PCABasis, x: Array) -> Array:
    """Project (N, d) samples onto the basis -> (N, S)."""
    return (x - basis.mean) @ basis.basis


def sliding_features(diff: Array, h: int, basis: PCABasis) -> FeatureField:
    """
    Project every overlapping h x h window of `diff` onto `basis`.

    Window (i, j) is attributed to pixel (i + low, j + low) with
    low = (h - 1) // 2, giving an (H-h+1) x (W-h+1) grid of positions.
    """
    windows = np.lib.stride_tricks.sliding_window_view(diff, window_shape=(h, h))
    n_i, n_j = windows.shape[:2]
    feats = project(basis, windows.reshape(n_i * n_j, h * h))
    low = (h - 1) // 2
    ii, jj = np.meshgrid(np.arange(n_i), np.arange(n_j), indexing="ij")
    return FeatureField(features=feats, rows=ii.ravel() + low, cols=jj.ravel() + low)
