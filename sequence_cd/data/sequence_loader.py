"""
Loader for folders of pre-registered frames (one image per acquisition date).

Filenames encode the acquisition order (e.g. `01_2000.png`, `02_2010.png`),
so frames are returned sorted by name.
"""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import List

import numpy as np
import rasterio
from rasterio.errors import NotGeoreferencedWarning


Array = np.ndarray

IMAGE_EXTS = (".png", ".jpg", ".jpeg", ".tif", ".tiff")

logger = logging.getLogger(__name__)


def suppress_rasterio_warnings() -> None:
    warnings.filterwarnings("ignore", category=NotGeoreferencedWarning)


def list_image_files(folder: Path) -> List[Path]:
    folder = Path(folder)
    files = [p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_EXTS]
    if not files:
        raise FileNotFoundError(f"No image files found in folder: {folder}")
    return sorted(files, key=lambda p: p.name)


def read_frame(path: Path) -> Array:
    """Read an image as (H, W, 3); single-band images are replicated to 3 channels."""
    with rasterio.open(path) as src:
        arr = src.read()  # (bands, H, W)
    if arr.shape[0] == 1:
        arr = np.repeat(arr, 3, axis=0)
    elif arr.shape[0] == 2:
        raise ValueError(f"Cannot interpret 2-band image as color: {path}")
    return np.transpose(arr[:3], (1, 2, 0))


def load_registered_images(folder: Path) -> List[Array]:
    suppress_rasterio_warnings()
    files = list_image_files(folder)
    frames = [read_frame(fp) for fp in files]
    logger.info("Loaded %d images from %s", len(frames), folder)
    return frames
