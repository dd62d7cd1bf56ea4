"""
Run PCA + k-means change detection on a folder of registered frames.
"""
from __future__ import annotations

import argparse
import json
import logging
import subprocess
from dataclasses import asdict
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np

from sequence_cd.config import SCENE_PARAMS, MaskKind, PipelineConfig, Scene, load_config
from sequence_cd.data.preprocessing import expand_to_full, to_unit_float
from sequence_cd.data.sequence_loader import list_image_files, load_registered_images
from sequence_cd.pipeline import detect_changes
from sequence_cd.viz.overlay_utils import accumulated_color_frames
from sequence_cd.viz.plots import plot_cumulative_change, save_pair_panels, save_progress_gif


MASK_NAMES = {
    MaskKind.SATURATION: "saturation",
    MaskKind.VARI: "vari",
    MaskKind.VALUE: "value",
    MaskKind.HUE_BAND: "blue",
}


def git_hash() -> str:
    try:
        return (
            subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
            .decode("utf-8")
            .strip()
        )
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--input_dir", required=True, type=Path)
    ap.add_argument("--scene", default="general", help="urbanization | deforestation | glacier melting | desiccation | general")
    ap.add_argument("--config", type=Path, default=None)
    ap.add_argument("--output_dir", type=Path, default=None, help="Defaults to --input_dir.")
    ap.add_argument("--h", type=int, default=None, help="Block size (overrides config).")
    ap.add_argument("--S", type=int, default=None, help="Principal components (overrides config).")
    ap.add_argument("--workers", type=int, default=None, help="Pairs processed in parallel.")
    ap.add_argument("--plot", action="store_true", help="Save per-pair change overlays and scene masks.")
    ap.add_argument("--graph", action="store_true", help="Save the cumulative change curve.")
    ap.add_argument("--gif", action="store_true", help="Save an animated progress GIF.")
    ap.add_argument("--delay", type=float, default=1.0, help="GIF delay per frame [s].")
    return ap.parse_args(argv)


def build_config(args) -> PipelineConfig:
    cfg = load_config(args.config) if args.config else PipelineConfig()
    if args.h is not None:
        cfg.h = args.h
    if args.S is not None:
        cfg.S = args.S
    if args.workers is not None:
        cfg.n_workers = args.workers
    return cfg


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    cfg = build_config(args)
    out_root = Path(args.output_dir or args.input_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    frames = load_registered_images(args.input_dir)
    result = detect_changes(frames, args.scene, cfg)

    np.savez_compressed(
        out_root / "change_maps.npz",
        **{f"mask_{k:03d}": m for k, m in enumerate(result.change_maps)},
    )
    metrics = {
        "scene": result.scene.value,
        "n_valid_pixels": result.n_valid_pixels,
        "cum_changes": result.cum_changes,
        "rel_growth": result.rel_growth,
        "frames": [p.name for p in list_image_files(args.input_dir)],
        "params": asdict(cfg),
    }
    with open(out_root / "metrics.json", "w", encoding="utf-8") as f:
        json.dump(metrics, f, indent=2)

    if args.plot:
        save_pair_panels(
            [to_unit_float(f) for f in frames],
            result.change_maps,
            [
                None if p.scene_mask is None else expand_to_full(p.scene_mask, result.crop.bbox, result.crop.full_shape)
                for p in result.pairs
            ],
            out_root,
            mask_name=MASK_NAMES.get(SCENE_PARAMS[result.scene].mask_kind),
            invert_mask=result.scene is Scene.DESICCATION,
        )
    if args.graph:
        plot_cumulative_change(result.cum_changes, result.rel_growth, out_root / "cumulative_change.png")
    if args.gif:
        gif_path = out_root / "progress.gif"
        print(f"Creating GIF at {gif_path}")
        blended = accumulated_color_frames([to_unit_float(f) for f in frames], result.change_maps)
        save_progress_gif(blended, gif_path, delay=args.delay)

    meta = {
        "input_dir": str(args.input_dir),
        "output_dir": str(out_root),
        "config": str(args.config) if args.config else None,
        "git_hash": git_hash(),
    }
    with open(out_root / "run_metadata.json", "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2)
    print(f"Saved change maps and metrics to {out_root}")
    return result


if __name__ == "__main__":
    main()
