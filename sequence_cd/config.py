"""
Scene taxonomy and pipeline parameters.

Each scene is a tagged variant carrying its own parameter record: the
difference noise floor, which semantic mask gates the change map, and with
which polarity. The defaults reproduce the published thresholds exactly.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import yaml

from sequence_cd.errors import ConfigError, InputError


class Scene(str, enum.Enum):
    URBANIZATION = "urbanization"
    DEFORESTATION = "deforestation"
    GLACIER_MELTING = "glacier melting"
    DESICCATION = "desiccation"
    GENERAL = "general"


class MaskKind(str, enum.Enum):
    NONE = "none"
    SATURATION = "saturation"
    VARI = "vari"
    VALUE = "value"
    HUE_BAND = "hue_band"


class MaskSource(str, enum.Enum):
    """Frame the scene mask is computed from."""

    EARLIER = "earlier"
    LATER = "later"
    FIRST_PAIR = "first_pair"


@dataclass(frozen=True)
class SceneParams:
    noise_floor: float
    mask_kind: MaskKind = MaskKind.NONE
    # keep = change must lie inside the mask; exclude = change inside the mask is dropped
    keep_inside: bool = True
    quantile: Optional[float] = None
    min_component_px: int = 0
    hue_band: Optional[Tuple[float, float]] = None
    source: MaskSource = MaskSource.EARLIER


SCENE_PARAMS: Dict[Scene, SceneParams] = {
    Scene.GENERAL: SceneParams(noise_floor=0.12),
    Scene.URBANIZATION: SceneParams(
        noise_floor=0.08,
        mask_kind=MaskKind.SATURATION,
        keep_inside=True,
        quantile=0.30,
        min_component_px=50,
        source=MaskSource.LATER,
    ),
    Scene.DEFORESTATION: SceneParams(
        noise_floor=0.10,
        mask_kind=MaskKind.VARI,
        keep_inside=True,
        quantile=0.10,
    ),
    Scene.GLACIER_MELTING: SceneParams(
        noise_floor=0.10,
        mask_kind=MaskKind.VALUE,
        keep_inside=False,
        quantile=0.60,
    ),
    Scene.DESICCATION: SceneParams(
        noise_floor=0.10,
        mask_kind=MaskKind.HUE_BAND,
        keep_inside=False,
        hue_band=(0.22, 0.67),
        source=MaskSource.FIRST_PAIR,
    ),
}


def parse_scene(scene: Union[str, Scene]) -> Scene:
    """Accept a Scene or its tag ("glacier melting", "glacier_melting", ...)."""
    if isinstance(scene, Scene):
        return scene
    tag = str(scene).strip().lower().replace("_", " ").replace("-", " ")
    try:
        return Scene(tag)
    except ValueError:
        valid = ", ".join(s.value for s in Scene)
        raise ConfigError(f"Unknown scene '{scene}'. Expected one of: {valid}") from None


@dataclass
class PipelineConfig:
    h: int = 2  # block side length
    S: int = 3  # retained principal components, S <= h^2
    border: int = 15
    noise_floors: Dict[str, float] = field(default_factory=dict)  # per-scene overrides
    kmeans_restarts: int = 2
    kmeans_max_iter: int = 100
    kmeans_tol: float = 1e-3
    random_state: Optional[int] = 1234
    n_workers: int = 1

    def validate(self) -> "PipelineConfig":
        if int(self.h) <= 0 or int(self.S) <= 0:
            raise InputError(f"h and S must be positive, got h={self.h}, S={self.S}")
        if self.S > self.h ** 2:
            raise ConfigError(f"S ({self.S}) must not exceed h^2 ({self.h ** 2}).")
        if self.border < 0:
            raise InputError(f"border must be non-negative, got {self.border}")
        if self.n_workers < 1:
            raise InputError(f"n_workers must be >= 1, got {self.n_workers}")
        if self.kmeans_restarts < 1 or self.kmeans_max_iter < 1:
            raise ConfigError("kmeans_restarts and kmeans_max_iter must be >= 1")
        for tag in self.noise_floors:
            parse_scene(tag)
        return self

    def noise_floor(self, scene: Scene) -> float:
        for tag, value in self.noise_floors.items():
            if parse_scene(tag) is scene:
                return float(value)
        return SCENE_PARAMS[scene].noise_floor


def config_from_dict(data: Optional[dict]) -> PipelineConfig:
    data = dict(data or {})
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown pipeline keys: {unknown}")
    return PipelineConfig(**data)


def load_config(path: Path) -> PipelineConfig:
    """Read the `pipeline:` section of a YAML file into a PipelineConfig."""
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return config_from_dict(raw.get("pipeline", {}))
