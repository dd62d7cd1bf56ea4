from __future__ import annotations

import pytest

from sequence_cd.config import (
    SCENE_PARAMS,
    MaskKind,
    MaskSource,
    PipelineConfig,
    Scene,
    config_from_dict,
    load_config,
    parse_scene,
)
from sequence_cd.errors import ConfigError, InputError


def test_default_noise_floors():
    floors = {s: p.noise_floor for s, p in SCENE_PARAMS.items()}
    assert floors == {
        Scene.GENERAL: 0.12,
        Scene.URBANIZATION: 0.08,
        Scene.DEFORESTATION: 0.10,
        Scene.GLACIER_MELTING: 0.10,
        Scene.DESICCATION: 0.10,
    }


def test_gating_polarity_table():
    assert SCENE_PARAMS[Scene.URBANIZATION].keep_inside
    assert SCENE_PARAMS[Scene.DEFORESTATION].keep_inside
    assert not SCENE_PARAMS[Scene.GLACIER_MELTING].keep_inside
    assert not SCENE_PARAMS[Scene.DESICCATION].keep_inside
    assert SCENE_PARAMS[Scene.GENERAL].mask_kind is MaskKind.NONE
    assert SCENE_PARAMS[Scene.DESICCATION].source is MaskSource.FIRST_PAIR


@pytest.mark.parametrize("tag", ["glacier melting", "glacier_melting", "Glacier-Melting", Scene.GLACIER_MELTING])
def test_parse_scene_variants(tag):
    assert parse_scene(tag) is Scene.GLACIER_MELTING


def test_parse_scene_unknown():
    with pytest.raises(ConfigError):
        parse_scene("flooding")


def test_s_above_h_squared_rejected():
    with pytest.raises(ConfigError):
        PipelineConfig(h=2, S=5).validate()
    PipelineConfig(h=2, S=4).validate()


@pytest.mark.parametrize("h,S", [(0, 1), (2, 0), (-1, 1)])
def test_non_positive_params(h, S):
    with pytest.raises(InputError):
        PipelineConfig(h=h, S=S).validate()


def test_noise_floor_override():
    cfg = PipelineConfig(noise_floors={"glacier_melting": 0.2})
    cfg.validate()
    assert cfg.noise_floor(Scene.GLACIER_MELTING) == 0.2
    assert cfg.noise_floor(Scene.GENERAL) == 0.12


def test_noise_floor_override_unknown_scene():
    with pytest.raises(ConfigError):
        PipelineConfig(noise_floors={"volcano": 0.2}).validate()


def test_load_config(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("pipeline:\n  h: 3\n  S: 5\n  border: 4\n  noise_floors:\n    urbanization: 0.05\n")
    cfg = load_config(path)
    assert (cfg.h, cfg.S, cfg.border) == (3, 5, 4)
    assert cfg.noise_floor(Scene.URBANIZATION) == 0.05
    assert cfg.kmeans_restarts == 2


def test_unknown_config_key():
    with pytest.raises(ConfigError):
        config_from_dict({"block": 4})
