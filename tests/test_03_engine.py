"""
Grain engine: per-pixel depth-layered grain sampling
"""
import numpy as np

from depthgrain.config import GrainConfig
from depthgrain.engine import ROTATION_COS, ROTATION_SIN, SIZE_SCALE, GrainEngine, _crystal


def sample_many(engine, config, n=12, luma=0.5):
    return np.array([
        engine.sample(x * 3.7, y * 2.3, luma, config)
        for y in range(n) for x in range(n)
    ])


def test_sample_is_deterministic_across_engines():
    config = GrainConfig()
    a = sample_many(GrainEngine(config.layers), config)
    b = sample_many(GrainEngine(config.layers), config)
    assert np.array_equal(a, b)


def test_sample_stays_within_half_range():
    config = GrainConfig(crystal_sharpness=50.0)
    grain = sample_many(GrainEngine(config.layers), config)
    assert grain.shape == (144, 3)
    assert np.all(grain > -0.5)
    assert np.all(grain < 0.5)
    assert grain.std() > 0.01


def test_single_layer_is_well_defined():
    config = GrainConfig(layers=1)
    grain = sample_many(GrainEngine(1), config)
    assert np.all(np.isfinite(grain))
    assert np.abs(grain).max() > 0.0


def test_without_chromatic_offset_channels_match():
    config = GrainConfig(chromatic=0.0)
    grain = sample_many(GrainEngine(config.layers), config)
    assert np.array_equal(grain[:, 0], grain[:, 1])
    assert np.array_equal(grain[:, 1], grain[:, 2])


def test_chromatic_offset_separates_channels():
    config = GrainConfig(chromatic=8.0)
    grain = sample_many(GrainEngine(config.layers), config)
    assert not np.array_equal(grain[:, 0], grain[:, 1])
    assert not np.array_equal(grain[:, 0], grain[:, 2])


def test_relief_depends_on_luma():
    config = GrainConfig(relief=5.0, chromatic=0.0)
    engine = GrainEngine(config.layers)
    dark = sample_many(engine, config, luma=0.0)
    bright = sample_many(engine, config, luma=1.0)
    assert not np.array_equal(dark, bright)

    flat = GrainConfig(relief=0.0, chromatic=0.0)
    assert np.array_equal(sample_many(engine, flat, luma=0.0), sample_many(engine, flat, luma=1.0))


def test_zero_sharpness_gives_no_grain():
    config = GrainConfig(crystal_sharpness=0.0)
    grain = sample_many(GrainEngine(config.layers), config)
    assert np.all(grain == 0.0)


def test_single_layer_matches_one_crystal():
    # One layer, no chromatic or relief offset: every channel is the
    # centred sigmoid of the rotated, size-scaled sample point
    config = GrainConfig(layers=1, chromatic=0.0, relief=0.0, size=4.0)
    engine = GrainEngine(1)
    x, y = 13.0, 7.0
    sample_x = (x * ROTATION_COS - y * ROTATION_SIN) / (config.size * SIZE_SCALE)
    sample_y = (x * ROTATION_SIN + y * ROTATION_COS) / (config.size * SIZE_SCALE)
    expected = _crystal(engine.noise.layer_tables[0], sample_x, sample_y, config.crystal_sharpness) - 0.5

    grain = engine.sample(x, y, 0.5, config)
    assert isinstance(grain, tuple)
    assert all(isinstance(channel, float) for channel in grain)
    assert np.allclose(grain, expected)
