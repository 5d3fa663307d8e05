"""
Renderer facade: PIL and numpy adapters, previews and logging setup
"""
import logging

import numpy as np
import pytest
from PIL import Image
from rich.logging import RichHandler

from depthgrain import GrainConfig, GrainRenderer, image_to_rgb_bytes, render, render_grain, rgb_bytes_to_image
from depthgrain.logging_config import setup_logging
from depthgrain.renderer import make_proxy, to_rgb_array


def create_test_image(width=32, height=24):
    x = np.linspace(0, 255, width)
    y = np.linspace(0, 255, height)
    X, Y = np.meshgrid(x, y)
    img = np.stack([X, Y, 255 - X], axis=2).astype(np.uint8)
    return Image.fromarray(img)


def test_render_returns_rgb_image_of_same_size():
    img = create_test_image().convert('RGBA')
    out = GrainRenderer(size=4.0, workers=1).render(img)
    assert out.mode == 'RGB'
    assert out.size == img.size


def test_facade_matches_byte_api():
    img = create_test_image()
    config = GrainConfig(size=5.0, chromatic=1.0)
    width, height, pixels = image_to_rgb_bytes(img)
    output = bytearray(len(pixels))
    render(width, height, pixels, output, config, workers=2)

    expected = rgb_bytes_to_image(output, width, height)
    actual = GrainRenderer(config, workers=1).render(img)
    assert np.array_equal(np.asarray(actual), np.asarray(expected))


def test_render_grain_applies_overrides():
    img = create_test_image()
    direct = GrainRenderer(GrainConfig(intensity=0.4, size=3.0), workers=1).render(img)
    quick = render_grain(img, intensity=0.4, size=3.0, workers=1)
    assert np.array_equal(np.asarray(direct), np.asarray(quick))


def test_greyscale_and_float_arrays():
    grey = np.linspace(0, 255, 20 * 10).reshape(10, 20).astype(np.uint8)
    assert to_rgb_array(grey).shape == (10, 20, 3)

    floats = np.random.RandomState(0).rand(10, 20, 3)
    converted = to_rgb_array(floats)
    assert converted.dtype == np.uint8
    assert np.array_equal(converted, (floats * 255.0).astype(np.uint8))

    rgba = np.zeros((4, 5, 4), dtype=np.uint8)
    assert to_rgb_array(rgba).shape == (4, 5, 3)

    out = GrainRenderer(workers=1).render(grey)
    assert out.size == (20, 10)


def test_float_arrays_above_one_warn():
    with pytest.warns(UserWarning):
        to_rgb_array(np.full((2, 2, 3), 200.0))


def test_unsupported_arrays_are_rejected():
    with pytest.raises(ValueError):
        to_rgb_array(np.zeros((4, 4, 2), dtype=np.uint8))
    with pytest.raises(ValueError):
        to_rgb_array(np.zeros((4, 4, 3), dtype=np.int32))


def test_preview_is_downscaled():
    img = create_test_image(300, 100)
    preview = GrainRenderer(size=2.0, workers=2).render_preview(img, max_width=120)
    assert preview.size == (120, 40)

    small = create_test_image(50, 30)
    assert make_proxy(small, 120) is small


def test_preview_rejects_bad_width():
    with pytest.raises(ValueError):
        GrainRenderer().render_preview(create_test_image(), max_width=0)


def test_rgb_bytes_length_is_checked():
    with pytest.raises(ValueError):
        rgb_bytes_to_image(bytes(10), 2, 2)


def test_setup_logging_is_idempotent(tmp_path):
    log_file = tmp_path / 'grain.log'
    logger = setup_logging(logging.DEBUG, log_file=str(log_file))
    file_handler = next(h for h in logger.handlers if isinstance(h, logging.FileHandler))
    setup_logging(logging.DEBUG)
    # The replaced file handler must release its file
    assert file_handler not in logger.handlers
    assert file_handler.stream is None or file_handler.stream.closed
    rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert logger.level == logging.DEBUG

    GrainRenderer(size=1.0, workers=1).render(create_test_image(8, 8))
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()
