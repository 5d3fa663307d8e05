import numpy as np
from numba import njit

from depthgrain.tonal import LUMA_B, LUMA_G, LUMA_R

"""
Compositing of the grain signal onto the original colour
"""

@njit(nogil=True)
def soft_light(c, g):
	"""
	Soft-light blend of base value ``c`` with blend value ``g`` (both in [0, 1]).

	g = 0.5 is a fixed point: soft_light(c, 0.5) == c.
	"""
	if g < 0.5:
		return c - (1.0 - 2.0 * g) * c * (1.0 - c)
	if c <= 0.25:
		dodge = ((16.0 * c - 12.0) * c + 4.0) * c
	else:
		dodge = np.sqrt(c)
	return c + (2.0 * g - 1.0) * (dodge - c)

@njit(nogil=True)
def _clamp01(value):
	if value < 0.0:
		return 0.0
	if value > 1.0:
		return 1.0
	return value

@njit(nogil=True)
def _to_byte(value):
	# Truncates rather than rounds; output stays byte-compatible with earlier renders
	return int(value * 255.0)

@njit(nogil=True)
def composite(
	r, g, b,
	grain_r, grain_g, grain_b,
	tonal_intensity, intensity, exposure_multiplier, saturation
):
	"""
	Blend grain into an 8-bit RGB pixel, then apply exposure and saturation.

	Returns the new pixel as three ints in [0, 255].
	"""
	effective = intensity * tonal_intensity

	red = _clamp01(soft_light(r / 255.0, 0.5 + grain_r * effective) * exposure_multiplier)
	green = _clamp01(soft_light(g / 255.0, 0.5 + grain_g * effective) * exposure_multiplier)
	blue = _clamp01(soft_light(b / 255.0, 0.5 + grain_b * effective) * exposure_multiplier)

	luma = LUMA_R * red + LUMA_G * green + LUMA_B * blue
	red = _clamp01(luma + saturation * (red - luma))
	green = _clamp01(luma + saturation * (green - luma))
	blue = _clamp01(luma + saturation * (blue - luma))

	return _to_byte(red), _to_byte(green), _to_byte(blue)

def composite_pixel(rgb, grain, tonal_intensity: float, config) -> tuple:
	"""Composite one pixel using the exposure, saturation and intensity of ``config``"""
	r, g, b = (int(channel) for channel in rgb)
	grain_r, grain_g, grain_b = (float(channel) for channel in grain)
	return composite(
		r, g, b,
		grain_r, grain_g, grain_b,
		float(tonal_intensity), config.intensity, config.exposure_multiplier, config.saturation
	)
