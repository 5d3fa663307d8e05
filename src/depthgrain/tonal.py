import numpy as np
from numba import njit

"""
Tonal weighting - how much grain each tonal zone receives

Real film shows its grain differently in shadows, midtones and highlights.
Each zone has a Gaussian response around a fixed anchor; a pixel's luma picks
a normalised mix of the three zone strengths.
"""

SHADOW_CENTER = 0.15
MIDTONE_CENTER = 0.5
HIGHLIGHT_CENTER = 0.85

# Rec.709 luma weights
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

@njit(nogil=True)
def pixel_luma(r, g, b):
	"""Rec.709 luma of an 8-bit RGB pixel, normalised to [0, 1]"""
	return (LUMA_R * r + LUMA_G * g + LUMA_B * b) / 255.0

@njit(nogil=True)
def tonal_weights(luma, smoothness):
	"""
	Normalised (shadow, midtone, highlight) weights for a luma value.

	Falls back to pure midtone (0, 1, 0) when all three responses underflow.
	"""
	denominator = 2.0 * smoothness * smoothness
	if not denominator > 0.0:
		return 0.0, 1.0, 0.0

	shadow = np.exp(-(luma - SHADOW_CENTER) ** 2 / denominator)
	midtone = np.exp(-(luma - MIDTONE_CENTER) ** 2 / denominator)
	highlight = np.exp(-(luma - HIGHLIGHT_CENTER) ** 2 / denominator)

	total = shadow + midtone + highlight
	if total > 0.0:
		return shadow / total, midtone / total, highlight / total
	return 0.0, 1.0, 0.0

@njit(nogil=True)
def weighted_grain_intensity(luma, smoothness, shadow_grain, midtone_grain, highlight_grain):
	shadow_w, midtone_w, highlight_w = tonal_weights(luma, smoothness)
	return shadow_w * shadow_grain + midtone_w * midtone_grain + highlight_w * highlight_grain

def tonal_grain_intensity(luma: float, config) -> float:
	"""Grain strength multiplier for a pixel of the given luma under ``config``"""
	return weighted_grain_intensity(
		float(luma),
		config.tonal_smoothness,
		config.shadow_grain,
		config.midtone_grain,
		config.highlight_grain
	)
