import numpy as np
from numba import njit

from depthgrain.noise import (
	BASE_SEED,
	LAYER_FREQUENCY,
	LAYER_PERSISTENCE,
	RELIEF_FREQUENCY,
	RELIEF_PERSISTENCE,
	NoiseField,
	fbm_perlin,
	fbm_simplex,
	perlin2,
)

"""
Grain engine - per-pixel depth-layered grain signal

For each pixel the engine displaces the sampling point by a brightness
dependent relief, shifts each colour channel by its own chromatic offset,
rotates the grid to break up axis-aligned artefacts, and accumulates
sigmoid-shaped fractal noise over several depth layers.
"""

RELIEF_SAMPLE_SCALE = 0.3
RELIEF_LUMA_GAIN = 5.0
CHROMATIC_SAMPLE_SCALE = 0.1

# Per-channel (x shift, y shift) into the chromatic field and offset strength
CHROMATIC_SHIFTS = np.array([[0.0, 100.0], [50.0, 150.0], [25.0, 175.0]], dtype=np.float64)
CHROMATIC_SCALES = np.array([1.0, 0.3, 0.7], dtype=np.float64)

# 30 degree rotation of the sampling grid
ROTATION_COS = 0.866
ROTATION_SIN = 0.5

CLUMP_WEIGHT = 0.7
GRIT_WEIGHT = 0.3
GRIT_FREQUENCY = 3.0
SIZE_SCALE = 2.5

@njit(nogil=True)
def _chromatic_offset(chromatic_table, chroma_x, chroma_y, channel, chromatic):
	strength = chromatic * CHROMATIC_SCALES[channel]
	offset_x = perlin2(chromatic_table, chroma_x + CHROMATIC_SHIFTS[channel, 0], chroma_y) * strength
	offset_y = perlin2(chromatic_table, chroma_x + CHROMATIC_SHIFTS[channel, 1], chroma_y) * strength
	return offset_x, offset_y

@njit(nogil=True)
def _crystal(tables, sample_x, sample_y, layer_sharpness):
	clump = fbm_simplex(tables, LAYER_FREQUENCY, LAYER_PERSISTENCE, sample_x, sample_y)
	grit = fbm_simplex(
		tables, LAYER_FREQUENCY, LAYER_PERSISTENCE,
		sample_x * GRIT_FREQUENCY, sample_y * GRIT_FREQUENCY
	)
	combined = clump * CLUMP_WEIGHT + grit * GRIT_WEIGHT
	return 1.0 / (1.0 + np.exp(-combined * layer_sharpness))

@njit(nogil=True)
def sample_grain(
	layer_tables, chromatic_table, relief_tables,
	x, y, luma,
	size, crystal_sharpness, depth, chromatic, relief
):
	"""
	Grain signal for one pixel as (red, green, blue), each roughly in [-0.5, 0.5].
	"""
	relief_offset = fbm_perlin(
		relief_tables, RELIEF_FREQUENCY, RELIEF_PERSISTENCE,
		x * RELIEF_SAMPLE_SCALE, y * RELIEF_SAMPLE_SCALE
	) * relief
	surface_x = x + relief_offset * luma * RELIEF_LUMA_GAIN
	surface_y = y + relief_offset * luma * RELIEF_LUMA_GAIN

	chroma_x = surface_x * CHROMATIC_SAMPLE_SCALE
	chroma_y = surface_y * CHROMATIC_SAMPLE_SCALE
	red_x, red_y = _chromatic_offset(chromatic_table, chroma_x, chroma_y, 0, chromatic)
	green_x, green_y = _chromatic_offset(chromatic_table, chroma_x, chroma_y, 1, chromatic)
	blue_x, blue_y = _chromatic_offset(chromatic_table, chroma_x, chroma_y, 2, chromatic)

	rot_x = surface_x * ROTATION_COS - surface_y * ROTATION_SIN
	rot_y = surface_x * ROTATION_SIN + surface_y * ROTATION_COS

	red = 0.0
	green = 0.0
	blue = 0.0
	n_layers = max(layer_tables.shape[0], 1)
	scale_divisor = size * SIZE_SCALE

	for layer in range(layer_tables.shape[0]):
		tables = layer_tables[layer]
		depth_factor = (layer + 1.0) / n_layers
		# Nearer (earlier) layers are sampled at a larger scale
		depth_scale = 1.0 + (1.0 - depth_factor) * depth * 2.0
		layer_intensity = 0.5 + 0.5 * depth_factor
		layer_sharpness = crystal_sharpness * (0.7 + 0.3 * depth_factor)

		red += (_crystal(
			tables,
			(rot_x + red_x) * depth_scale / scale_divisor,
			(rot_y + red_y) * depth_scale / scale_divisor,
			layer_sharpness
		) - 0.5) * layer_intensity
		green += (_crystal(
			tables,
			(rot_x + green_x) * depth_scale / scale_divisor,
			(rot_y + green_y) * depth_scale / scale_divisor,
			layer_sharpness
		) - 0.5) * layer_intensity
		blue += (_crystal(
			tables,
			(rot_x + blue_x) * depth_scale / scale_divisor,
			(rot_y + blue_y) * depth_scale / scale_divisor,
			layer_sharpness
		) - 0.5) * layer_intensity

	return red / n_layers, green / n_layers, blue / n_layers

class GrainEngine:
	"""
	Owns one noise field and samples grain from it.

	An engine is read-only once built, but each worker constructs its own
	so nothing is shared between threads during a render.

	Parameters
	----------
	layers : int
		Number of depth layers (one fractal generator each)

	seed : int, default=42
		Base seed of the noise field
	"""

	def __init__(self, layers: int, seed: int = BASE_SEED):
		self.noise = NoiseField(layers, seed)

	@property
	def layers(self) -> int:
		return self.noise.layers

	def sample(self, x: float, y: float, luma: float, config) -> tuple:
		"""
		Grain signal for pixel (x, y) with brightness ``luma`` in [0, 1].

		Returns
		-------
		tuple of float
			(grain_r, grain_g, grain_b), each approximately in [-0.5, 0.5]
		"""
		return sample_grain(
			self.noise.layer_tables, self.noise.chromatic_table, self.noise.relief_tables,
			float(x), float(y), float(luma),
			config.size, config.crystal_sharpness, config.depth, config.chromatic, config.relief
		)
