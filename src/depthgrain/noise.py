import numpy as np
from numba import njit

from depthgrain.errors import InvalidConfigError

"""
Coherent noise sources for grain synthesis

Permutation-table gradient noise (Perlin and 2D simplex) plus fractal
Brownian motion built on top of them. Every generator is a pure function of
its coordinates and a read-only permutation table, so the same seed always
gives the same field no matter which thread samples it.
"""

BASE_SEED = 42

# Seed offsets of the auxiliary generators relative to the base seed
CHROMATIC_SEED_OFFSET = 100
RELIEF_SEED_OFFSET = 200

LAYER_OCTAVES = 3
LAYER_FREQUENCY = 1.0
LAYER_PERSISTENCE = 0.5

RELIEF_OCTAVES = 2
RELIEF_FREQUENCY = 0.5
RELIEF_PERSISTENCE = 0.5

LACUNARITY = 2.0

PERMUTATION_SIZE = 256

# Eight gradient directions shared by both noise kinds
GRADIENTS = np.array([
	[1.0, 1.0], [-1.0, 1.0], [1.0, -1.0], [-1.0, -1.0],
	[1.0, 0.0], [-1.0, 0.0], [0.0, 1.0], [0.0, -1.0],
], dtype=np.float64)

# Skew factors for the 2D simplex grid
F2 = 0.5 * (np.sqrt(3.0) - 1.0)
G2 = (3.0 - np.sqrt(3.0)) / 6.0
SIMPLEX_SCALE = 70.0

def permutation_table(seed: int) -> np.ndarray:
	"""
	Seeded permutation of 0..255, doubled to 512 entries to avoid index wrapping.

	Uses the legacy RandomState stream, which numpy keeps stable across releases.
	"""
	perm = np.random.RandomState(seed).permutation(PERMUTATION_SIZE).astype(np.int64)
	return np.concatenate([perm, perm])

def octave_tables(seed: int, octaves: int) -> np.ndarray:
	"""Stack of permutation tables for an fBm; octave k is seeded seed + k"""
	return np.stack([permutation_table(seed + k) for k in range(octaves)])

@njit(nogil=True)
def _fade(t):
	return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)

@njit(nogil=True)
def _gradient_dot(perm, ix, iy, dx, dy):
	g = perm[perm[ix & 255] + (iy & 255)] & 7
	return GRADIENTS[g, 0] * dx + GRADIENTS[g, 1] * dy

@njit(nogil=True)
def perlin2(perm, x, y):
	"""Classic 2D gradient noise, roughly in [-1, 1], zero on integer lattice points"""
	x0 = np.floor(x)
	y0 = np.floor(y)
	ix = int(x0)
	iy = int(y0)
	dx = x - x0
	dy = y - y0

	n00 = _gradient_dot(perm, ix, iy, dx, dy)
	n10 = _gradient_dot(perm, ix + 1, iy, dx - 1.0, dy)
	n01 = _gradient_dot(perm, ix, iy + 1, dx, dy - 1.0)
	n11 = _gradient_dot(perm, ix + 1, iy + 1, dx - 1.0, dy - 1.0)

	u = _fade(dx)
	v = _fade(dy)
	nx0 = n00 + u * (n10 - n00)
	nx1 = n01 + u * (n11 - n01)
	return nx0 + v * (nx1 - nx0)

@njit(nogil=True)
def _simplex_corner(perm, ix, iy, dx, dy):
	t = 0.5 - dx * dx - dy * dy
	if t <= 0.0:
		return 0.0
	t *= t
	return t * t * _gradient_dot(perm, ix, iy, dx, dy)

@njit(nogil=True)
def simplex2(perm, x, y):
	"""2D simplex noise, roughly in [-1, 1]"""
	skew = (x + y) * F2
	i = np.floor(x + skew)
	j = np.floor(y + skew)
	unskew = (i + j) * G2
	x0 = x - (i - unskew)
	y0 = y - (j - unskew)

	# Which of the two triangles of the skewed cell we are in
	if x0 > y0:
		i1 = 1
		j1 = 0
	else:
		i1 = 0
		j1 = 1

	x1 = x0 - i1 + G2
	y1 = y0 - j1 + G2
	x2 = x0 - 1.0 + 2.0 * G2
	y2 = y0 - 1.0 + 2.0 * G2

	ii = int(i)
	jj = int(j)
	n0 = _simplex_corner(perm, ii, jj, x0, y0)
	n1 = _simplex_corner(perm, ii + i1, jj + j1, x1, y1)
	n2 = _simplex_corner(perm, ii + 1, jj + 1, x2, y2)
	return SIMPLEX_SCALE * (n0 + n1 + n2)

@njit(nogil=True)
def fbm_simplex(tables, frequency, persistence, x, y):
	"""Fractal simplex noise, one octave per table, normalised by total amplitude"""
	total = 0.0
	amplitude = 1.0
	amplitude_sum = 0.0
	freq = frequency
	for octave in range(tables.shape[0]):
		total += simplex2(tables[octave], x * freq, y * freq) * amplitude
		amplitude_sum += amplitude
		amplitude *= persistence
		freq *= LACUNARITY
	return total / amplitude_sum

@njit(nogil=True)
def fbm_perlin(tables, frequency, persistence, x, y):
	"""Fractal Perlin noise, one octave per table, normalised by total amplitude"""
	total = 0.0
	amplitude = 1.0
	amplitude_sum = 0.0
	freq = frequency
	for octave in range(tables.shape[0]):
		total += perlin2(tables[octave], x * freq, y * freq) * amplitude
		amplitude_sum += amplitude
		amplitude *= persistence
		freq *= LACUNARITY
	return total / amplitude_sum

class NoiseField:
	"""
	The full set of seeded generators used by one grain engine.

	- ``layers`` simplex fBm generators (3 octaves, frequency 1.0, persistence 0.5),
	  layer i seeded ``seed + i``
	- one Perlin generator for chromatic offsets, seeded ``seed + 100``
	- one Perlin fBm for relief (2 octaves, frequency 0.5), seeded ``seed + 200``

	The tables are built once and never written afterwards.
	"""

	def __init__(self, layers: int, seed: int = BASE_SEED):
		if layers < 1:
			raise InvalidConfigError(f"layers must be at least 1, got {layers}")
		self.seed = seed
		self.layer_tables = np.stack([
			octave_tables(seed + layer, LAYER_OCTAVES) for layer in range(layers)
		])
		self.chromatic_table = permutation_table(seed + CHROMATIC_SEED_OFFSET)
		self.relief_tables = octave_tables(seed + RELIEF_SEED_OFFSET, RELIEF_OCTAVES)

		for table in (self.layer_tables, self.chromatic_table, self.relief_tables):
			table.setflags(write=False)

	@property
	def layers(self) -> int:
		return self.layer_tables.shape[0]

	def layer(self, index: int, x: float, y: float) -> float:
		return fbm_simplex(self.layer_tables[index], LAYER_FREQUENCY, LAYER_PERSISTENCE, float(x), float(y))

	def chromatic(self, x: float, y: float) -> float:
		return perlin2(self.chromatic_table, float(x), float(y))

	def relief(self, x: float, y: float) -> float:
		return fbm_perlin(self.relief_tables, RELIEF_FREQUENCY, RELIEF_PERSISTENCE, float(x), float(y))
