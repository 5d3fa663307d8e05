import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np
from numba import njit

from depthgrain.compositor import composite
from depthgrain.config import GrainConfig
from depthgrain.engine import GrainEngine, sample_grain
from depthgrain.errors import BufferSizeError
from depthgrain.noise import BASE_SEED
from depthgrain.tonal import pixel_luma, weighted_grain_intensity

"""
Parallel pixel pipeline

Pre-blurs the luma base, then evaluates grain for every pixel across a pool
of worker threads. The numeric kernels release the GIL so the threads run
truly in parallel. Every output pixel depends only on its own input pixel,
the blurred base at the same position and the read-only config, so the
result does not depend on the number of workers or how rows are assigned.
"""

logger = logging.getLogger(__name__)

# Blur radii at or below this leave the base image untouched
MIN_BLUR_RADIUS = 0.5

# Rows per work item
BAND_HEIGHT = 16

@njit(nogil=True)
def render_band(
	layer_tables, chromatic_table, relief_tables,
	base, original, out,
	row_start, row_stop,
	size, intensity, crystal_sharpness, saturation, exposure_multiplier,
	shadow_grain, midtone_grain, highlight_grain, tonal_smoothness,
	depth, chromatic, relief
):
	"""
	Render rows [row_start, row_stop) of ``out``.

	Luma (and therefore tonal weighting and relief) comes from ``base``;
	the colour that receives the grain comes from ``original``.
	"""
	width = original.shape[1]
	for y in range(row_start, row_stop):
		for x in range(width):
			luma = pixel_luma(base[y, x, 0], base[y, x, 1], base[y, x, 2])

			grain_r, grain_g, grain_b = sample_grain(
				layer_tables, chromatic_table, relief_tables,
				float(x), float(y), luma,
				size, crystal_sharpness, depth, chromatic, relief
			)
			tonal_intensity = weighted_grain_intensity(
				luma, tonal_smoothness, shadow_grain, midtone_grain, highlight_grain
			)

			r, g, b = composite(
				original[y, x, 0], original[y, x, 1], original[y, x, 2],
				grain_r, grain_g, grain_b,
				tonal_intensity, intensity, exposure_multiplier, saturation
			)
			out[y, x, 0] = r
			out[y, x, 1] = g
			out[y, x, 2] = b

class WorkerContext:
	"""
	Per-worker state for one image pass.

	Each worker thread lazily builds exactly one engine from ``factory`` the
	first time it asks for it and reuses it for every band it processes.
	Engines are never handed between threads.
	"""

	def __init__(self, factory: Callable[[], GrainEngine]):
		self._factory = factory
		self._local = threading.local()
		self._lock = threading.Lock()
		self.engines_built = 0

	@property
	def engine(self) -> GrainEngine:
		engine = getattr(self._local, 'engine', None)
		if engine is None:
			engine = self._factory()
			self._local.engine = engine
			with self._lock:
				self.engines_built += 1
		return engine

def blur_base(image: np.ndarray, radius: float) -> np.ndarray:
	"""
	Luma base for sampling: a Gaussian blurred copy when ``radius`` is large
	enough to matter, otherwise the image itself.
	"""
	if radius > MIN_BLUR_RADIUS:
		# cv2 refuses read-only views such as arrays over immutable bytes
		source = image if image.flags.writeable else image.copy()
		return cv2.GaussianBlur(source, (0, 0), sigmaX=radius, sigmaY=radius)
	return image

def split_rows(height: int, band_height: int = BAND_HEIGHT) -> List[Tuple[int, int]]:
	return [(start, min(start + band_height, height)) for start in range(0, height, band_height)]

def resolve_workers(workers: Optional[int]) -> int:
	if workers is None:
		return os.cpu_count() or 1
	if workers < 1:
		raise ValueError(f"workers must be at least 1, got {workers}")
	return workers

class ParallelPixelPipeline:
	"""
	Applies grain to whole images using a pool of worker threads.

	Parameters
	----------
	config : GrainConfig, optional
		Grain parameters. Defaults to GrainConfig().

	workers : int, optional
		Number of worker threads. Defaults to the CPU count.
		The output is byte-identical for any value.

	seed : int, default=42
		Base noise seed shared by every worker's engine
	"""

	def __init__(self, config: Optional[GrainConfig] = None, workers: Optional[int] = None, seed: int = BASE_SEED):
		self.config = config if config is not None else GrainConfig()
		self.workers = resolve_workers(workers)
		self.seed = seed

	def make_engine(self) -> GrainEngine:
		return GrainEngine(self.config.layers, self.seed)

	def process(self, image: np.ndarray) -> np.ndarray:
		"""
		Apply grain to an (H, W, 3) uint8 array and return a new array.

		The input array is never modified.
		"""
		image = np.ascontiguousarray(image)
		if image.dtype != np.uint8 or image.ndim != 3 or image.shape[2] != 3:
			raise BufferSizeError(
				f"Expected an (H, W, 3) uint8 array, got shape {image.shape} dtype {image.dtype}"
			)
		height, width = image.shape[:2]
		config = self.config
		start = time.perf_counter()

		# Barrier: the base must be complete before any sampling starts
		blur_radius = config.blur_radius
		base = blur_base(image, blur_radius)
		if base is image:
			logger.debug("Blur radius %.3f <= %.1f, sampling luma from the original", blur_radius, MIN_BLUR_RADIUS)
		else:
			logger.debug("Pre-blurred luma base with sigma %.3f", blur_radius)

		output = np.empty_like(image)
		bands = split_rows(height)
		context = WorkerContext(self.make_engine)
		exposure_multiplier = config.exposure_multiplier

		def run_band(band: Tuple[int, int]) -> None:
			engine = context.engine
			render_band(
				engine.noise.layer_tables, engine.noise.chromatic_table, engine.noise.relief_tables,
				base, image, output,
				band[0], band[1],
				config.size, config.intensity, config.crystal_sharpness, config.saturation, exposure_multiplier,
				config.shadow_grain, config.midtone_grain, config.highlight_grain, config.tonal_smoothness,
				config.depth, config.chromatic, config.relief
			)

		n_workers = min(self.workers, max(len(bands), 1))
		logger.debug("Rendering %dx%d in %d bands on %d worker(s)", width, height, len(bands), n_workers)

		if n_workers == 1:
			for band in bands:
				run_band(band)
		else:
			with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix='depthgrain') as pool:
				# list() re-raises the first worker exception here
				list(pool.map(run_band, bands))

		logger.debug(
			"Grain pass done in %.2fs (%d engine(s) built)",
			time.perf_counter() - start, context.engines_built
		)
		return output

def apply_grain(pixels: np.ndarray, config: Optional[GrainConfig] = None, workers: Optional[int] = None) -> np.ndarray:
	"""
	Apply grain to an (H, W, 3) uint8 RGB array.

	Returns a new array of the same shape; ``pixels`` is left untouched.
	"""
	return ParallelPixelPipeline(config, workers).process(pixels)

def _as_byte_view(buffer, name: str) -> np.ndarray:
	"""Flat uint8 view of a bytes-like object or array, sharing its memory"""
	if isinstance(buffer, np.ndarray):
		if buffer.dtype != np.uint8:
			raise BufferSizeError(f"{name} buffer must hold uint8 values, got {buffer.dtype}")
		if not buffer.flags.c_contiguous:
			raise BufferSizeError(f"{name} array must be C-contiguous")
		return buffer.reshape(-1)
	return np.frombuffer(buffer, dtype=np.uint8)

def render(
	width: int,
	height: int,
	input_pixels,
	output_pixels,
	config: Optional[GrainConfig] = None,
	workers: Optional[int] = None
) -> None:
	"""
	Apply grain to a packed RGB byte buffer.

	Parameters
	----------
	width, height : int
		Image dimensions in pixels

	input_pixels : bytes-like or uint8 array
		Row-major RGB triples, exactly width * height * 3 bytes. Never modified.

	output_pixels : writable bytes-like or uint8 array
		Destination of the same length as ``input_pixels``. Every byte is
		overwritten on success; nothing is written if the call fails.

	config : GrainConfig, optional
		Grain parameters. Defaults to GrainConfig().

	workers : int, optional
		Number of worker threads. Defaults to the CPU count.

	Raises
	------
	BufferSizeError
		If the dimensions are invalid or a buffer length does not match them.
	"""
	for name, value in (('width', width), ('height', height)):
		if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
			raise BufferSizeError(f"{name} must be a positive integer, got {value!r}")

	source = _as_byte_view(input_pixels, 'Input')
	expected = width * height * 3
	if source.size != expected:
		raise BufferSizeError(
			f"Input buffer holds {source.size} bytes but {width}x{height} RGB needs {expected}"
		)

	destination = _as_byte_view(output_pixels, 'Output')
	if destination.size != source.size:
		raise BufferSizeError(
			f"Output buffer holds {destination.size} bytes but input holds {source.size}"
		)
	if not destination.flags.writeable:
		raise BufferSizeError("Output buffer is read-only")

	result = apply_grain(source.reshape(height, width, 3), config, workers)
	destination[:] = result.reshape(-1)
