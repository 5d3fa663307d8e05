import logging
import warnings
from typing import Optional, Tuple, Union

import numpy
from PIL import Image

from depthgrain.config import GrainConfig
from depthgrain.pipeline import ParallelPixelPipeline

"""
Depth Grain Renderer - Public API

Facade over the pixel pipeline that works with in-memory PIL images and
numpy arrays. Reading and writing image files is left to the caller.
"""

logger = logging.getLogger(__name__)

DEFAULT_PROXY_WIDTH = 1200

ImageLike = Union[Image.Image, numpy.ndarray]

class GrainRenderer:
	"""
	User-friendly interface for depth-layered film grain.

	Grain is synthesised from several layers of seeded fractal noise, shaped
	per tonal zone, offset per colour channel and soft-light blended onto the
	image. Rendering is deterministic: the same image and parameters always
	give the same bytes.

	Parameters
	----------
	config : GrainConfig, optional
		Full parameter set. Defaults to GrainConfig().

	workers : int, optional
		Number of worker threads. Defaults to the CPU count.

	**params
		Individual grain parameters overriding ``config``
		(e.g. size=12.0, intensity=0.5, sharpness=6.0)

	Examples
	--------
	>>> from PIL import Image
	>>> renderer = GrainRenderer(size=12.0, intensity=0.6)
	>>> img = Image.open("input.png")
	>>> output = renderer.render(img)
	>>> output.save("output.png")

	>>> # Simpler single-layer look
	>>> renderer = GrainRenderer(GrainConfig.preset('classic'))
	>>> preview = renderer.render_preview(img, max_width=800)
	"""

	def __init__(self, config: Optional[GrainConfig] = None, workers: Optional[int] = None, **params):
		config = config if config is not None else GrainConfig()
		if params:
			config = config.replace(**params)
		self.config = config
		self.workers = workers
		self._pipeline = ParallelPixelPipeline(config, workers)

	def render(self, image: ImageLike) -> Image.Image:
		"""
		Apply grain to an image.

		Parameters
		----------
		image : PIL.Image or np.ndarray
			Input image. Any PIL mode is converted to RGB. Arrays may be
			greyscale (H, W), RGB (H, W, 3) or RGBA (H, W, 4, alpha dropped),
			either uint8 or float in [0, 1].

		Returns
		-------
		PIL.Image
			RGB image with grain applied, same size as the input
		"""
		pixels = to_rgb_array(image)
		return Image.fromarray(self.render_array(pixels))

	def render_array(self, pixels: numpy.ndarray) -> numpy.ndarray:
		"""Apply grain to an (H, W, 3) uint8 array, returning a new array"""
		return self._pipeline.process(pixels)

	def render_preview(self, image: ImageLike, max_width: int = DEFAULT_PROXY_WIDTH) -> Image.Image:
		"""
		Render a downscaled proxy of ``image`` for fast previews.

		Images wider than ``max_width`` are resized to that width with the
		aspect ratio kept; narrower images are rendered at full size.
		"""
		if max_width < 1:
			raise ValueError(f"max_width must be positive, got {max_width}")
		proxy = make_proxy(to_pil_rgb(image), max_width)
		return self.render(proxy)

def to_rgb_array(image: ImageLike) -> numpy.ndarray:
	"""Convert a PIL image or array to a contiguous (H, W, 3) uint8 array"""
	if isinstance(image, Image.Image):
		if image.mode != 'RGB':
			image = image.convert('RGB')
		return numpy.asarray(image, dtype=numpy.uint8).copy()

	array = numpy.asarray(image)
	if array.dtype != numpy.uint8:
		if not numpy.issubdtype(array.dtype, numpy.floating):
			raise ValueError(f"Unsupported array dtype: {array.dtype}")
		if array.size and array.max() > 1.0:
			warnings.warn("Image values > 1.0 detected, treating as 0-255")
			array = array / 255.0
		array = numpy.clip(array * 255.0, 0, 255).astype(numpy.uint8)

	if array.ndim == 2:
		array = numpy.stack([array] * 3, axis=2)
	elif array.ndim == 3 and array.shape[2] == 4:
		array = array[:, :, :3]
	elif array.ndim != 3 or array.shape[2] != 3:
		raise ValueError(f"Unsupported image shape: {array.shape}")

	return numpy.ascontiguousarray(array)

def to_pil_rgb(image: ImageLike) -> Image.Image:
	if isinstance(image, Image.Image):
		return image if image.mode == 'RGB' else image.convert('RGB')
	return Image.fromarray(to_rgb_array(image))

def make_proxy(image: Image.Image, max_width: int = DEFAULT_PROXY_WIDTH) -> Image.Image:
	"""Downscale to at most ``max_width`` pixels wide, keeping the aspect ratio"""
	width, height = image.size
	if width <= max_width:
		return image
	scale = max_width / width
	proxy_size = (max_width, max(1, round(height * scale)))
	logger.debug("Proxy %dx%d -> %dx%d", width, height, proxy_size[0], proxy_size[1])
	return image.resize(proxy_size, Image.Resampling.BILINEAR)

def image_to_rgb_bytes(image: ImageLike) -> Tuple[int, int, bytes]:
	"""
	Pack an image into row-major RGB bytes.

	Returns:
		(width, height, pixels) ready for depthgrain.render()
	"""
	pixels = to_rgb_array(image)
	height, width = pixels.shape[:2]
	return width, height, pixels.tobytes()

def rgb_bytes_to_image(pixels, width: int, height: int) -> Image.Image:
	"""Unpack row-major RGB bytes into a PIL image"""
	expected = width * height * 3
	if len(pixels) != expected:
		raise ValueError(f"Expected {expected} bytes for {width}x{height} RGB, got {len(pixels)}")
	return Image.frombytes('RGB', (width, height), bytes(pixels))

def render_grain(image: ImageLike, config: Optional[GrainConfig] = None, **params) -> Image.Image:
	"""
	Quick function to apply grain with default settings.

	This is a convenience wrapper around GrainRenderer for one-off usage.

	Parameters
	----------
	image : PIL.Image or np.ndarray
		Input image
	config : GrainConfig, optional
		Base parameter set
	**params
		Grain parameter overrides, plus ``workers``

	Returns
	-------
	PIL.Image
		Image with grain applied

	Examples
	--------
	>>> output = render_grain(img, size=8.0, chromatic=0.0)
	"""
	workers = params.pop('workers', None)
	return GrainRenderer(config, workers=workers, **params).render(image)
