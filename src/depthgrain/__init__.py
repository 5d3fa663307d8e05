import logging

from .config import PRESET_NAMES, GrainConfig
from .engine import GrainEngine
from .errors import BufferSizeError, GrainError, InvalidConfigError
from .noise import BASE_SEED, NoiseField
from .pipeline import ParallelPixelPipeline, apply_grain, render
from .renderer import GrainRenderer, image_to_rgb_bytes, render_grain, rgb_bytes_to_image
from .tonal import tonal_grain_intensity, tonal_weights

"""
DepthGrain - Depth-Layered Procedural Film Grain

Synthesises film grain from several layers of seeded coherent noise, with
tone-dependent strength, simulated chromatic aberration and pseudo-3D
surface relief, and soft-light composites it onto RGB images.
"""

__version__ = "0.1.0"

__all__ = [
	"BASE_SEED",
	"PRESET_NAMES",
	"BufferSizeError",
	"GrainConfig",
	"GrainEngine",
	"GrainError",
	"GrainRenderer",
	"InvalidConfigError",
	"NoiseField",
	"ParallelPixelPipeline",
	"apply_grain",
	"image_to_rgb_bytes",
	"render",
	"render_grain",
	"rgb_bytes_to_image",
	"tonal_grain_intensity",
	"tonal_weights",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
