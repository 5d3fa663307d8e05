import dataclasses
import math
import numbers
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from depthgrain.errors import InvalidConfigError

"""
Grain parameters

A single immutable parameter set drives every stage of the renderer. The
simpler historical grain looks are expressed as presets of the same model
with some knobs zeroed instead of separate code paths.
"""

# Caller-facing names that differ from the field names
_ALIASES = {
	'sharpness': 'crystal_sharpness',
}

@dataclass(frozen=True)
class GrainConfig:
	"""
	Validated grain parameters for one render.

	Parameters
	----------
	size : float, default=25.0
		Grain feature scale in pixels. Must be positive.
		Also sets the pre-blur radius (size * 0.3).

	intensity : float, default=0.8
		Global grain strength. 0.0 leaves the image untouched.

	crystal_sharpness : float, default=8.0
		Contrast applied to the noise before the sigmoid.
		Higher = harder, more binary grain edges.

	saturation : float, default=1.0
		Colour saturation of the result. 0.0 = greyscale, 1.0 = unchanged.

	exposure : float, default=0.0
		Exposure adjustment in stops (applied as 2 ** exposure).

	shadow_grain, midtone_grain, highlight_grain : float
		Grain strength multipliers for each tonal zone.
		Defaults 1.2 / 1.0 / 0.6 (film shows more grain in the shadows).

	tonal_smoothness : float, default=0.15
		Width of the Gaussian used to blend the tonal zones. Must be positive.

	depth : float, default=0.4
		Spread between the scale of near and far grain layers.

	chromatic : float, default=2.0
		Magnitude of the per-channel sampling offset (colour fringing).

	relief : float, default=0.3
		Magnitude of the brightness-dependent surface displacement.

	layers : int, default=3
		Number of depth layers. Must be at least 1.

	Examples
	--------
	>>> config = GrainConfig(size=12.0, intensity=0.5)
	>>> softer = config.replace(crystal_sharpness=4.0)
	>>> classic = GrainConfig.preset('classic', intensity=0.6)
	"""

	size: float = 25.0
	intensity: float = 0.8
	crystal_sharpness: float = 8.0
	saturation: float = 1.0
	exposure: float = 0.0
	shadow_grain: float = 1.2
	midtone_grain: float = 1.0
	highlight_grain: float = 0.6
	tonal_smoothness: float = 0.15
	depth: float = 0.4
	chromatic: float = 2.0
	relief: float = 0.3
	layers: int = 3

	def __post_init__(self):
		for field in dataclasses.fields(self):
			if field.name == 'layers':
				continue
			value = getattr(self, field.name)
			if isinstance(value, bool) or not isinstance(value, numbers.Real):
				raise InvalidConfigError(f"{field.name} must be a number, got {value!r}")
			if not math.isfinite(value):
				raise InvalidConfigError(f"{field.name} must be finite, got {value}")
			# Normalise ints so the numeric kernels always see floats
			object.__setattr__(self, field.name, float(value))

		if isinstance(self.layers, bool) or not isinstance(self.layers, numbers.Integral):
			raise InvalidConfigError(f"layers must be an integer, got {self.layers!r}")
		object.__setattr__(self, 'layers', int(self.layers))
		if self.layers < 1:
			raise InvalidConfigError(f"layers must be at least 1, got {self.layers}")
		if self.size <= 0:
			raise InvalidConfigError(f"size must be positive, got {self.size}")
		if self.tonal_smoothness <= 0:
			raise InvalidConfigError(f"tonal_smoothness must be positive, got {self.tonal_smoothness}")

	@property
	def exposure_multiplier(self) -> float:
		"""Linear multiplier for the exposure setting"""
		return 2.0 ** self.exposure

	@property
	def blur_radius(self) -> float:
		"""Gaussian sigma of the pre-blur applied to the luma base"""
		return self.size * 0.3

	def replace(self, **changes) -> 'GrainConfig':
		"""Return a copy with some fields changed (re-validated)"""
		return dataclasses.replace(self, **_resolve_aliases(changes))

	def as_dict(self) -> Dict[str, Any]:
		return dataclasses.asdict(self)

	@classmethod
	def from_mapping(cls, mapping: Mapping[str, Any]) -> 'GrainConfig':
		"""
		Build a config from a plain mapping of parameter names.

		Accepts ``sharpness`` as an alias for ``crystal_sharpness``.
		Missing keys take their defaults; unknown keys are rejected.
		"""
		return cls(**_resolve_aliases(dict(mapping)))

	@classmethod
	def preset(cls, name: str, **overrides) -> 'GrainConfig':
		"""
		Return one of the named in-memory presets, optionally overridden.

		Presets: classic (single flat layer), tonal (single layer with tonal
		split), depth (layered, no colour fringing or relief), full (defaults).
		"""
		if name not in PRESETS:
			raise InvalidConfigError(f"Unknown preset: {name}. Must be one of {', '.join(PRESETS)}")
		params = dict(PRESETS[name])
		params.update(_resolve_aliases(overrides))
		return cls(**params)

def _resolve_aliases(params: Dict[str, Any]) -> Dict[str, Any]:
	resolved = {}
	known = {field.name for field in dataclasses.fields(GrainConfig)}
	for key, value in params.items():
		name = _ALIASES.get(key, key)
		if name not in known:
			raise InvalidConfigError(f"Unknown grain parameter: {key}")
		if name in resolved:
			raise InvalidConfigError(f"Grain parameter given twice: {name}")
		resolved[name] = value
	return resolved

_FLAT_TONES = {'shadow_grain': 1.0, 'midtone_grain': 1.0, 'highlight_grain': 1.0}
_FLAT_SURFACE = {'chromatic': 0.0, 'relief': 0.0}

PRESETS: Dict[str, Dict[str, Any]] = {
	'classic': {**_FLAT_TONES, **_FLAT_SURFACE, 'depth': 0.0, 'layers': 1},
	'tonal': {**_FLAT_SURFACE, 'depth': 0.0, 'layers': 1},
	'depth': {**_FLAT_SURFACE, 'layers': 3},
	'full': {},
}

PRESET_NAMES: Tuple[str, ...] = tuple(PRESETS)
