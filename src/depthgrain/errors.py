"""
Exception types raised by depthgrain
"""

class GrainError(Exception):
	"""Base class for all depthgrain errors"""

class InvalidConfigError(GrainError, ValueError):
	"""Grain parameters that would make the arithmetic degenerate"""

class BufferSizeError(GrainError, ValueError):
	"""Pixel buffer length does not match the declared image dimensions"""
