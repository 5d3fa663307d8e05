import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

"""
Logging configuration

The library itself only emits records; applications call setup_logging()
to see them.
"""

PACKAGE_LOGGER = 'depthgrain'

def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None, console: Optional[Console] = None) -> logging.Logger:
	"""
	Attach console (and optionally file) handlers to the depthgrain logger.

	Args:
		level: Logging level (e.g. logging.DEBUG, logging.INFO)
		log_file: Optional path to also write plain-text logs to
		console: Rich console to log to (defaults to stderr)

	Returns:
		The configured package logger
	"""
	logger = logging.getLogger(PACKAGE_LOGGER)
	logger.setLevel(level)

	# Avoid duplicate output when called more than once
	for handler in list(logger.handlers):
		if not isinstance(handler, logging.NullHandler):
			logger.removeHandler(handler)
			handler.close()

	console_handler = RichHandler(
		console=console or Console(stderr=True),
		show_path=False,
		log_time_format='%H:%M:%S'
	)
	console_handler.setLevel(level)
	console_handler.setFormatter(logging.Formatter('%(name)s: %(message)s'))
	logger.addHandler(console_handler)

	if log_file:
		file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
		file_handler.setLevel(level)
		file_handler.setFormatter(logging.Formatter(
			'%(asctime)s - %(name)s - %(levelname)s - %(message)s',
			datefmt='%H:%M:%S'
		))
		logger.addHandler(file_handler)

	return logger

if __name__ == '__main__':
	print('__main__ not supported in modules.')
