import logging
import sys

__all__ = ["log", "reset_logger"]

_FORMAT = "%(asctime)s - %(levelname)-8s - [%(funcName)s] - %(message)s"
_FORMAT_SIMPLE = "| %(levelname)-8s - [%(funcName)s] - %(message)s"

_logger: logging.Logger = None
_handlers = []
_initialized = False


def _init_logger():
    global _logger, _initialized
    if _initialized:
        return

    from .env import debug

    _logger = logging.getLogger("irpipe")
    _logger.setLevel(logging.DEBUG)
    _logger.propagate = False

    level = getattr(logging, debug.log_level)

    if debug.log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(_FORMAT_SIMPLE))
        console_handler.setLevel(level)
        _handlers.append(console_handler)

    if debug.log_to_file:
        file_handler = logging.FileHandler(debug.log_to_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        file_handler.setLevel(level)
        _handlers.append(file_handler)

    if not _handlers:
        _handlers.append(logging.NullHandler())

    for handler in _handlers:
        _logger.addHandler(handler)

    _initialized = True


def reset_logger():
    """Drop the handlers installed by ``log()`` so the next call re-reads the environment."""
    global _initialized
    for handler in _handlers:
        if _logger is not None:
            _logger.removeHandler(handler)
        handler.close()
    _handlers.clear()
    _initialized = False


def log() -> logging.Logger:
    if not _initialized:
        _init_logger()
    return _logger
