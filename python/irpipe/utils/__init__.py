from . import env
from .logger import log, reset_logger

__all__ = ["env", "log", "reset_logger"]
