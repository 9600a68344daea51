from .backend import EmissionBackend
from .cpp import CppSourceEmitter

__all__ = ["EmissionBackend", "CppSourceEmitter"]
