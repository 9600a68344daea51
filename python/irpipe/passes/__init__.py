from .base import (
    Pass,
    PassFailure,
    PassOption,
    PassRegistry,
    default_pass_registry,
    register_pass,
    register_pass_pipeline,
)

__all__ = [
    "Pass",
    "PassFailure",
    "PassOption",
    "PassRegistry",
    "default_pass_registry",
    "register_pass",
    "register_pass_pipeline",
]
