from .errors import (
    EmissionError,
    NullHandleError,
    PassManagerError,
    PassManagerReleasedError,
    PassPipelineExecutionError,
    PassPipelineParseError,
)
from .handle import PassManagerCapsule, native_arena
from .manager import PassManager
from .pipeline import OpPipeline, PassEntry, PipelineParser, format_pipeline

__all__ = [
    "EmissionError",
    "NullHandleError",
    "OpPipeline",
    "PassEntry",
    "PassManager",
    "PassManagerCapsule",
    "PassManagerError",
    "PassManagerReleasedError",
    "PassPipelineExecutionError",
    "PassPipelineParseError",
    "PipelineParser",
    "format_pipeline",
    "native_arena",
]
