import os
from typing import Optional, TextIO

from ..diagnostics import PrintAccumulator
from ..ir import Context
from ..utils import env, log
from .engine import IRPrintingConfig, run_pipeline
from .errors import EmissionError, PassPipelineExecutionError, PassPipelineParseError, PassManagerReleasedError
from .handle import (
    NativePassManager,
    PassManagerCapsule,
    capsule_to_handle,
    handle_to_capsule,
    native_arena,
)
from .pipeline import OpPipeline, PipelineParser, format_pipeline, is_valid_anchor, print_pipeline

EMIT_FAILURE_MESSAGE = "Failure while raising IR to C++ source code."


def _resolve_context(context: Optional[Context]) -> Context:
    if context is None:
        context = Context.current
    if context is None:
        raise ValueError("No Context provided and no Context is active")
    if not isinstance(context, Context):
        raise TypeError(f"Expected an irpipe.ir.Context, got {type(context).__name__}")
    return context


class PassManager:
    """Owning wrapper around a native pass manager.

    Example:
        >>> with Context() as ctx:
        ...     pm = PassManager.parse("builtin.module(func.func(canonicalize),cse)")
        ...     pm.run(module)
    """

    def __init__(self, anchor_op: str = "any", context: Optional[Context] = None):
        """Create a new PassManager for the current (or provided) Context."""
        self._handle: Optional[int] = None
        context = _resolve_context(context)
        if not is_valid_anchor(anchor_op, context.passes):
            raise ValueError(f"'{anchor_op}' is not a valid operation name to anchor a pass manager on")
        self._handle = self._allocate(context, OpPipeline(anchor_op))

    @staticmethod
    def _allocate(context: Context, pipeline: OpPipeline) -> int:
        native = NativePassManager(context, pipeline)
        native.verifier_enabled = env.debug.enable_verifier
        if env.debug.print_after_all:
            native.ir_printing = IRPrintingConfig()
        native.timing = env.debug.enable_timing
        handle = native_arena().allocate(native)
        log().debug(f"Created pass manager handle {handle} anchored on '{pipeline.anchor}'")
        return handle

    @classmethod
    def _from_handle(cls, handle: int) -> "PassManager":
        pm = cls.__new__(cls)
        pm._handle = handle
        return pm

    def _native(self) -> NativePassManager:
        if self._handle is None:
            raise PassManagerReleasedError("PassManager has been released and can no longer be used")
        return native_arena().get(self._handle)

    # Construction from text

    @staticmethod
    def parse(pipeline: str, context: Optional[Context] = None) -> "PassManager":
        """Parse a textual pass-pipeline and return a top-level PassManager.

        Raises PassPipelineParseError (a ValueError) if the pipeline can't be parsed.
        """
        context = _resolve_context(context)
        error_msg = PrintAccumulator()
        root = PipelineParser(pipeline, context.passes).parse_root(error_msg)
        if root is None:
            log().debug(f"Failed to parse pipeline {pipeline!r}")
            raise PassPipelineParseError(error_msg.join())
        return PassManager._from_handle(PassManager._allocate(context, root))

    def add(self, pipeline: str) -> None:
        """Add textual pipeline elements to the pass manager.

        Raises PassPipelineParseError (a ValueError) if the pipeline can't be
        parsed; the pass manager is left unchanged in that case.
        """
        native = self._native()
        error_msg = PrintAccumulator()
        nodes = PipelineParser(pipeline, native.context.passes).parse_elements(
            native.pipeline.anchor, error_msg
        )
        if nodes is None:
            raise PassPipelineParseError(error_msg.join())
        native.pipeline.children.extend(nodes)

    # Configuration

    def enable_ir_printing(
        self,
        print_before_all: bool = False,
        print_after_all: bool = True,
        print_module_scope: bool = False,
        enable_debug_info: bool = False,
        stream: Optional[TextIO] = None,
    ) -> None:
        """Enable IR printing, default as print-ir-after-all to stderr."""
        self._native().ir_printing = IRPrintingConfig(
            print_before_all=print_before_all,
            print_after_all=print_after_all,
            print_module_scope=print_module_scope,
            enable_debug_info=enable_debug_info,
            stream=stream,
        )

    def enable_verifier(self, enable: bool) -> None:
        """Enable / disable verify-each."""
        self._native().verifier_enabled = bool(enable)

    def enable_timing(self, enable: bool = True) -> None:
        """Report per-pass execution time after each run."""
        self._native().timing = bool(enable)

    @property
    def context(self) -> Context:
        return self._native().context

    @property
    def anchor_op(self) -> str:
        return self._native().pipeline.anchor

    @property
    def verifier_enabled(self) -> bool:
        return self._native().verifier_enabled

    @property
    def is_released(self) -> bool:
        return self._handle is None

    @property
    def pipeline(self) -> OpPipeline:
        """A copy of the pass tree."""
        return self._native().pipeline.copy()

    # Execution

    def run(self, module) -> None:
        """Run the pass manager on the provided module.

        Raises PassPipelineExecutionError (a RuntimeError) on failure.
        """
        run_pipeline(self._native(), module)

    def emit(self, module, cxx_source_file, py_source_file, backend=None) -> None:
        """Run the pipeline, then emit C++ and Python wrapper sources for the module.

        Raises EmissionError (a RuntimeError) on failure.
        """
        native = self._native()
        for label, path in (("cxx_source_file", cxx_source_file), ("py_source_file", py_source_file)):
            if path is None or not os.fspath(path):
                raise ValueError(f"{label} must be a non-empty path")
        cxx_source_file = os.fspath(cxx_source_file)
        py_source_file = os.fspath(py_source_file)
        backend = backend if backend is not None else native.context.emission_backend

        try:
            run_pipeline(native, module)
        except PassPipelineExecutionError as exc:
            raise EmissionError(EMIT_FAILURE_MESSAGE) from exc

        try:
            ok = backend.emit(module, cxx_source_file, py_source_file)
        except (EmissionError, OSError) as exc:
            log().warning(f"Emission backend failed: {exc}")
            raise EmissionError(EMIT_FAILURE_MESSAGE) from exc
        if not ok:
            raise EmissionError(EMIT_FAILURE_MESSAGE)
        log().info(f"Emitted {cxx_source_file} and {py_source_file}")

    # Ownership

    @property
    def _CAPIPtr(self) -> PassManagerCapsule:
        """Export the native pass manager; this PassManager becomes released."""
        self._native()
        handle, self._handle = self._handle, None
        return handle_to_capsule(handle)

    @staticmethod
    def _CAPICreate(capsule) -> "PassManager":
        """Create a PassManager owning the resource carried by ``capsule``."""
        return PassManager._from_handle(capsule_to_handle(capsule))

    def _testing_release(self) -> None:
        """Releases (leaks) the backing pass manager (testing)."""
        self._handle = None

    def destroy(self) -> None:
        handle = getattr(self, "_handle", None)
        if handle is None:
            return
        self._handle = None
        native_arena().free(handle)
        log().debug(f"Destroyed pass manager handle {handle}")

    def __enter__(self) -> "PassManager":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()

    def __del__(self):
        self.destroy()

    def __str__(self) -> str:
        """Textual form of the pipeline, suitable for passing to ``parse``."""
        print_accum = PrintAccumulator()
        print_pipeline(self._native().pipeline, print_accum.callback)
        return print_accum.join()

    def __repr__(self) -> str:
        if self._handle is None:
            return "<PassManager (released)>"
        return f"<PassManager {format_pipeline(self._native().pipeline)}>"
