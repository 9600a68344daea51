import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from ..ir import Operation, VerificationError
from ..passes import PassFailure
from ..utils import log
from .errors import PassPipelineExecutionError
from .handle import NativePassManager
from .pipeline import ANY_OP, OpPipeline, PassEntry

RUN_FAILURE_MESSAGE = "Failure while executing pass pipeline."


@dataclass
class IRPrintingConfig:
    print_before_all: bool = False
    print_after_all: bool = True
    print_module_scope: bool = False
    enable_debug_info: bool = False
    stream: Optional[TextIO] = None

    @property
    def output(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stderr


def _matches(op: Operation, anchor: str) -> bool:
    return anchor == ANY_OP or op.name == anchor


def collect_nested(op: Operation, anchor: str) -> List[Operation]:
    """Operations of kind ``anchor`` under ``op`` in pre-order.

    A matching operation is not searched further; its contents belong to the
    nested pipeline that runs on it.
    """
    found: List[Operation] = []

    def visit(parent: Operation):
        for region in parent.regions:
            for child in region:
                if _matches(child, anchor):
                    found.append(child)
                else:
                    visit(child)

    visit(op)
    return found


class PipelineExecutor:
    """Runs one pass manager's tree over one root operation."""

    def __init__(self, native: NativePassManager, root: Operation):
        self.native = native
        self.context = native.context
        self.root = root
        self.timings: Dict[str, float] = {}

    def run(self) -> None:
        anchor = self.native.pipeline.anchor
        if not _matches(self.root, anchor):
            log().warning(f"Can't run '{anchor}' pass manager on '{self.root.name}' op")
            raise PassPipelineExecutionError(RUN_FAILURE_MESSAGE)

        if self.native.verifier_enabled:
            self._verify("input")

        start = time.perf_counter()
        try:
            self._run_pipeline(self.native.pipeline, self.root)
        finally:
            if self.native.timing:
                self._report_timing(time.perf_counter() - start)

    def _run_pipeline(self, pipeline: OpPipeline, op: Operation) -> None:
        for node in pipeline.children:
            if isinstance(node, OpPipeline):
                for target in collect_nested(op, node.anchor):
                    self._run_pipeline(node, target)
            else:
                self._run_pass(node, op)

    def _run_pass(self, entry: PassEntry, op: Operation) -> None:
        try:
            pass_obj = self.context.passes.create(entry.name, entry.options)
        except (KeyError, TypeError) as exc:
            raise PassPipelineExecutionError(RUN_FAILURE_MESSAGE) from exc
        pass_obj.context = self.context
        label = f"{pass_obj.name} ({entry.name})"
        printing = self.native.ir_printing

        if printing is not None and printing.print_before_all:
            self._print_ir(f"IR Dump Before {label}", op)

        failure: Optional[BaseException] = None
        start = time.perf_counter()
        try:
            pass_obj.run(op)
        except PassFailure as exc:
            failure = exc
        except Exception as exc:
            log().warning(f"{label} raised {type(exc).__name__}: {exc}")
            failure = exc
        if failure is None and pass_obj.failed:
            failure = PassFailure(f"{label} signalled failure")
        elapsed = time.perf_counter() - start
        self.timings[label] = self.timings.get(label, 0.0) + elapsed

        if printing is not None and printing.print_after_all:
            suffix = " Failed" if failure is not None else ""
            self._print_ir(f"IR Dump After {pass_obj.name}{suffix} ({entry.name})", op)

        if failure is not None:
            log().info(f"{label} failed on '{op.name}'")
            raise PassPipelineExecutionError(RUN_FAILURE_MESSAGE) from failure

        if self.native.verifier_enabled:
            self._verify(label)

    def _verify(self, stage: str) -> None:
        try:
            self.root.verify(self.context)
        except VerificationError as exc:
            log().info(f"Verification failed after {stage}: {exc}")
            raise PassPipelineExecutionError(RUN_FAILURE_MESSAGE) from exc

    def _print_ir(self, header: str, op: Operation) -> None:
        printing = self.native.ir_printing
        target = self.root if printing.print_module_scope else op
        out = printing.output
        out.write(f"// -----// {header} //----- //\n")
        out.write(target.get_asm(enable_debug_info=printing.enable_debug_info))
        out.write("\n\n")
        out.flush()

    def _report_timing(self, total: float) -> None:
        lines = [
            "===" + "-" * 73 + "===",
            "... Execution time report ...".center(79),
            "===" + "-" * 73 + "===",
            f"  Total Execution Time: {total:.4f} seconds",
            "",
            "  ----Wall Time----  ----Name----",
        ]
        for label, elapsed in self.timings.items():
            pct = (elapsed / total * 100.0) if total > 0 else 0.0
            lines.append(f"  {elapsed:8.4f} ({pct:5.1f}%)  {label}")
        lines.append(f"  {total:8.4f} (100.0%)  Total")
        report = "\n".join(lines)
        log().info(report)
        out = self.native.ir_printing.output if self.native.ir_printing is not None else sys.stderr
        out.write(report + "\n")


def run_pipeline(native: NativePassManager, module) -> None:
    """Run ``native``'s pipeline over ``module`` (a Module or an Operation)."""
    root = getattr(module, "operation", module)
    if not isinstance(root, Operation):
        raise TypeError(f"Expected a Module or Operation, got {type(module).__name__}")
    log().debug(f"Running pass pipeline on '{root.name}'")
    PipelineExecutor(native, root).run()
