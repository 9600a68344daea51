from typing import Iterable, List, Set

from ..ir.core import Operation, SymbolRef
from ..utils import log
from .base import Pass, PassOption, register_pass, register_pass_pipeline


def _collect_symbol_refs(value, out: Set[str]):
    if isinstance(value, SymbolRef):
        out.add(value.value)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_symbol_refs(item, out)


def _nested_ops(op: Operation) -> Iterable[Operation]:
    walk = op.walk()
    next(walk)
    return walk


@register_pass
class Canonicalizer(Pass):
    """Apply registered folders until a fixpoint is reached."""

    argument = "canonicalize"
    description = "Canonicalize operations"

    max_iterations = PassOption(int, 10, "Max. iterations between applying patterns")
    top_down = PassOption(bool, True, "Seed the worklist in general top-down order")
    test_convergence = PassOption(bool, False, "Fail if the patterns did not converge")

    def run(self, op):
        for iteration in range(self.max_iterations):
            worklist: List[Operation] = list(_nested_ops(op))
            if not self.top_down:
                worklist.reverse()
            changed = False
            for candidate in worklist:
                info = self.context.lookup_operation(candidate.name)
                if info is None or info.folder is None:
                    continue
                # Skip ops already erased by an earlier fold in this sweep.
                if candidate.parent is None:
                    continue
                changed |= bool(info.folder(candidate))
            if not changed:
                log().debug(f"canonicalize converged after {iteration + 1} iteration(s)")
                return
        if self.test_convergence:
            self.signal_pass_failure()


@register_pass
class CSE(Pass):
    """Eliminate repeated pure, region-free operations within a region."""

    argument = "cse"
    description = "Eliminate common sub-expressions"

    def run(self, op):
        erased = 0
        for parent in list(op.walk()):
            for region in parent.regions:
                seen = []
                for child in region:
                    info = self.context.lookup_operation(child.name)
                    if info is None or not info.is_pure or child.regions:
                        continue
                    key = (child.name, child.attributes)
                    if key in seen:
                        child.erase()
                        erased += 1
                    else:
                        seen.append(key)
        log().debug(f"cse erased {erased} operation(s)")


@register_pass
class SymbolDCE(Pass):
    """Erase private symbols that nothing references."""

    argument = "symbol-dce"
    description = "Eliminate dead symbols"

    def run(self, op):
        while True:
            used: Set[str] = set()
            for nested in op.walk():
                for value in nested.attributes.values():
                    _collect_symbol_refs(value, used)
            dead = [
                child
                for region in op.regions
                for child in region
                if child.sym_name is not None
                and child.attributes.get("sym_visibility") == "private"
                and child.sym_name not in used
            ]
            if not dead:
                return
            for child in dead:
                child.erase()


@register_pass
class StripDebugInfo(Pass):
    argument = "strip-debuginfo"
    description = "Strip debug info from all operations"

    def run(self, op):
        for nested in op.walk():
            nested.loc = None


@register_pass
class ConvertFuncToEmitC(Pass):
    """Rewrite ``func.call`` into ``emitc.verbatim`` call statements."""

    argument = "convert-func-to-emitc"
    description = "Convert func calls to EmitC verbatim statements"

    def run(self, op):
        for nested in list(_nested_ops(op)):
            if nested.name != "func.call":
                continue
            callee = nested.attributes.get("callee")
            if not isinstance(callee, SymbolRef):
                self.signal_pass_failure()
                return
            region = nested.parent
            index = region.index(nested)
            nested.erase()
            region.insert(
                index,
                Operation("emitc.verbatim", {"value": f"{callee.value}();"}, loc=nested.loc),
            )


@register_pass
class FuncInsertReturn(Pass):
    argument = "func-insert-return"
    description = "Terminate non-empty function bodies with func.return"
    op_name = "func.func"

    def run(self, op):
        body = op.regions[0]
        if not len(body) or body[len(body) - 1].name == "func.return":
            return
        body.append(Operation("func.return", loc=op.loc))


register_pass_pipeline(
    "lower-to-emitc",
    "func.func(func-insert-return),symbol-dce,convert-func-to-emitc,canonicalize",
    "Lower func-level IR to the subset accepted by the C++ source emitter",
)
