"""Minimal in-memory IR consumed by the pass manager.

The pass manager treats modules as opaque handles; this module provides just
enough structure (operations holding attributes and single-block regions, a
dialect/operation registry, a verifier and a textual printer) for passes and
emission backends to work against.
"""

import copy
import json
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional


class VerificationError(Exception):
    """Raised when an operation fails structural verification."""

    def __init__(self, diagnostics: List[str]):
        self.diagnostics = list(diagnostics)
        super().__init__("\n".join(self.diagnostics) or "verification failed")


class SymbolRef:
    """Flat reference to a symbol (printed as ``@name``)."""

    __slots__ = ("value",)

    def __init__(self, value: str):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, SymbolRef) and other.value == self.value

    def __hash__(self):
        return hash(("SymbolRef", self.value))

    def __repr__(self):
        return f"SymbolRef({self.value!r})"

    def __str__(self):
        return f"@{self.value}"


class OperationInfo:
    """Registration record for an operation kind.

    ``verifier`` returns an error message (or None) for a given operation.
    ``folder`` rewrites an operation in place and returns True when it changed
    something; it may erase the operation.
    """

    def __init__(
        self,
        name: str,
        *,
        num_regions: Optional[int] = None,
        is_terminator: bool = False,
        is_pure: bool = False,
        is_symbol_table: bool = False,
        verifier: Optional[Callable[["Operation"], Optional[str]]] = None,
        folder: Optional[Callable[["Operation"], bool]] = None,
    ):
        self.name = name
        self.num_regions = num_regions
        self.is_terminator = is_terminator
        self.is_pure = is_pure
        self.is_symbol_table = is_symbol_table
        self.verifier = verifier
        self.folder = folder

    @property
    def dialect(self) -> str:
        return self.name.split(".", 1)[0]

    def __repr__(self):
        return f"OperationInfo({self.name!r})"


class _ContextMeta(type):
    @property
    def current(cls) -> Optional["Context"]:
        stack = getattr(cls._tls, "stack", None)
        return stack[-1] if stack else None


class Context(metaclass=_ContextMeta):
    """A compilation session: dialect, operation and pass registries.

    Entering a context with ``with`` makes it ``Context.current`` for the
    calling thread until the block exits.
    """

    _tls = threading.local()

    def __init__(self, allow_unregistered_dialects: bool = False, load_builtins: bool = True):
        from ..passes import PassRegistry, default_pass_registry

        self.allow_unregistered_dialects = allow_unregistered_dialects
        self._dialects = set()
        self._operations: Dict[str, OperationInfo] = {}
        self._emission_backend = None
        if load_builtins:
            from .dialects import register_builtin_dialects

            register_builtin_dialects(self)
            self.passes = default_pass_registry()
        else:
            self.passes = PassRegistry()

    # Registration

    def register_dialect(self, name: str) -> None:
        self._dialects.add(name)

    def is_registered_dialect(self, name: str) -> bool:
        return name in self._dialects

    @property
    def dialects(self) -> List[str]:
        return sorted(self._dialects)

    def register_operation(self, name: str, **kwargs) -> OperationInfo:
        info = OperationInfo(name, **kwargs)
        self._dialects.add(info.dialect)
        self._operations[name] = info
        return info

    def lookup_operation(self, name: str) -> Optional[OperationInfo]:
        return self._operations.get(name)

    @property
    def emission_backend(self):
        if self._emission_backend is None:
            from ..emit import CppSourceEmitter

            self._emission_backend = CppSourceEmitter()
        return self._emission_backend

    @emission_backend.setter
    def emission_backend(self, backend):
        self._emission_backend = backend

    # Thread-local current context

    def __enter__(self) -> "Context":
        stack = getattr(self._tls, "stack", None)
        if stack is None:
            stack = self._tls.stack = []
        stack.append(self)
        return self

    def __exit__(self, exc_type, exc, tb):
        stack = getattr(self._tls, "stack", None)
        if not stack or stack[-1] is not self:
            raise RuntimeError("Context exited out of order")
        stack.pop()


class Region:
    """Ordered list of operations owned by a parent operation."""

    def __init__(self, parent: Optional["Operation"] = None):
        self.parent = parent
        self.operations: List["Operation"] = []

    def append(self, op: "Operation") -> "Operation":
        return self.insert(len(self.operations), op)

    def insert(self, index: int, op: "Operation") -> "Operation":
        if op.parent is not None:
            op.parent.remove(op)
        self.operations.insert(index, op)
        op.parent = self
        return op

    def remove(self, op: "Operation") -> None:
        self.operations.remove(op)
        op.parent = None

    def index(self, op: "Operation") -> int:
        for i, candidate in enumerate(self.operations):
            if candidate is op:
                return i
        raise ValueError(f"{op.name} is not in this region")

    def __iter__(self) -> Iterator["Operation"]:
        return iter(list(self.operations))

    def __len__(self) -> int:
        return len(self.operations)

    def __getitem__(self, index: int) -> "Operation":
        return self.operations[index]


def _format_attr_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, SymbolRef):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_attr_value(v) for v in value) + "]"
    raise TypeError(f"Unsupported attribute value: {value!r}")


class Operation:
    def __init__(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        num_regions: int = 0,
        loc: Optional[str] = None,
    ):
        self.name = name
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.regions: List[Region] = [Region(self) for _ in range(num_regions)]
        self.loc = loc
        self.parent: Optional[Region] = None

    @property
    def dialect(self) -> str:
        return self.name.split(".", 1)[0] if "." in self.name else ""

    @property
    def sym_name(self) -> Optional[str]:
        value = self.attributes.get("sym_name")
        return value if isinstance(value, str) else None

    @property
    def parent_op(self) -> Optional["Operation"]:
        return self.parent.parent if self.parent is not None else None

    def walk(self) -> Iterator["Operation"]:
        """Pre-order traversal including this operation."""
        yield self
        for region in self.regions:
            for op in region:
                yield from op.walk()

    def erase(self) -> None:
        if self.parent is not None:
            self.parent.remove(self)

    def clone(self) -> "Operation":
        new = Operation(self.name, copy.deepcopy(self.attributes), len(self.regions), self.loc)
        for src, dst in zip(self.regions, new.regions):
            for op in src:
                dst.append(op.clone())
        return new

    def verify(self, context: Context) -> None:
        diagnostics = verify_operation(self, context)
        if diagnostics:
            raise VerificationError(diagnostics)

    def get_asm(self, enable_debug_info: bool = False) -> str:
        lines: List[str] = []
        self._print(lines, 0, enable_debug_info)
        return "\n".join(lines)

    def _print(self, lines: List[str], indent: int, debug_info: bool) -> None:
        pad = "  " * indent
        text = self.name
        if self.attributes:
            attrs = []
            for key, value in self.attributes.items():
                attrs.append(key if value is None else f"{key} = {_format_attr_value(value)}")
            text += " {" + ", ".join(attrs) + "}"
        if not self.regions:
            if debug_info and self.loc:
                text += f" loc({json.dumps(self.loc)})"
            lines.append(pad + text)
            return
        lines.append(pad + text + " {")
        for i, region in enumerate(self.regions):
            if i:
                lines.append(pad + "}, {")
            for op in region:
                op._print(lines, indent + 1, debug_info)
        closing = pad + "}"
        if debug_info and self.loc:
            closing += f" loc({json.dumps(self.loc)})"
        lines.append(closing)

    def __str__(self):
        return self.get_asm()

    def __repr__(self):
        return f"<Operation {self.name}>"


class Module:
    """Root ``builtin.module`` operation bound to a context."""

    def __init__(self, operation: Operation, context: Context):
        self.operation = operation
        self.context = context

    @classmethod
    def create(cls, context: Optional[Context] = None, loc: Optional[str] = None, name: Optional[str] = None) -> "Module":
        if context is None:
            context = Context.current
        if context is None:
            raise ValueError("No Context provided and no Context is active")
        attrs = {"sym_name": name} if name else None
        return cls(Operation("builtin.module", attrs, num_regions=1, loc=loc), context)

    @property
    def body(self) -> Region:
        return self.operation.regions[0]

    def verify(self) -> None:
        self.operation.verify(self.context)

    def clone(self) -> "Module":
        return Module(self.operation.clone(), self.context)

    def __str__(self):
        return str(self.operation)


def verify_operation(root: Operation, context: Context) -> List[str]:
    """Return a list of diagnostics for ``root`` and everything nested in it."""
    diagnostics: List[str] = []

    def error(op: Operation, message: str):
        where = f"{op.loc}: " if op.loc else ""
        diagnostics.append(f"{where}error: '{op.name}' op {message}")

    for op in root.walk():
        if "." not in op.name:
            error(op, "does not have a valid dialect-qualified name")
            continue
        info = context.lookup_operation(op.name)
        if info is None:
            if not context.allow_unregistered_dialects:
                if context.is_registered_dialect(op.dialect):
                    error(op, f"is not registered in dialect '{op.dialect}'")
                else:
                    error(op, f"belongs to unregistered dialect '{op.dialect}'")
            continue
        if info.num_regions is not None and len(op.regions) != info.num_regions:
            error(op, f"requires {info.num_regions} region(s), found {len(op.regions)}")
        if info.is_terminator:
            if op.parent is None or op.parent.operations[-1] is not op:
                error(op, "must be the last operation in its region")
        if info.is_symbol_table:
            seen = set()
            for region in op.regions:
                for child in region:
                    name = child.sym_name
                    if name is None:
                        continue
                    if name in seen:
                        error(child, f"redefinition of symbol '{name}'")
                    seen.add(name)
        if info.verifier is not None:
            message = info.verifier(op)
            if message:
                error(op, message)
    return diagnostics
