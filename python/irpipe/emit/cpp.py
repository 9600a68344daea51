"""C++ source emission with a ctypes Python wrapper.

Accepts modules lowered to the emitter subset: top-level ``emitc.include``
and ``func.func`` operations whose bodies hold ``emitc.verbatim`` statements
and a trailing ``func.return``.
"""

import keyword
from pathlib import Path
from typing import List, Tuple

from ..ir import Module, Operation
from ..passmanager.errors import EmissionError
from ..utils import env, log
from .backend import EmissionBackend

_BANNER = "Generated by irpipe. Do not edit."

CXX_KEYWORDS = frozenset(
    """
    alignas alignof and and_eq asm auto bitand bitor bool break case catch char
    char8_t char16_t char32_t class compl concept const consteval constexpr
    constinit const_cast continue co_await co_return co_yield decltype default
    delete do double dynamic_cast else enum explicit export extern false float
    for friend goto if inline int long mutable namespace new noexcept not not_eq
    nullptr operator or or_eq private protected public register
    reinterpret_cast requires return short signed sizeof static static_assert
    static_cast struct switch template this thread_local throw true try typedef
    typeid typename union unsigned using virtual void volatile wchar_t while xor
    xor_eq
    """.split()
)

# Module-level names of the generated wrapper.
WRAPPER_RESERVED = frozenset({"_load", "_lib", "_LIB_NAME", "ctypes", "os", "__all__"})


def _format_include(path: str) -> str:
    if path.startswith("<") or path.startswith('"'):
        return f"#include {path}"
    return f'#include "{path}"'


class CppSourceEmitter(EmissionBackend):
    name = "cpp"

    def emit(self, module: Module, primary_path: str, secondary_path: str) -> bool:
        try:
            cxx_source, py_source = self.translate(module, primary_path)
        except EmissionError as e:
            log().warning(f"Module rejected by C++ emitter: {e}")
            return False
        # Both sources are generated before either file is touched.
        Path(primary_path).write_text(cxx_source, encoding="utf-8")
        Path(secondary_path).write_text(py_source, encoding="utf-8")
        return True

    def translate(self, module: Module, cxx_path: str = "module.cpp") -> Tuple[str, str]:
        root = getattr(module, "operation", module)
        includes: List[str] = []
        if env.emit.header:
            includes.append(env.emit.header)
        functions: List[Operation] = []
        for op in root.regions[0]:
            if op.name == "emitc.include":
                path = op.attributes.get("path")
                if not isinstance(path, str) or not path:
                    raise EmissionError("'emitc.include' op requires a path")
                includes.append(path)
            elif op.name == "func.func":
                if len(op.regions) != 1:
                    raise EmissionError(
                        f"'func.func' op @{op.sym_name} requires 1 region, found {len(op.regions)}"
                    )
                self._check_name(op)
                functions.append(op)
            else:
                raise EmissionError(f"'{op.name}' op cannot be emitted as C++")

        cxx_lines = [f"// {_BANNER}"]
        cxx_lines.extend(_format_include(path) for path in includes)
        if functions:
            cxx_lines.append("")
            cxx_lines.extend(self._signature(f) + ";" for f in functions)
        for func_op in functions:
            if not len(func_op.regions[0]):
                continue
            cxx_lines.append("")
            cxx_lines.extend(self._emit_function(func_op))
        cxx_source = "\n".join(cxx_lines) + "\n"

        exported = [
            f.sym_name
            for f in functions
            if f.attributes.get("sym_visibility") != "private" and len(f.regions[0])
        ]
        lib_name = env.emit.shared_lib or f"lib{Path(cxx_path).stem}.so"
        return cxx_source, self._emit_wrapper(lib_name, exported)

    @staticmethod
    def _check_name(func_op: Operation) -> None:
        name = func_op.sym_name
        if not name or not name.isidentifier() or not name.isascii() or name in CXX_KEYWORDS:
            raise EmissionError(f"function name {name!r} is not a valid C++ identifier")
        exported = func_op.attributes.get("sym_visibility") != "private" and len(func_op.regions[0])
        if exported and (keyword.iskeyword(name) or name in WRAPPER_RESERVED):
            raise EmissionError(f"function name {name!r} clashes with the generated Python wrapper")

    @staticmethod
    def _signature(func_op: Operation) -> str:
        name = func_op.sym_name
        if func_op.attributes.get("sym_visibility") == "private":
            return f"static void {name}()"
        return f'extern "C" void {name}()'

    def _emit_function(self, func_op: Operation) -> List[str]:
        name = func_op.sym_name
        body = func_op.regions[0]
        lines = [self._signature(func_op) + " {"]
        for i, op in enumerate(body):
            if op.name == "emitc.verbatim" and isinstance(op.attributes.get("value"), str):
                lines.append(f"  {op.attributes['value']}")
            elif op.name == "func.return" and i == len(body) - 1:
                lines.append("  return;")
            else:
                raise EmissionError(f"'{op.name}' op in @{name} cannot be emitted as C++")
        lines.append("}")
        return lines

    def _emit_wrapper(self, lib_name: str, functions: List[str]) -> str:
        lines = [
            f"# {_BANNER}",
            "import ctypes",
            "import os",
            "",
            f"_LIB_NAME = {lib_name!r}",
            "_lib = None",
            "",
            "",
            "def _load():",
            "    global _lib",
            "    if _lib is None:",
            "        _lib = ctypes.CDLL(os.path.join(os.path.dirname(os.path.abspath(__file__)), _LIB_NAME))",
            "    return _lib",
        ]
        for name in functions:
            lines.extend(["", "", f"def {name}():", f"    _load().{name}()"])
        lines.append("")
        lines.append("")
        lines.append(f"__all__ = {functions!r}")
        return "\n".join(lines) + "\n"
