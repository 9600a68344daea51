from .core import (
    Context,
    Module,
    Operation,
    OperationInfo,
    Region,
    SymbolRef,
    VerificationError,
    verify_operation,
)
from .dialects import register_builtin_dialects

__all__ = [
    "Context",
    "Module",
    "Operation",
    "OperationInfo",
    "Region",
    "SymbolRef",
    "VerificationError",
    "register_builtin_dialects",
    "verify_operation",
]
