"""Operation registrations for the builtin, func, arith and emitc dialects."""

from .core import Context, Operation, SymbolRef


def _verify_module(op: Operation):
    name = op.attributes.get("sym_name")
    if name is not None and not isinstance(name, str):
        return "requires 'sym_name' to be a string"
    return None


def _verify_func(op: Operation):
    if op.sym_name is None:
        return "requires string attribute 'sym_name'"
    visibility = op.attributes.get("sym_visibility")
    if visibility not in (None, "public", "private", "nested"):
        return f"has invalid symbol visibility '{visibility}'"
    body = op.regions[0] if op.regions else None
    if body is not None and len(body):
        if body[len(body) - 1].name != "func.return":
            return "body must end with 'func.return'"
    return None


def _verify_return(op: Operation):
    parent = op.parent_op
    if parent is None or parent.name != "func.func":
        return "expects parent op 'func.func'"
    return None


def _verify_call(op: Operation):
    if not isinstance(op.attributes.get("callee"), SymbolRef):
        return "requires symbol reference attribute 'callee'"
    return None


def _verify_constant(op: Operation):
    if "value" not in op.attributes:
        return "requires attribute 'value'"
    return None


def _verify_include(op: Operation):
    if not isinstance(op.attributes.get("path"), str) or not op.attributes["path"]:
        return "requires non-empty string attribute 'path'"
    return None


def _verify_verbatim(op: Operation):
    if not isinstance(op.attributes.get("value"), str):
        return "requires string attribute 'value'"
    return None


def _fold_verbatim(op: Operation) -> bool:
    # Empty verbatim lines carry no code.
    if op.attributes.get("value") == "":
        op.erase()
        return True
    return False


def register_builtin_dialects(context: Context) -> None:
    context.register_operation(
        "builtin.module", num_regions=1, is_symbol_table=True, verifier=_verify_module
    )

    context.register_operation("func.func", num_regions=1, verifier=_verify_func)
    context.register_operation("func.return", num_regions=0, is_terminator=True, verifier=_verify_return)
    context.register_operation("func.call", num_regions=0, verifier=_verify_call)

    context.register_operation("arith.constant", num_regions=0, is_pure=True, verifier=_verify_constant)
    context.register_operation("arith.addi", num_regions=0, is_pure=True)

    context.register_operation("emitc.include", num_regions=0, verifier=_verify_include)
    context.register_operation(
        "emitc.verbatim", num_regions=0, verifier=_verify_verbatim, folder=_fold_verbatim
    )
