"""Test the in-memory IR: printing, verification and context handling."""

import threading

import pytest

from irpipe.ir import Context, Module, Operation, SymbolRef, VerificationError


def test_module_asm(module):
    text = str(module)
    assert text.splitlines()[0] == "builtin.module {"
    assert '  emitc.include {path = "<cstdio>"}' in text
    assert '  func.func {sym_name = "entry"} {' in text
    assert "    func.call {callee = @helper}" in text
    assert text.endswith("}")
    assert "loc(" not in text


def test_asm_with_debug_info(module):
    text = module.operation.get_asm(enable_debug_info=True)
    assert '} loc("kernel.py:1:0")' in text


def test_named_module(ctx):
    m = Module.create(ctx, name="kernels")
    assert str(m) == 'builtin.module {sym_name = "kernels"} {\n}'


def test_module_requires_context():
    with pytest.raises(ValueError, match="No Context"):
        Module.create()


def test_clone_is_independent(module):
    copy = module.clone()
    assert str(copy) == str(module)
    copy.body[1].attributes["sym_name"] = "other"
    assert module.body[1].sym_name == "entry"
    assert copy.body[1].parent_op is copy.operation


def test_walk_is_pre_order(module):
    names = [op.sym_name or op.name for op in module.operation.walk()]
    assert names == [
        "builtin.module",
        "emitc.include",
        "entry",
        "func.call",
        "func.return",
        "helper",
        "emitc.verbatim",
        "func.return",
    ]


def test_region_insert_moves_operation(module):
    ret = module.body[1].regions[0][1]
    module.body[2].regions[0].insert(0, ret)
    assert ret.parent_op is module.body[2]
    assert len(module.body[1].regions[0]) == 1


def test_duplicate_symbol_is_rejected(module):
    module.body.append(Operation("func.func", {"sym_name": "helper"}, num_regions=1))
    with pytest.raises(VerificationError, match="redefinition of symbol 'helper'"):
        module.verify()


def test_terminator_must_be_last(module):
    body = module.body[1].regions[0]
    body.append(Operation("emitc.verbatim", {"value": "x();"}))
    with pytest.raises(VerificationError) as excinfo:
        module.verify()
    messages = "\n".join(excinfo.value.diagnostics)
    assert "'func.return' op must be the last operation in its region" in messages
    assert "kernel.py:1:0: error: 'func.func' op body must end with 'func.return'" in messages


def test_return_outside_function(module):
    module.body.append(Operation("func.return"))
    with pytest.raises(VerificationError, match="expects parent op 'func.func'"):
        module.verify()


@pytest.mark.parametrize(
    "op, message",
    [
        (Operation("noname"), "valid dialect-qualified name"),
        (Operation("bogus.op"), "unregistered dialect 'bogus'"),
        (Operation("func.unknown"), "is not registered in dialect 'func'"),
        (Operation("func.call", {"callee": "helper"}), "requires symbol reference attribute 'callee'"),
        (Operation("arith.constant"), "requires attribute 'value'"),
        (Operation("emitc.include", {"path": ""}), "non-empty string attribute 'path'"),
        (Operation("func.func", {"sym_name": "f"}), "requires 1 region(s), found 0"),
    ],
)
def test_verifier_diagnostics(module, op, message):
    module.body.append(op)
    with pytest.raises(VerificationError) as excinfo:
        module.verify()
    assert any(message in d for d in excinfo.value.diagnostics)


def test_unregistered_dialects_allowed():
    with Context(allow_unregistered_dialects=True) as ctx:
        m = Module.create()
        m.body.append(Operation("bogus.op", {"x": [1, 2.5, True, SymbolRef("f")]}))
        m.verify()
        assert "bogus.op {x = [1, 2.5, true, @f]}" in str(m)
        assert "bogus" not in ctx.dialects


def test_custom_operation_registration(ctx):
    ctx.register_operation("test.noop", num_regions=0, verifier=lambda op: None)
    assert ctx.is_registered_dialect("test")
    assert ctx.lookup_operation("test.noop").dialect == "test"
    m = Module.create()
    m.body.append(Operation("test.noop"))
    m.verify()


def test_bare_context_has_no_builtins():
    ctx = Context(load_builtins=False)
    assert ctx.dialects == []
    assert len(ctx.passes) == 0


def test_current_context_nesting():
    assert Context.current is None
    with Context() as outer:
        assert Context.current is outer
        with Context() as inner:
            assert Context.current is inner
        assert Context.current is outer
    assert Context.current is None


def test_current_context_is_thread_local(ctx):
    seen = []
    worker = threading.Thread(target=lambda: seen.append(Context.current))
    worker.start()
    worker.join()
    assert seen == [None]
    assert Context.current is ctx


def test_contexts_do_not_share_pass_registries(ctx):
    other = Context()
    ctx.passes.register_pipeline("only-here", "cse")
    assert "only-here" in ctx.passes
    assert "only-here" not in other.passes
    assert "canonicalize" in other.passes


def test_context_exit_out_of_order():
    outer = Context()
    inner = Context()
    outer.__enter__()
    inner.__enter__()
    try:
        with pytest.raises(RuntimeError, match="Context exited out of order"):
            outer.__exit__(None, None, None)
    finally:
        inner.__exit__(None, None, None)
        outer.__exit__(None, None, None)
    assert Context.current is None
    with pytest.raises(RuntimeError, match="Context exited out of order"):
        outer.__exit__(None, None, None)
