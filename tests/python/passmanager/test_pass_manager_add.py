"""Test appending textual pipeline elements to a PassManager."""

import pytest

from irpipe.passmanager import OpPipeline, PassEntry, PassManager, PassPipelineParseError


def test_add_appends_in_order(ctx):
    pm = PassManager("builtin.module", ctx)
    pm.add("cse")
    pm.add("func.func(func-insert-return),symbol-dce")
    assert str(pm) == "builtin.module(cse,func.func(func-insert-return),symbol-dce)"
    assert pm.pipeline.children[-1] == PassEntry("symbol-dce")


def test_add_to_parsed_manager(ctx):
    pm = PassManager.parse("builtin.module(canonicalize)", ctx)
    pm.add("cse")
    assert str(pm) == "builtin.module(canonicalize,cse)"


def test_add_empty_text_is_noop(ctx):
    pm = PassManager.parse("cse", ctx)
    pm.add("")
    assert str(pm) == "builtin.module(cse)"


def test_add_uses_root_anchor_scope(ctx):
    """Op-specific passes are accepted only when the root anchor matches."""
    func_pm = PassManager("func.func", ctx)
    func_pm.add("func-insert-return")
    assert str(func_pm) == "func.func(func-insert-return)"

    any_pm = PassManager(context=ctx)
    with pytest.raises(PassPipelineParseError, match="restricted to 'func.func'"):
        any_pm.add("func-insert-return")


@pytest.mark.parametrize(
    "text",
    [
        "not-a-real-pass",
        "cse,not-a-real-pass",
        "cse,func.func(canonicalize",
        "canonicalize{max-iterations=x}",
        "cse,,symbol-dce",
        "func.func(cse))",
    ],
)
def test_failed_add_leaves_pipeline_unchanged(ctx, text):
    """Invalid text never partially extends the pipeline."""
    pm = PassManager.parse("builtin.module(canonicalize,func.func(cse))", ctx)
    before = str(pm)
    tree_before = pm.pipeline
    with pytest.raises(PassPipelineParseError) as excinfo:
        pm.add(text)
    assert isinstance(excinfo.value, ValueError)
    assert "error:" in str(excinfo.value)
    assert str(pm) == before
    assert pm.pipeline == tree_before


def test_pipeline_property_is_a_copy(ctx):
    pm = PassManager.parse("cse", ctx)
    tree = pm.pipeline
    tree.children.append(PassEntry("symbol-dce"))
    assert str(pm) == "builtin.module(cse)"
    assert isinstance(tree, OpPipeline)
