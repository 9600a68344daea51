"""Test pass manager handle export, import and release."""

import gc

import pytest

from irpipe.passmanager import (
    NullHandleError,
    PassManager,
    PassManagerCapsule,
    PassManagerReleasedError,
    native_arena,
)


def test_capsule_round_trip_preserves_pipeline(ctx):
    pm = PassManager.parse("builtin.module(func.func(canonicalize{max-iterations=2}),cse)", ctx)
    text = str(pm)
    capsule = pm._CAPIPtr
    assert isinstance(capsule, PassManagerCapsule)
    assert "PassManager._CAPIPtr" in repr(capsule)

    pm2 = PassManager._CAPICreate(capsule)
    assert str(pm2) == text
    assert pm2.context is ctx
    assert pm.is_released
    assert not pm2.is_released


def test_export_keeps_run_configuration(ctx):
    pm = PassManager.parse("cse", ctx)
    pm.enable_verifier(False)
    pm2 = PassManager._CAPICreate(pm._CAPIPtr)
    assert not pm2.verifier_enabled


def test_imported_manager_runs(ctx, module):
    pm = PassManager._CAPICreate(PassManager.parse("strip-debuginfo", ctx)._CAPIPtr)
    pm.run(module)
    assert module.body[1].loc is None


@pytest.mark.parametrize(
    "use",
    [
        lambda pm, m: pm.add("cse"),
        lambda pm, m: pm.run(m),
        lambda pm, m: pm.enable_verifier(True),
        lambda pm, m: pm.enable_ir_printing(),
        lambda pm, m: pm._CAPIPtr,
        lambda pm, m: str(pm),
    ],
)
def test_released_manager_rejects_use(ctx, module, use):
    pm = PassManager.parse("cse", ctx)
    pm._CAPIPtr
    with pytest.raises(PassManagerReleasedError):
        use(pm, module)
    assert isinstance(PassManagerReleasedError("x"), RuntimeError)


def test_released_manager_repr(ctx):
    pm = PassManager.parse("cse", ctx)
    pm._testing_release()
    assert repr(pm) == "<PassManager (released)>"


def test_capsule_is_single_use(ctx):
    capsule = PassManager.parse("cse", ctx)._CAPIPtr
    PassManager._CAPICreate(capsule)
    assert capsule.is_null
    with pytest.raises(NullHandleError):
        PassManager._CAPICreate(capsule)


@pytest.mark.parametrize(
    "capsule",
    [
        PassManagerCapsule(None),
        PassManagerCapsule(1, name="irpipe.ir.Module._CAPIPtr"),
        "not a capsule",
        None,
    ],
)
def test_invalid_capsules_are_rejected(capsule):
    with pytest.raises(NullHandleError) as excinfo:
        PassManager._CAPICreate(capsule)
    assert isinstance(excinfo.value, ValueError)


def test_dangling_capsule_is_rejected(ctx):
    pm = PassManager.parse("cse", ctx)
    handle = pm._handle
    pm.destroy()
    with pytest.raises(NullHandleError, match="dangling"):
        PassManager._CAPICreate(PassManagerCapsule(handle))


def test_testing_release_leaks_resource(ctx):
    pm = PassManager.parse("cse", ctx)
    handle = pm._handle
    pm._testing_release()
    pm._testing_release()
    assert pm.is_released
    del pm
    gc.collect()
    assert native_arena().is_live(handle)
    native_arena().free(handle)


def test_destroy_frees_once(ctx):
    pm = PassManager.parse("cse", ctx)
    handle = pm._handle
    assert native_arena().is_live(handle)
    pm.destroy()
    assert not native_arena().is_live(handle)
    pm.destroy()
    with pytest.raises(PassManagerReleasedError):
        pm.run(None)


def test_context_manager_frees_resource(ctx):
    with PassManager.parse("cse", ctx) as pm:
        handle = pm._handle
        assert native_arena().is_live(handle)
    assert not native_arena().is_live(handle)
    assert pm.is_released


def test_garbage_collection_frees_resource(ctx):
    pm = PassManager.parse("cse", ctx)
    handle = pm._handle
    del pm
    gc.collect()
    assert not native_arena().is_live(handle)


def test_exported_resource_survives_source_collection(ctx):
    """Dropping the exporting wrapper does not free the exported resource."""
    pm = PassManager.parse("cse", ctx)
    capsule = pm._CAPIPtr
    del pm
    gc.collect()
    pm2 = PassManager._CAPICreate(capsule)
    assert str(pm2) == "builtin.module(cse)"
