"""
irpipe Python Package

Pass pipeline management for an in-memory IR: parse and print textual pass
pipelines, run them over modules with verification, emit C++ sources, and
hand pass managers across ownership boundaries.

Usage:
    from irpipe.ir import Context, Module
    from irpipe.passmanager import PassManager

    with Context() as ctx:
        module = Module.create()
        pm = PassManager.parse("builtin.module(canonicalize,cse)")
        pm.run(module)
"""

__version__ = "0.1.0"

_LAZY_MODULES = {
    "Context": ("ir", "Context"),
    "Module": ("ir", "Module"),
    "Operation": ("ir", "Operation"),
    "PassManager": ("passmanager", "PassManager"),
    "Pass": ("passes", "Pass"),
    "PassOption": ("passes", "PassOption"),
    "register_pass": ("passes", "register_pass"),
}


def __getattr__(name):
    """Lazy load top-level names from their submodules"""
    if name in _LAZY_MODULES:
        import importlib

        module_name, attr = _LAZY_MODULES[name]
        module = importlib.import_module(f".{module_name}", __name__)
        return getattr(module, attr)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ["__version__", *_LAZY_MODULES]
