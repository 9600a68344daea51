"""Native pass manager resources and their capsule transfer protocol.

Pass manager state lives in a process-wide arena and is addressed by integer
handles. A :class:`~irpipe.passmanager.PassManager` owns at most one handle;
exporting the handle as a capsule moves ownership to whoever imports it.
"""

import itertools
import threading
from typing import Any, Dict, Optional

from ..utils import log
from .errors import NullHandleError
from .pipeline import OpPipeline

MLIR_PYTHON_CAPI_PTR_ATTR = "_CAPIPtr"
MLIR_PYTHON_CAPI_FACTORY_ATTR = "_CAPICreate"
PASS_MANAGER_CAPSULE_NAME = "irpipe.passmanager.PassManager._CAPIPtr"


class NativePassManager:
    """The resource a handle refers to: context, pipeline tree and run flags."""

    def __init__(self, context, pipeline: OpPipeline):
        self.context = context
        self.pipeline = pipeline
        self.verifier_enabled = True
        self.ir_printing = None
        self.timing = False

    def __repr__(self):
        return f"<NativePassManager anchor={self.pipeline.anchor!r}>"


class NativeArena:
    def __init__(self):
        self._slots: Dict[int, Any] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def allocate(self, resource: Any) -> int:
        with self._lock:
            handle = next(self._ids)
            self._slots[handle] = resource
        return handle

    def get(self, handle: Optional[int]) -> Any:
        try:
            return self._slots[handle]
        except KeyError:
            raise NullHandleError(f"Handle {handle} does not refer to a live pass manager") from None

    def free(self, handle: int) -> None:
        if self._slots.pop(handle, None) is None:
            raise RuntimeError(f"Double free of pass manager handle {handle}")

    def is_live(self, handle: Optional[int]) -> bool:
        return handle in self._slots

    def __len__(self) -> int:
        return len(self._slots)


_arena = NativeArena()


def native_arena() -> NativeArena:
    return _arena


class PassManagerCapsule:
    """Opaque, single-use carrier of a pass manager handle."""

    __slots__ = ("name", "_handle")

    def __init__(self, handle: Optional[int], name: str = PASS_MANAGER_CAPSULE_NAME):
        self.name = name
        self._handle = handle

    @property
    def is_null(self) -> bool:
        return self._handle is None

    def _take(self) -> Optional[int]:
        handle, self._handle = self._handle, None
        return handle

    def __repr__(self):
        return f'<capsule object "{self.name}" at {hex(id(self))}>'


def handle_to_capsule(handle: int) -> PassManagerCapsule:
    log().debug(f"Exporting pass manager handle {handle}")
    return PassManagerCapsule(handle)


def capsule_to_handle(capsule: Any) -> int:
    """Validate and consume ``capsule``, returning the handle it carried."""
    if not isinstance(capsule, PassManagerCapsule):
        raise NullHandleError(f"Expected a pass manager capsule, got {type(capsule).__name__}")
    if capsule.name != PASS_MANAGER_CAPSULE_NAME:
        raise NullHandleError(f"Capsule '{capsule.name}' does not wrap a pass manager")
    if capsule.is_null:
        raise NullHandleError("Capsule wraps a null pass manager")
    if not _arena.is_live(capsule._handle):
        raise NullHandleError(f"Capsule wraps a dangling pass manager handle {capsule._handle}")
    handle = capsule._take()
    log().debug(f"Imported pass manager handle {handle}")
    return handle
