class PassManagerError(Exception):
    """Base class of pass manager failures."""
    pass


class PassPipelineParseError(PassManagerError, ValueError):
    """Malformed pipeline text; the pass manager is left unchanged."""

    def __init__(self, diagnostics: str):
        self.diagnostics = diagnostics
        super().__init__(diagnostics)


class PassPipelineExecutionError(PassManagerError, RuntimeError):
    """A pass or a post-pass verification failed during ``run``."""
    pass


class EmissionError(PassManagerError, RuntimeError):
    """The emission backend rejected the module or could not write outputs."""
    pass


class NullHandleError(PassManagerError, ValueError):
    """A capsule did not wrap a live pass manager."""
    pass


class PassManagerReleasedError(PassManagerError, RuntimeError):
    """The pass manager no longer owns its native resource."""
    pass
