"""Pass definitions and the registry the pipeline grammar resolves names against."""

import abc
from typing import Any, Dict, Optional, Tuple, Type


class PassFailure(Exception):
    """Raised by a pass to signal that it could not complete."""


class PassOption:
    """Typed option declared as a class attribute of a :class:`Pass`.

    The textual key defaults to the attribute name with underscores replaced
    by dashes (``max_iterations`` -> ``max-iterations``).
    """

    _TRUE = ("true", "1", "on", "yes")
    _FALSE = ("false", "0", "off", "no")

    def __init__(self, type: type = str, default: Any = None, description: str = "", flag: Optional[str] = None):
        if type not in (bool, int, float, str):
            raise TypeError(f"Unsupported pass option type: {type!r}")
        self.type = type
        self.default = default
        self.description = description
        self.flag = flag
        self.attr: Optional[str] = None

    def __set_name__(self, owner, name):
        self.attr = name
        if self.flag is None:
            self.flag = name.replace("_", "-")

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return obj._option_values.get(self.flag, self.default)

    def parse(self, raw: Optional[str]) -> Any:
        """Convert option text to the declared type; ``None`` means a bare flag."""
        if raw is None:
            if self.type is bool:
                return True
            raise ValueError(f"option '{self.flag}' requires a value")
        if self.type is bool:
            lowered = raw.lower()
            if lowered in self._TRUE:
                return True
            if lowered in self._FALSE:
                return False
            raise ValueError(f"'{raw}' is not a boolean")
        if self.type is int:
            return int(raw, 0)
        if self.type is float:
            return float(raw)
        return raw

    def __repr__(self):
        return f"PassOption({self.flag!r}, {self.type.__name__}, default={self.default!r})"


class Pass(abc.ABC):
    """Base class of all passes.

    Subclasses set ``argument`` (the name used in pipeline text), optionally
    ``op_name`` to restrict the pass to one operation kind, and implement
    :meth:`run`. A pass reports failure with :meth:`signal_pass_failure` or by
    raising :class:`PassFailure`.
    """

    argument: str = ""
    description: str = ""
    op_name: Optional[str] = None
    options: Dict[str, PassOption] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        options: Dict[str, PassOption] = {}
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, PassOption):
                    options[value.flag] = value
        cls.options = options

    def __init__(self, **options: Any):
        self._option_values: Dict[str, Any] = {}
        for key, value in options.items():
            flag = key.replace("_", "-")
            if flag not in self.options:
                raise TypeError(f"Pass '{self.argument}' has no option '{key}'")
            self._option_values[flag] = value
        self.context = None
        self._failed = False

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def failed(self) -> bool:
        return self._failed

    def signal_pass_failure(self) -> None:
        self._failed = True

    @abc.abstractmethod
    def run(self, op) -> None:
        ...

    def __repr__(self):
        return f"<{self.name} ({self.argument})>"


class PassRegistry:
    """Named passes and pass pipelines available to pipeline text."""

    def __init__(self):
        self._passes: Dict[str, Type[Pass]] = {}
        self._pipelines: Dict[str, Tuple[str, str]] = {}

    def register(self, pass_cls: Type[Pass]) -> Type[Pass]:
        """Register a pass class. Usable as a class decorator."""
        if not (isinstance(pass_cls, type) and issubclass(pass_cls, Pass)):
            raise TypeError(f"{pass_cls!r} is not a Pass subclass")
        if not pass_cls.argument:
            raise ValueError(f"{pass_cls.__name__} does not declare an 'argument'")
        self._check_free(pass_cls.argument)
        self._passes[pass_cls.argument] = pass_cls
        return pass_cls

    def register_pipeline(self, argument: str, pipeline: str, description: str = "") -> None:
        """Register ``argument`` as an alias expanding to ``pipeline`` text."""
        self._check_free(argument)
        self._pipelines[argument] = (pipeline, description)

    def _check_free(self, argument: str):
        if argument in self._passes or argument in self._pipelines:
            raise ValueError(f"'{argument}' is already registered")

    def lookup_pass(self, argument: str) -> Optional[Type[Pass]]:
        return self._passes.get(argument)

    def lookup_pipeline(self, argument: str) -> Optional[str]:
        entry = self._pipelines.get(argument)
        return entry[0] if entry else None

    def create(self, argument: str, options: Tuple[Tuple[str, Any], ...] = ()) -> Pass:
        pass_cls = self._passes.get(argument)
        if pass_cls is None:
            raise KeyError(f"'{argument}' does not refer to a registered pass")
        return pass_cls(**dict(options))

    def copy(self) -> "PassRegistry":
        new = PassRegistry()
        new._passes = dict(self._passes)
        new._pipelines = dict(self._pipelines)
        return new

    def __contains__(self, argument: str) -> bool:
        return argument in self._passes or argument in self._pipelines

    def __len__(self) -> int:
        return len(self._passes) + len(self._pipelines)


_global_registry = PassRegistry()


def register_pass(pass_cls: Type[Pass]) -> Type[Pass]:
    """Register a pass for every Context created afterwards."""
    return _global_registry.register(pass_cls)


def register_pass_pipeline(argument: str, pipeline: str, description: str = "") -> None:
    _global_registry.register_pipeline(argument, pipeline, description)


def default_pass_registry() -> PassRegistry:
    """Snapshot of the globally registered passes for a new Context."""
    from . import builtin  # noqa: F401

    return _global_registry.copy()
