import os
import re
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class EnvOption(Generic[T]):
    """An option backed by an environment variable, read on every access."""

    def __init__(
        self,
        default: T,
        env_var: Optional[str] = None,
        description: str = "",
        validator: Optional[Callable[[T], bool]] = None,
    ):
        self.default = default
        self.env_var = env_var
        self.description = description
        self.validator = validator
        self.name: Optional[str] = None

    def __set_name__(self, owner: type, name: str):
        self.name = name

    def parse_value(self, raw: str) -> T:
        raise NotImplementedError

    def format_value(self, value: T) -> str:
        return str(value)

    def __get__(self, obj: Optional[object], objtype: Optional[type] = None) -> T:
        if obj is None:
            return self  # type: ignore

        if self.env_var is None:
            raise RuntimeError(
                f"EnvOption '{self.name or '<unknown>'}' has no env_var set. "
                "EnvOption must be declared on an EnvManager subclass."
            )

        raw = os.environ.get(self.env_var)
        if raw is None:
            return self.default

        try:
            value = self.parse_value(raw)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Failed to parse environment variable {self.env_var}={raw!r}: {e}") from e

        if self.validator is not None and not self.validator(value):
            raise ValueError(f"Invalid value for environment variable {self.env_var}: {value!r}")

        return value


class OptBool(EnvOption[bool]):
    def __init__(
        self,
        default: bool = False,
        env_var: Optional[str] = None,
        description: str = "",
    ):
        super().__init__(default, env_var, description)

    def parse_value(self, raw: str) -> bool:
        return raw.lower() in ("1", "true", "yes", "on")

    def format_value(self, value: bool) -> str:
        return "1" if value else "0"


class OptStr(EnvOption[str]):
    def __init__(
        self,
        default: str = "",
        env_var: Optional[str] = None,
        description: str = "",
        choices: Optional[list[str]] = None,
    ):
        validator = None
        if choices is not None:

            def validator(v: str) -> bool:
                return v in choices

        super().__init__(default, env_var, description, validator)
        self.choices = choices

    def parse_value(self, raw: str) -> str:
        return raw


class EnvManagerMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict, **kwargs):
        env_bases = [b for b in bases if hasattr(b, "env_prefix")]
        if len(env_bases) > 1:
            raise TypeError(f"EnvManager subclass '{name}' can only inherit from one EnvManager parent")

        parent_prefix = env_bases[0].env_prefix if env_bases else None

        if "env_prefix" in namespace:
            child_prefix = namespace["env_prefix"]
            if parent_prefix:
                namespace["env_prefix"] = f"{parent_prefix}_{child_prefix}"
        elif parent_prefix:
            namespace["env_prefix"] = parent_prefix

        cls = super().__new__(mcs, name, bases, namespace)

        options: Dict[str, EnvOption] = {}
        for key, value in namespace.items():
            if isinstance(value, EnvOption):
                if value.env_var is None:
                    upper_key = re.sub(r"([a-z])([A-Z])", r"\1_\2", key).upper()
                    value.env_var = f"{cls.env_prefix}_{upper_key}"
                options[key] = value

        cls.options = options
        return cls


class EnvManager(metaclass=EnvManagerMeta):
    env_prefix: str = "IRPIPE"
    options: Dict[str, EnvOption]

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.options}

    @contextmanager
    def override(self, **values: Any) -> Iterator["EnvManager"]:
        """Temporarily set options by writing their environment variables."""
        saved: Dict[str, Optional[str]] = {}
        for name, value in values.items():
            if name not in self.options:
                raise KeyError(f"{type(self).__name__} has no option '{name}'")
            opt = self.options[name]
            saved[opt.env_var] = os.environ.get(opt.env_var)
            os.environ[opt.env_var] = opt.format_value(value)
        try:
            yield self
        finally:
            for env_var, old in saved.items():
                if old is None:
                    os.environ.pop(env_var, None)
                else:
                    os.environ[env_var] = old

    @classmethod
    def help(cls) -> str:
        lines = [f"{cls.__name__} Options:", ""]
        for name, opt in cls.options.items():
            desc = opt.description or "No description"
            lines.append(f"  {name}:")
            lines.append(f"    Environment: {opt.env_var}")
            lines.append(f"    Default: {opt.default!r}")
            lines.append(f"    Description: {desc}")
            lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.help()


class DebugEnvManager(EnvManager):
    env_prefix = "DEBUG"

    # Logging options
    log_level = OptStr("WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"], description="Logging level")
    log_to_file = OptStr("", description="Log file path, empty to disable file logging")
    log_to_console = OptBool(False, description="Enable console logging")

    # Pass manager defaults
    print_after_all = OptBool(False, description="Print IR after each pass of every new PassManager")
    enable_verifier = OptBool(True, description="Verify the module before the pipeline and after each pass")
    enable_timing = OptBool(False, description="Report per-pass execution time after each run")


class EmitEnvManager(EnvManager):
    env_prefix = "EMIT"

    shared_lib = OptStr("", description="Shared library loaded by generated Python wrappers, empty to derive from the C++ file name")
    header = OptStr("", description="Extra header included at the top of generated C++ sources")


debug = DebugEnvManager()
emit = EmitEnvManager()

__all__ = [
    "debug",
    "emit",
]
