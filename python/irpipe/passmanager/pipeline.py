"""Textual pass pipelines: the node tree, its parser and its printer.

Grammar::

    pipeline ::= entry (',' entry)* | <empty>
    entry    ::= op-kind '(' pipeline ')'
               | pass-name ('{' (key ('=' value)?)* '}')?

Pass names and pipeline aliases come from a :class:`~irpipe.passes.PassRegistry`.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from ..diagnostics import PrintAccumulator, format_source_diagnostic
from ..passes import PassRegistry

ANY_OP = "any"
DEFAULT_ROOT_OP = "builtin.module"

_NAME_CHARS = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.$")
_NEEDS_QUOTES = set(" \t\n,{}()=\"\\")


@dataclass(frozen=True)
class PassEntry:
    """A registered pass plus its explicitly set options, in declared order."""

    name: str
    options: Tuple[Tuple[str, Any], ...] = ()


@dataclass
class OpPipeline:
    """Passes that run on every operation of kind ``anchor`` in scope."""

    anchor: str
    children: List["PassNode"] = field(default_factory=list)

    def copy(self) -> "OpPipeline":
        return OpPipeline(
            self.anchor,
            [c.copy() if isinstance(c, OpPipeline) else c for c in self.children],
        )


PassNode = Union[PassEntry, OpPipeline]


def is_valid_op_kind(name: str) -> bool:
    if name == ANY_OP:
        return True
    dialect, _, op = name.partition(".")
    return bool(dialect) and bool(op)


def is_valid_anchor(name: str, registry: PassRegistry) -> bool:
    """Whether ``name(...)`` reads back as a nested pipeline on ``name``."""
    if not isinstance(name, str) or not name or any(c not in _NAME_CHARS for c in name):
        return False
    return is_valid_op_kind(name) and registry.lookup_pass(name) is None


class _ParseFailure(Exception):
    def __init__(self, pos: int, message: str):
        self.pos = pos
        self.message = message
        super().__init__(message)


class PipelineParser:
    """Recursive-descent parser from pipeline text to :data:`PassNode` lists."""

    def __init__(self, text: str, registry: PassRegistry, source_name: str = "pipeline", _expanding=()):
        self.text = text
        self.registry = registry
        self.source_name = source_name
        self.pos = 0
        self._expanding = _expanding

    # Entry points

    def parse_elements(self, anchor: str, accumulator: PrintAccumulator) -> Optional[List[PassNode]]:
        """Parse the whole text as entries in a scope anchored on ``anchor``.

        Returns None after emitting a diagnostic through ``accumulator``.
        """
        try:
            return self._parse_all(anchor)
        except _ParseFailure as failure:
            accumulator.callback(
                format_source_diagnostic(self.source_name, self.text, failure.pos, failure.message)
            )
            return None

    def parse_root(self, accumulator: PrintAccumulator) -> Optional[OpPipeline]:
        """Parse a full pipeline; a lone ``kind(...)`` entry becomes the root."""
        try:
            self.pos = 0
            self._skip_ws()
            start = self.pos
            name = self._peek_name()
            if is_valid_anchor(name, self.registry):
                after = self._skip_ws_from(start + len(name))
                if after < len(self.text) and self.text[after] == "(":
                    self.pos = after + 1
                    children = self._parse_sequence(name, closing=")")
                    self._expect(")", "expected ')' to close nested pipeline")
                    self._skip_ws()
                    if self._at_end():
                        return OpPipeline(name, children)
            return OpPipeline(DEFAULT_ROOT_OP, self._parse_all(DEFAULT_ROOT_OP))
        except _ParseFailure as failure:
            accumulator.callback(
                format_source_diagnostic(self.source_name, self.text, failure.pos, failure.message)
            )
            return None

    # Grammar

    def _parse_all(self, anchor: str) -> List[PassNode]:
        self.pos = 0
        entries = self._parse_sequence(anchor, closing=None)
        self._skip_ws()
        if not self._at_end():
            raise _ParseFailure(self.pos, f"unexpected character '{self.text[self.pos]}'")
        return entries

    def _parse_sequence(self, anchor: str, closing: Optional[str]) -> List[PassNode]:
        entries: List[PassNode] = []
        self._skip_ws()
        if self._at_end() or (closing is not None and self.text[self.pos] == closing):
            return entries
        while True:
            entries.extend(self._parse_entry(anchor))
            self._skip_ws()
            if self._at_end() or self.text[self.pos] != ",":
                return entries
            self.pos += 1
            self._skip_ws()

    def _parse_entry(self, anchor: str) -> List[PassNode]:
        start = self.pos
        name = self._peek_name()
        if not name:
            raise _ParseFailure(start, "expected pass pipeline element name")
        self.pos += len(name)
        self._skip_ws()

        if not self._at_end() and self.text[self.pos] == "(":
            if not is_valid_anchor(name, self.registry):
                raise _ParseFailure(start, f"'{name}' is not a valid operation name for a nested pipeline")
            self.pos += 1
            children = self._parse_sequence(name, closing=")")
            self._expect(")", "expected ')' to close nested pipeline")
            return [OpPipeline(name, children)]

        raw_options = None
        if not self._at_end() and self.text[self.pos] == "{":
            raw_options = self._parse_options()

        pass_cls = self.registry.lookup_pass(name)
        if pass_cls is not None:
            if pass_cls.op_name is not None and pass_cls.op_name != anchor:
                raise _ParseFailure(
                    start,
                    f"pass '{name}' is restricted to '{pass_cls.op_name}' operations "
                    f"and can't run in a pipeline anchored on '{anchor}'",
                )
            return [PassEntry(name, self._convert_options(name, pass_cls, raw_options or []))]

        alias = self.registry.lookup_pipeline(name)
        if alias is not None:
            if raw_options is not None:
                raise _ParseFailure(start, f"pass pipeline '{name}' does not accept options")
            if name in self._expanding:
                raise _ParseFailure(start, f"pass pipeline '{name}' expands to itself")
            nested = PipelineParser(alias, self.registry, name, self._expanding + (name,))
            try:
                return nested._parse_all(anchor)
            except _ParseFailure as failure:
                raise _ParseFailure(
                    start, f"failed to expand pass pipeline '{name}': {failure.message}"
                ) from failure

        raise _ParseFailure(start, f"'{name}' does not refer to a registered pass or pass pipeline")

    def _parse_options(self) -> List[Tuple[int, str, Optional[str]]]:
        # Returns (position, key, raw value) triples; value is None for bare flags.
        options = []
        self.pos += 1
        while True:
            self._skip_ws()
            if self._at_end():
                raise _ParseFailure(self.pos, "expected '}' to close pass options")
            if self.text[self.pos] == "}":
                self.pos += 1
                return options
            key_start = self.pos
            while not self._at_end() and self.text[self.pos] not in " \t\n=}":
                self.pos += 1
            key = self.text[key_start:self.pos]
            if not key or any(c in "{(),\"" for c in key):
                raise _ParseFailure(key_start, "expected pass option name")
            value = None
            if not self._at_end() and self.text[self.pos] == "=":
                self.pos += 1
                value = self._parse_option_value()
            options.append((key_start, key, value))

    def _parse_option_value(self) -> str:
        if self._at_end():
            return ""
        ch = self.text[self.pos]
        if ch == '"':
            start = self.pos
            self.pos += 1
            chars = []
            while not self._at_end():
                ch = self.text[self.pos]
                if ch == "\\" and self.pos + 1 < len(self.text):
                    chars.append(self.text[self.pos + 1])
                    self.pos += 2
                    continue
                if ch == '"':
                    self.pos += 1
                    return "".join(chars)
                chars.append(ch)
                self.pos += 1
            raise _ParseFailure(start, "unterminated string in pass options")
        if ch == "{":
            start = self.pos
            depth = 0
            while not self._at_end():
                ch = self.text[self.pos]
                self.pos += 1
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        return self.text[start + 1:self.pos - 1]
            raise _ParseFailure(start, "unbalanced '{' in pass option value")
        start = self.pos
        while not self._at_end() and self.text[self.pos] not in " \t\n}":
            self.pos += 1
        return self.text[start:self.pos]

    def _convert_options(self, name, pass_cls, raw_options) -> Tuple[Tuple[str, Any], ...]:
        values = {}
        for pos, key, raw in raw_options:
            option = pass_cls.options.get(key)
            if option is None:
                raise _ParseFailure(pos, f"'{key}' is not a valid option of pass '{name}'")
            try:
                values[key] = option.parse(raw)
            except ValueError as exc:
                raise _ParseFailure(pos, f"invalid value for option '{key}' of pass '{name}': {exc}") from exc
        return tuple((flag, values[flag]) for flag in pass_cls.options if flag in values)

    # Lexing helpers

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _skip_ws(self):
        self.pos = self._skip_ws_from(self.pos)

    def _skip_ws_from(self, pos: int) -> int:
        while pos < len(self.text) and self.text[pos].isspace():
            pos += 1
        return pos

    def _peek_name(self) -> str:
        end = self.pos
        while end < len(self.text) and self.text[end] in _NAME_CHARS:
            end += 1
        return self.text[self.pos:end]

    def _expect(self, token: str, message: str):
        self._skip_ws()
        if self._at_end() or self.text[self.pos] != token:
            raise _ParseFailure(self.pos, message)
        self.pos += 1


def format_option_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    text = str(value)
    if any(c in _NEEDS_QUOTES for c in text):
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return text


def print_pipeline(node: PassNode, callback) -> None:
    """Stream the canonical text of ``node`` through ``callback``."""
    if isinstance(node, PassEntry):
        callback(node.name)
        if node.options:
            callback("{" + " ".join(f"{k}={format_option_value(v)}" for k, v in node.options) + "}")
        return
    callback(node.anchor)
    callback("(")
    for i, child in enumerate(node.children):
        if i:
            callback(",")
        print_pipeline(child, callback)
    callback(")")


def format_pipeline(node: PassNode) -> str:
    accumulator = PrintAccumulator()
    print_pipeline(node, accumulator.callback)
    return accumulator.join()
