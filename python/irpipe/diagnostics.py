"""Text accumulation for parser and printer diagnostics."""

from typing import Callable, List


class PrintAccumulator:
    """Collects text chunks handed to :attr:`callback` during one call."""

    def __init__(self):
        self._parts: List[str] = []

    @property
    def callback(self) -> Callable[[str], None]:
        return self._parts.append

    def join(self) -> str:
        return "".join(self._parts)

    def __bool__(self) -> bool:
        return any(self._parts)


def format_source_diagnostic(source_name: str, text: str, pos: int, message: str) -> str:
    """Render ``message`` pointing at offset ``pos`` of ``text``.

    Produces ``<source>:<line>:<col>: error: <message>`` followed by the
    offending line and a caret under the column.
    """
    pos = max(0, min(pos, len(text)))
    line_start = text.rfind("\n", 0, pos) + 1
    line_end = text.find("\n", pos)
    if line_end == -1:
        line_end = len(text)
    line_no = text.count("\n", 0, pos) + 1
    col = pos - line_start + 1
    line = text[line_start:line_end]
    return f"{source_name}:{line_no}:{col}: error: {message}\n{line}\n{' ' * (col - 1)}^\n"
