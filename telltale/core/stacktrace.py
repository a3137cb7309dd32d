"""Stack trace parsing.

Converts raw stack strings and live Python tracebacks into
structured StackFrame sequences. Parsing is total: malformed input
degrades to best-effort frames and never raises.
"""

import re
import traceback
from types import TracebackType

from .models import StackFrame

# V8-style "at fn (file:line:col)"
_V8_FRAME = re.compile(r"\s*at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)")

VENDOR_MARKERS = ("node_modules", "site-packages", "dist-packages")


class StackTraceParser:
    """Produces StackFrame lists from stack text or tracebacks.

    Other stack grammars can be supported by overriding parse_line.
    """

    def __init__(self, vendor_markers: tuple[str, ...] = VENDOR_MARKERS):
        self.vendor_markers = vendor_markers

    def is_in_app(self, path: str) -> bool:
        return not any(marker in path for marker in self.vendor_markers)

    def parse(self, raw_stack: str) -> list[StackFrame]:
        """Parse a stack string whose first line is the error message."""
        if not raw_stack:
            return []

        frames = []
        for line in raw_stack.splitlines()[1:]:
            if not line.strip():
                continue
            frames.append(self.parse_line(line))
        return frames

    def parse_line(self, line: str) -> StackFrame:
        match = _V8_FRAME.match(line)
        if match:
            function, path, lineno, colno = match.groups()
            return StackFrame(
                filename=path,
                function=function,
                lineno=int(lineno),
                colno=int(colno),
                abs_path=path,
                in_app=self.is_in_app(path),
            )
        return StackFrame(
            filename="unknown",
            function=line.strip(),
            lineno=0,
            colno=0,
            abs_path="unknown",
            in_app=True,
        )

    def from_traceback(self, tb: TracebackType | None) -> list[StackFrame]:
        """Build frames from a live traceback, innermost frame last."""
        if tb is None:
            return []

        frames = []
        for summary in traceback.extract_tb(tb):
            colno = getattr(summary, "colno", None)
            frames.append(
                StackFrame(
                    filename=summary.filename,
                    function=summary.name,
                    lineno=summary.lineno or 0,
                    colno=colno + 1 if colno is not None else 0,
                    abs_path=summary.filename,
                    in_app=self.is_in_app(summary.filename),
                    context_line=summary.line or "",
                )
            )
        return frames

    def from_exception(self, error: BaseException) -> list[StackFrame]:
        return self.from_traceback(error.__traceback__)
