"""Grouping hash for clustering duplicate events.

The hash is a 32-bit rolling polynomial over UTF-16 code units, so
the same input produces the same key as JavaScript clients using
the classic ``(h << 5) - h + c`` string hash. Collisions are possible
and accepted: grouping is best-effort, not a correctness boundary.
"""

from collections.abc import Iterable

from .models import StackFrame

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))


class GroupingHasher:
    """Produces stable grouping hashes from messages.

    All methods are static as the class carries no state.
    """

    @staticmethod
    def hash(message: str, extra: str | None = None) -> str:
        """Hash ``message`` (joined with ``extra`` by a colon when given)."""
        content = f"{message}:{extra}" if extra else message
        encoded = content.encode("utf-16-le", errors="surrogatepass")

        h = 0
        for i in range(0, len(encoded), 2):
            code_unit = encoded[i] | (encoded[i + 1] << 8)
            h = _to_int32((h << 5) - h + code_unit)
        return _to_base36(h)

    @staticmethod
    def stack_signature(frames: Iterable[StackFrame]) -> str:
        """Strip line numbers, keep file + function.

        Line numbers change frequently and shouldn't split groups.
        """
        return "|".join(f"{frame.filename}:{frame.function}" for frame in frames)
