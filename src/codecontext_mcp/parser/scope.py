"""Line and brace-depth lookups used by the regex-based parsers.

Braces are counted naively (braces inside strings and comments count too),
which is the same approximation a line-by-line brace counter makes.
"""

import re
from bisect import bisect_left, bisect_right


_BRACES = re.compile(r"[{}]")


class LineIndex:
    """Maps character offsets to 1-based line and column numbers."""

    def __init__(self, text: str):
        self._starts = [0]
        pos = text.find("\n")
        while pos != -1:
            self._starts.append(pos + 1)
            pos = text.find("\n", pos + 1)

    def line_of(self, offset: int) -> int:
        return bisect_right(self._starts, offset)

    def position(self, offset: int) -> tuple[int, int]:
        line = self.line_of(offset)
        return line, offset - self._starts[line - 1] + 1


class BraceMap:
    """Brace nesting depth at any offset of a text."""

    def __init__(self, text: str):
        self._positions: list[int] = []
        self._depths: list[int] = []       # Depth after the brace at the same index
        depth = 0
        for match in _BRACES.finditer(text):
            depth += 1 if match.group() == "{" else -1
            self._positions.append(match.start())
            self._depths.append(depth)

    def depth_at(self, offset: int) -> int:
        """Depth just before the character at ``offset``."""
        idx = bisect_left(self._positions, offset)
        return self._depths[idx - 1] if idx > 0 else 0

    def block_end(self, open_offset: int) -> int:
        """Offset of the brace closing the block opened at ``open_offset``.

        Returns -1 when the block is never closed.
        """
        idx = bisect_left(self._positions, open_offset)
        if idx >= len(self._positions) or self._positions[idx] != open_offset:
            return -1
        outer = self._depths[idx] - 1
        for j in range(idx + 1, len(self._positions)):
            if self._depths[j] == outer:
                return self._positions[j]
        return -1


def last_brace_cut(text: str, start: int, size: int) -> int:
    """End offset for a chunk beginning at ``start``.

    The chunk is trimmed back to just after its last ``}`` so a construct is
    not split, unless the chunk has none or reaches the end of the text.
    """
    end = min(start + size, len(text))
    if end == len(text):
        return end
    cut = text.rfind("}", start, end)
    return cut + 1 if cut > start else end
