from __future__ import annotations

import bisect

from routefinder.extractors.spring.nodes import Span


def mask_source(text: str) -> str:
    """
    Blank out comments and the contents of string/char literals.

    The result has exactly the same length and line breaks as `text`, so offsets
    found in the masked text index straight into the original. Quote characters
    are kept so literal boundaries stay visible.
    """
    out = list(text)
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch == "/" and nxt == "/":
            j = text.find("\n", i)
            j = n if j == -1 else j
            _blank(out, i, j)
            i = j
            continue

        if ch == "/" and nxt == "*":
            j = text.find("*/", i + 2)
            j = n if j == -1 else j + 2
            _blank(out, i, j)
            i = j
            continue

        if text.startswith('"""', i):
            j = text.find('"""', i + 3)
            if j == -1:
                _blank(out, i + 3, n)
                i = n
            else:
                _blank(out, i + 3, j)
                i = j + 3
            continue

        if ch == '"' or ch == "'":
            j = i + 1
            while j < n and text[j] != ch and text[j] != "\n":
                j += 2 if text[j] == "\\" else 1
            j = min(j, n)
            _blank(out, i + 1, j)
            i = j + 1 if j < n and text[j] == ch else j
            continue

        i += 1
    return "".join(out)


def _blank(out: list[str], start: int, end: int) -> None:
    for k in range(start, min(end, len(out))):
        if out[k] != "\n":
            out[k] = " "


def find_closing(masked: str, open_index: int, limit: int | None = None) -> int:
    """
    Index of the bracket closing the one at `open_index`, or `limit` when the
    input ends first. Only the bracket kind found at `open_index` is counted.
    """
    limit = len(masked) if limit is None else limit
    open_ch = masked[open_index]
    close_ch = {"(": ")", "{": "}", "[": "]"}[open_ch]
    depth = 0
    for k in range(open_index, limit):
        c = masked[k]
        if c == open_ch:
            depth += 1
        elif c == close_ch:
            depth -= 1
            if depth == 0:
                return k
    return limit


def skip_whitespace(masked: str, index: int, limit: int | None = None) -> int:
    limit = len(masked) if limit is None else limit
    while index < limit and masked[index].isspace():
        index += 1
    return index


class LineIndex:
    """Offset <-> 1-based line/column conversion for one source text."""

    def __init__(self, text: str):
        self._starts = [0]
        for k, c in enumerate(text):
            if c == "\n":
                self._starts.append(k + 1)
        self._length = len(text)

    def position(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, self._length))
        line = bisect.bisect_right(self._starts, offset) - 1
        return line + 1, offset - self._starts[line] + 1

    def line_start(self, line: int) -> int:
        if line < 1:
            return 0
        if line > len(self._starts):
            return self._length
        return self._starts[line - 1]

    def span(self, start: int, end: int) -> Span:
        """Span from `start` up to and including the character before `end`."""
        start_line, start_column = self.position(start)
        end_line, end_column = self.position(max(start, end - 1))
        return Span(start_line, start_column, end_line, end_column)


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0", "s": " "}


def unescape_java(body: str) -> str:
    """Decode the common backslash escapes of a Java string literal body."""
    if "\\" not in body:
        return body
    out: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)
