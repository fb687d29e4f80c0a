"""
Pattern-matching reader for Java sources.

Works on raw text with regular expressions plus bracket matching; no grammar.
Comments and literal contents are masked first so braces, parentheses and
`@` inside them never confuse the walk. Literal values are read back from the
unmasked text at the same offsets.
"""
from __future__ import annotations

import re
from typing import Optional

from routefinder.extractors.spring.base import SourceStrategy
from routefinder.extractors.spring.nodes import (
    Annotation,
    ArrayValue,
    ClassDecl,
    CompilationUnit,
    InterfaceDecl,
    Literal,
    Member,
    MethodDecl,
    Opaque,
    Reference,
    Value,
)
from routefinder.extractors.spring.source import (
    LineIndex,
    find_closing,
    mask_source,
    skip_whitespace,
    unescape_java,
)

_IDENT = r"[A-Za-z_$][\w$]*"

_TYPE_DECL = re.compile(rf"(?<![\w$.@])(class|interface|enum|record)\s+({_IDENT})")
_ANNOTATION = re.compile(rf"@\s*({_IDENT}(?:\s*\.\s*{_IDENT})*)")
_NAME_BEFORE_PAREN = re.compile(rf"({_IDENT})\s*$")
_NAMED_ARG = re.compile(rf"\s*({_IDENT})\s*=(?!=)")
_QUALIFIED = re.compile(rf"{_IDENT}(?:\s*\.\s*{_IDENT})*")

# identifiers that can precede "(" in a header without being a method name
_NOT_METHOD_NAMES = frozenset(
    {
        "if", "for", "while", "switch", "catch", "synchronized", "return",
        "new", "throw", "try", "else", "do", "assert", "super", "this",
    }
)


class JavaSourceScanner:
    def __init__(self, text: str):
        self.text = text
        self.masked = mask_source(text)
        self.lines = LineIndex(text)

    def scan(self) -> CompilationUnit:
        members = self._scan_members(0, len(self.masked))
        types = tuple(m for m in members if isinstance(m, (ClassDecl, InterfaceDecl)))
        return CompilationUnit(types=types)

    # ----------------------------
    # declarations
    # ----------------------------

    def _scan_members(self, start: int, end: int) -> list[Member]:
        m = self.masked
        members: list[Member] = []
        seg_start = start
        i = start
        while i < end:
            c = m[i]
            if c == "(":
                i = find_closing(m, i, end) + 1
                continue
            if c == "{":
                close = find_closing(m, i, end)
                member = self._declaration(seg_start, i, close)
                if member is not None:
                    members.append(member)
                i = close + 1
                seg_start = i
                continue
            if c == ";":
                member = self._declaration(seg_start, i, None)
                if member is not None:
                    members.append(member)
                i += 1
                seg_start = i
                continue
            if c == "}":
                # stray closer: unbalanced input, resync after it
                i += 1
                seg_start = i
                continue
            i += 1
        return members

    def _declaration(self, seg_start: int, stop: int, body_end: Optional[int]) -> Optional[Member]:
        header_start = skip_whitespace(self.masked, seg_start, stop)
        if header_start >= stop:
            return None

        located, stripped = self._annotations(header_start, stop)
        paren = stripped.find("(")
        before_paren = stripped if paren == -1 else stripped[:paren]

        type_match = _TYPE_DECL.search(before_paren)
        if type_match is not None:
            kind, name = type_match.group(1), type_match.group(2)
            if body_end is None or kind not in ("class", "interface"):
                return None
            keyword_start = header_start + type_match.start(1)
            members = tuple(self._scan_members(stop + 1, body_end))
            span = self.lines.span(keyword_start, header_start + type_match.end(2))
            decl_cls = ClassDecl if kind == "class" else InterfaceDecl
            return decl_cls(
                name=name,
                annotations=_before(located, keyword_start),
                members=members,
                span=span,
            )

        if paren == -1 or "=" in before_paren:
            return None
        name_match = _NAME_BEFORE_PAREN.search(before_paren)
        if name_match is None or name_match.group(1) in _NOT_METHOD_NAMES:
            return None

        name_start = header_start + name_match.start(1)
        params_close = find_closing(self.masked, header_start + paren, stop)
        span = self.lines.span(name_start, min(params_close, stop - 1) + 1)
        # parameter annotations (@PathVariable, ...) come after the name
        return MethodDecl(
            name=name_match.group(1),
            annotations=_before(located, name_start),
            span=span,
        )

    # ----------------------------
    # annotations
    # ----------------------------

    def _annotations(self, start: int, stop: int) -> tuple[list[tuple[int, Annotation]], str]:
        """(offset, annotation) pairs in a declaration header, plus the header with them blanked out."""
        m = self.masked
        header = list(m[start:stop])
        found: list[tuple[int, Annotation]] = []
        consumed = start

        for match in _ANNOTATION.finditer(m, start, stop):
            a_start = match.start()
            if a_start < consumed:
                continue  # nested inside a previous annotation's arguments
            name = re.sub(r"\s+", "", match.group(1))
            if name == "interface":
                continue

            a_end = match.end()
            positional: Optional[Value] = None
            named: tuple[tuple[str, Value], ...] = ()
            open_idx = skip_whitespace(m, a_end, stop)
            if open_idx < stop and m[open_idx] == "(":
                close = find_closing(m, open_idx, stop)
                positional, named = self._arguments(open_idx + 1, close)
                a_end = min(close + 1, stop)

            for k in range(a_start - start, a_end - start):
                if header[k] != "\n":
                    header[k] = " "
            consumed = a_end
            found.append(
                (
                    a_start,
                    Annotation(
                        name=name,
                        positional=positional,
                        named=named,
                        span=self.lines.span(a_start, a_end),
                    ),
                )
            )

        return found, "".join(header)

    def _arguments(self, start: int, end: int) -> tuple[Optional[Value], tuple[tuple[str, Value], ...]]:
        positional: Optional[Value] = None
        named: list[tuple[str, Value]] = []
        for s, e in self._split_top_level(start, end):
            seg = self.masked[s:e]
            if not seg.strip():
                continue
            key = _NAMED_ARG.match(seg)
            if key is not None:
                named.append((key.group(1), self._value(s + key.end(), e)))
            elif positional is None:
                positional = self._value(s, e)
        return positional, tuple(named)

    def _split_top_level(self, start: int, end: int) -> list[tuple[int, int]]:
        m = self.masked
        parts: list[tuple[int, int]] = []
        depth = 0
        seg = start
        for k in range(start, end):
            c = m[k]
            if c in "({[":
                depth += 1
            elif c in ")}]":
                depth -= 1
            elif c == "," and depth == 0:
                parts.append((seg, k))
                seg = k + 1
        parts.append((seg, end))
        return parts

    def _value(self, start: int, end: int) -> Value:
        m = self.masked
        start = skip_whitespace(m, start, end)
        while end > start and m[end - 1].isspace():
            end -= 1
        if start >= end:
            return Opaque("")

        masked = m[start:end]
        raw = self.text[start:end]

        if masked[0] == "{" and find_closing(m, start, end) == end - 1:
            items = tuple(
                self._value(s, e)
                for s, e in self._split_top_level(start + 1, end - 1)
                if m[s:e].strip()
            )
            return ArrayValue(items)

        if len(masked) >= 2 and masked[0] == '"' and masked[-1] == '"' and not masked[1:-1].strip():
            return Literal(unescape_java(raw[1:-1]))

        if _QUALIFIED.fullmatch(masked):
            parts = [p.strip() for p in masked.split(".")]
            return Reference(qualifier=".".join(parts[:-1]) or None, member=parts[-1])

        return Opaque(raw)


def _before(located: list[tuple[int, Annotation]], offset: int) -> tuple[Annotation, ...]:
    return tuple(ann for pos, ann in located if pos < offset)


class PatternStrategy(SourceStrategy):
    name = "pattern"

    def read(self, text: str) -> CompilationUnit:
        return JavaSourceScanner(text).scan()
