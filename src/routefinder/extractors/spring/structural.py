"""
Structural reader backed by the `javalang` syntax tree.

javalang reports positions for declarations but not for annotations, so spans are
recovered by searching the (masked) source forward from each member's position.
A span that cannot be found is left empty and the extractor falls back to the
method's own span.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

import javalang
from javalang import tree as jtree
from javalang.parser import JavaSyntaxError
from javalang.tokenizer import LexerError

from routefinder.errors import SourceParseError
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
    Span,
    TypeDecl,
    Value,
)
from routefinder.extractors.spring.source import (
    LineIndex,
    find_closing,
    mask_source,
    skip_whitespace,
    unescape_java,
)

logger = logging.getLogger(__name__)


class _Locator:
    """Forward-only search for declaration and annotation spans in one file.

    Declarations are located from the member's reported line onwards. Their
    annotations are searched between the previous member and the declaration's
    name, because the reported line may already be past them.
    """

    def __init__(self, text: str):
        self.masked = mask_source(text)
        self.lines = LineIndex(text)

    def offset_for(self, node: Any, fallback: int) -> int:
        position = getattr(node, "position", None)
        line = getattr(position, "line", None)
        if not line:
            return fallback
        return max(fallback, self.lines.line_start(line))

    def find_annotation(self, name: str, cursor: int, limit: int) -> tuple[Optional[Span], int]:
        simple = re.escape(name.rsplit(".", 1)[-1])
        pattern = re.compile(rf"@\s*(?:[A-Za-z_$][\w$]*\s*\.\s*)*{simple}\b")
        match = pattern.search(self.masked, cursor, limit)
        if match is None:
            return None, cursor
        end = match.end()
        open_idx = skip_whitespace(self.masked, end, limit)
        if open_idx < limit and self.masked[open_idx] == "(":
            end = min(find_closing(self.masked, open_idx, limit) + 1, limit)
        return self.lines.span(match.start(), end), end

    def find_method(self, name: str, cursor: int) -> Optional[tuple[Span, int, int]]:
        """(span, name offset, end offset) of `name(...)`; the span covers name through parameters."""
        match = re.compile(rf"\b{re.escape(name)}\s*\(").search(self.masked, cursor)
        if match is None:
            return None
        close = find_closing(self.masked, match.end() - 1)
        if close >= len(self.masked):
            end = match.start() + len(name)
        else:
            end = close + 1
        return self.lines.span(match.start(), end), match.start(), end

    def find_type(self, keyword: str, name: str, cursor: int) -> Optional[tuple[Span, int, int]]:
        match = re.compile(rf"(?<![\w$.@]){keyword}\s+{re.escape(name)}\b").search(self.masked, cursor)
        if match is None:
            return None
        return self.lines.span(match.start(), match.end()), match.start(), match.end()


class StructuralStrategy(SourceStrategy):
    name = "structural"

    def read(self, text: str) -> CompilationUnit:
        try:
            tree = javalang.parse.parse(text)
        except (JavaSyntaxError, LexerError) as exc:
            raise SourceParseError(f"javalang could not parse source: {exc!r}") from exc
        except Exception as exc:
            # javalang surfaces some malformed input as plain Python errors
            raise SourceParseError(f"javalang failed on source: {exc!r}") from exc

        locator = _Locator(text)
        types: list[TypeDecl] = []
        cursor = 0
        for node in getattr(tree, "types", None) or []:
            decl, cursor = self._type_decl(node, locator, cursor)
            if decl is not None:
                types.append(decl)
        return CompilationUnit(types=tuple(types))

    # ----------------------------
    # declarations
    # ----------------------------

    def _type_decl(self, node: Any, locator: _Locator, cursor: int) -> tuple[Optional[TypeDecl], int]:
        if isinstance(node, jtree.ClassDeclaration):
            decl_cls, keyword = ClassDecl, "class"
        elif isinstance(node, jtree.InterfaceDeclaration):
            decl_cls, keyword = InterfaceDecl, "interface"
        else:
            return None, cursor

        found = locator.find_type(keyword, node.name, locator.offset_for(node, cursor))
        if found is None:
            span, limit, after = None, len(locator.masked), cursor
        else:
            span, limit, after = found
        annotations = self._annotations(node, locator, cursor, limit)
        cursor = after

        members: list[Member] = []
        for child in node.body or []:
            if isinstance(child, jtree.MethodDeclaration):
                method, cursor = self._method_decl(child, locator, cursor)
                members.append(method)
            elif isinstance(child, (jtree.ClassDeclaration, jtree.InterfaceDeclaration)):
                nested, cursor = self._type_decl(child, locator, cursor)
                if nested is not None:
                    members.append(nested)

        return decl_cls(name=node.name, annotations=annotations, members=tuple(members), span=span), cursor

    def _method_decl(self, node: Any, locator: _Locator, cursor: int) -> tuple[MethodDecl, int]:
        found = locator.find_method(node.name, locator.offset_for(node, cursor))
        if found is None:
            span, limit, after = None, len(locator.masked), cursor
        else:
            span, limit, after = found
        annotations = self._annotations(node, locator, cursor, limit)
        return MethodDecl(name=node.name, annotations=annotations, span=span), after

    def _annotations(self, node: Any, locator: _Locator, cursor: int, limit: int) -> tuple[Annotation, ...]:
        out: list[Annotation] = []
        for ann in getattr(node, "annotations", None) or []:
            name = getattr(ann, "name", None)
            if not name:
                logger.debug("Skipping annotation without a name on %s", getattr(node, "name", "?"))
                continue
            span, cursor = locator.find_annotation(name, cursor, limit)
            positional, named = _arguments(getattr(ann, "element", None))
            out.append(Annotation(name=name, positional=positional, named=named, span=span))
        return tuple(out)


def _arguments(element: Any) -> tuple[Optional[Value], tuple[tuple[str, Value], ...]]:
    if element is None:
        return None, ()
    if isinstance(element, list):
        named = tuple(
            (pair.name, _value(pair.value))
            for pair in element
            if isinstance(pair, jtree.ElementValuePair) and pair.name
        )
        return None, named
    return _value(element), ()


def _value(node: Any) -> Value:
    if isinstance(node, jtree.Literal):
        raw = node.value or ""
        if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"') and not raw.startswith('"""'):
            return Literal(unescape_java(raw[1:-1]))
        return Opaque(raw)
    if isinstance(node, jtree.MemberReference):
        return Reference(qualifier=node.qualifier or None, member=node.member)
    if isinstance(node, jtree.ElementArrayValue):
        return ArrayValue(tuple(_value(v) for v in node.values or []))
    return Opaque(type(node).__name__)
