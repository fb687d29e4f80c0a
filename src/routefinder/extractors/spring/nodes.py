"""
Closed node model shared by the pattern scanner and the javalang-backed parser.

Only the structural facts endpoint extraction needs are kept: declarations, their
annotations, annotation argument values and source spans.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Union

# bounded depth for generic searches through annotation values
MAX_SEARCH_DEPTH = 4


@dataclass(frozen=True)
class Span:
    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class Literal:
    value: str


@dataclass(frozen=True)
class Reference:
    # RequestMethod.GET -> qualifier="RequestMethod", member="GET"
    qualifier: Optional[str]
    member: str


@dataclass(frozen=True)
class ArrayValue:
    items: tuple["Value", ...] = ()


@dataclass(frozen=True)
class Opaque:
    # anything else: concatenations, nested annotations, arithmetic
    text: str = ""


Value = Union[Literal, Reference, ArrayValue, Opaque]


@dataclass(frozen=True)
class Annotation:
    name: str
    positional: Optional[Value] = None
    named: tuple[tuple[str, Value], ...] = ()
    span: Optional[Span] = None

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1].strip()


@dataclass(frozen=True)
class MethodDecl:
    name: str
    annotations: tuple[Annotation, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class ClassDecl:
    name: str
    annotations: tuple[Annotation, ...] = ()
    members: tuple["Member", ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class InterfaceDecl:
    name: str
    annotations: tuple[Annotation, ...] = ()
    members: tuple["Member", ...] = ()
    span: Optional[Span] = None


TypeDecl = Union[ClassDecl, InterfaceDecl]
Member = Union[MethodDecl, ClassDecl, InterfaceDecl]


@dataclass(frozen=True)
class CompilationUnit:
    types: tuple[TypeDecl, ...] = field(default_factory=tuple)


def iter_values(value: Value, max_depth: int = MAX_SEARCH_DEPTH) -> Iterator[Value]:
    """Yield `value` and its nested values depth-first, never deeper than `max_depth`."""
    stack: list[tuple[Value, int]] = [(value, 0)]
    while stack:
        node, depth = stack.pop()
        yield node
        if isinstance(node, ArrayValue) and depth < max_depth:
            stack.extend((item, depth + 1) for item in reversed(node.items))


def find_first(
    value: Optional[Value],
    predicate: Callable[[Value], bool],
    max_depth: int = MAX_SEARCH_DEPTH,
) -> Optional[Value]:
    if value is None:
        return None
    for node in iter_values(value, max_depth=max_depth):
        if predicate(node):
            return node
    return None
