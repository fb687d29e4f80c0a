from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from routefinder.domain.models import ANY_METHOD, Endpoint
from routefinder.extractors.paths import join_paths, raw_path
from routefinder.extractors.spring.annotations import (
    AnnotationKind,
    annotation_kind,
    extract_path,
    is_mapping,
    resolve_http_method,
)
from routefinder.extractors.spring.nodes import (
    Annotation,
    ClassDecl,
    CompilationUnit,
    InterfaceDecl,
    MethodDecl,
    Span,
    TypeDecl,
)


@dataclass(frozen=True)
class ContainerScope:
    """State of the smallest enclosing class/interface declaration."""

    name: str
    class_paths: tuple[str, ...] = ("",)
    is_controller: bool = False
    is_client: bool = False

    @property
    def exposes_endpoints(self) -> bool:
        return self.is_controller or self.is_client

    @classmethod
    def for_declaration(cls, decl: TypeDecl) -> "ContainerScope":
        is_controller = False
        is_client = False
        class_path: Optional[str] = None

        for ann in decl.annotations:
            kind = annotation_kind(ann)
            if kind is AnnotationKind.CONTROLLER:
                is_controller = True
            elif kind is AnnotationKind.CLIENT:
                is_client = True
            elif kind is AnnotationKind.REQUEST_MAPPING:
                found = extract_path(ann)
                if found is not None:
                    class_path = found

        return cls(
            name=decl.name,
            class_paths=(class_path,) if class_path is not None else ("",),
            is_controller=is_controller,
            is_client=is_client,
        )


def extract_endpoints(unit: CompilationUnit, file_path: str) -> list[Endpoint]:
    """
    Emit one Endpoint per (class path x method path) for every mapping-annotated
    method of a controller or remote-client declaration.

    Methods of unflagged declarations are inert even when they carry mapping
    annotations. Nested declarations get their own scope.
    """
    out: list[Endpoint] = []
    for decl in unit.types:
        _visit_type(decl, file_path, out)
    return out


def _visit_type(decl: TypeDecl, file_path: str, out: list[Endpoint]) -> None:
    scope = ContainerScope.for_declaration(decl)
    for member in decl.members:
        if isinstance(member, (ClassDecl, InterfaceDecl)):
            _visit_type(member, file_path, out)
        elif isinstance(member, MethodDecl) and scope.exposes_endpoints:
            out.extend(_method_endpoints(scope, member, file_path))


def _method_endpoints(scope: ContainerScope, method: MethodDecl, file_path: str) -> list[Endpoint]:
    mapping: Optional[Annotation] = None
    for ann in method.annotations:
        if is_mapping(ann):
            # the last mapping annotation on a method wins
            mapping = ann
    if mapping is None:
        return []

    http_method = resolve_http_method(mapping) or ANY_METHOD
    method_path = extract_path(mapping)
    method_paths = (method_path,) if method_path is not None else ("",)

    span = mapping.span or method.span or Span(1, 1, 1, 1)

    endpoints: list[Endpoint] = []
    for class_path in scope.class_paths or ("",):
        for mpath in method_paths:
            endpoints.append(
                Endpoint(
                    full_path=join_paths(class_path, mpath),
                    raw_path=raw_path(class_path, mpath),
                    original_class_path=class_path,
                    original_method_path=mpath,
                    http_method=http_method,
                    class_name=scope.name,
                    method_name=method.name,
                    file_path=file_path,
                    start_line=span.start_line,
                    start_column=span.start_column,
                    end_line=span.end_line,
                    end_column=span.end_column,
                )
            )
    return endpoints
