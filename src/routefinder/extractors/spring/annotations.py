from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from routefinder.domain.models import ANY_METHOD
from routefinder.extractors.spring.nodes import (
    Annotation,
    Literal,
    Reference,
    Value,
    find_first,
)

# plain-substring prefilter; a file without any of these cannot declare endpoints
ENDPOINT_ANNOTATION_KEYWORDS = (
    "@Controller",
    "@RestController",
    "@RequestMapping",
    "@GetMapping",
    "@PostMapping",
    "@PutMapping",
    "@DeleteMapping",
    "@PatchMapping",
    "@FeignClient",
)

HTTP_VERBS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"})


class AnnotationKind(str, Enum):
    CONTROLLER = "controller"
    CLIENT = "client"
    REQUEST_MAPPING = "request_mapping"
    VERB_MAPPING = "verb_mapping"
    OTHER = "other"


_CONTAINER_KINDS = {
    "controller": AnnotationKind.CONTROLLER,
    "restcontroller": AnnotationKind.CONTROLLER,
    "feignclient": AnnotationKind.CLIENT,
}

_SHORTHAND_VERBS = {
    "getmapping": "GET",
    "postmapping": "POST",
    "putmapping": "PUT",
    "deletemapping": "DELETE",
    "patchmapping": "PATCH",
}

_PATH_KEYS = ("value", "path")


def contains_any(text: str, needles: Iterable[str] = ENDPOINT_ANNOTATION_KEYWORDS) -> bool:
    """
    Case-sensitive plain substring check.

    Annotation names are matched case-insensitively once parsed, so a file that
    spells them only in another case (`@getmapping`) is skipped by this
    prefilter; turn `use_prefilter` off to index such files.
    """
    return any(n in text for n in needles)


def annotation_kind(annotation: Annotation) -> AnnotationKind:
    name = annotation.simple_name.lower()
    if not name:
        return AnnotationKind.OTHER
    if name in _CONTAINER_KINDS:
        return _CONTAINER_KINDS[name]
    if name == "requestmapping":
        return AnnotationKind.REQUEST_MAPPING
    if name in _SHORTHAND_VERBS:
        return AnnotationKind.VERB_MAPPING
    return AnnotationKind.OTHER


def is_mapping(annotation: Annotation) -> bool:
    return annotation_kind(annotation) in (AnnotationKind.REQUEST_MAPPING, AnnotationKind.VERB_MAPPING)


def extract_path(annotation: Annotation) -> Optional[str]:
    """
    Path fragment carried by a mapping annotation, or None when it has none.

    Precedence: a single unnamed string literal, then the first `value`/`path`
    argument (in source order) holding a string literal. The two names are
    aliases and never combined.
    """
    if isinstance(annotation.positional, Literal):
        return annotation.positional.value

    for key, value in annotation.named:
        if key in _PATH_KEYS and isinstance(value, Literal):
            return value.value
    return None


def _verb_token(value: Value) -> Optional[str]:
    if isinstance(value, Reference):
        token = value.member
    elif isinstance(value, Literal):
        token = value.value
    else:
        return None
    token = token.strip().upper()
    return token if token in HTTP_VERBS else None


def resolve_http_method(annotation: Annotation) -> str:
    """Verb for a mapping annotation; shorthand annotations always imply their own."""
    name = annotation.simple_name.lower()
    if name in _SHORTHAND_VERBS:
        return _SHORTHAND_VERBS[name]

    for key, value in annotation.named:
        if key != "method":
            continue
        found = find_first(value, lambda v: _verb_token(v) is not None)
        if found is not None:
            return _verb_token(found) or ANY_METHOD
    return ANY_METHOD
