from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD", "TRACE", "ANY"]

# wildcard verb for @RequestMapping without a resolvable `method`
ANY_METHOD: HttpMethod = "ANY"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Endpoint(_CamelModel):
    """One HTTP endpoint declared by an annotated Java method.

    `full_path` is always `join_paths(original_class_path, original_method_path)`.
    Two endpoints are equal when class, full path, verb and file agree; the source
    span and raw fragments do not take part in identity.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    full_path: str
    raw_path: str = ""
    original_class_path: str = ""
    original_method_path: str = ""
    http_method: HttpMethod = ANY_METHOD
    class_name: str
    method_name: str
    file_path: str
    start_line: int = 1
    start_column: int = 1
    end_line: int = 1
    end_column: int = 1

    @property
    def identity(self) -> tuple[str, str, str, str]:
        return (self.class_name, self.full_path, self.http_method, self.file_path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Endpoint):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


class FileCacheEntry(_CamelModel):
    last_modified: int  # st_mtime_ns at extraction time
    endpoints: list[Endpoint] = Field(default_factory=list)


class CacheArtifact(_CamelModel):
    version: str
    last_update: int = 0  # epoch millis
    file_data: dict[str, FileCacheEntry] = Field(default_factory=dict)
