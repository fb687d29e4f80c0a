from __future__ import annotations

from typing import Iterable, Optional

from routefinder.domain.models import Endpoint


class IndexStore:
    """In-memory read model: file path -> endpoints declared in that file.

    Only files with at least one endpoint have an entry, so `path in store`
    answers "does this file currently declare endpoints".
    """

    def __init__(self) -> None:
        self._by_file: dict[str, list[Endpoint]] = {}

    def set(self, file_path: str, endpoints: Iterable[Endpoint]) -> None:
        items = list(endpoints)
        if items:
            self._by_file[file_path] = items
        else:
            self._by_file.pop(file_path, None)

    def files(self) -> list[str]:
        return list(self._by_file)

    def get(self, file_path: str) -> Optional[list[Endpoint]]:
        found = self._by_file.get(file_path)
        return list(found) if found is not None else None

    def remove(self, file_path: str) -> bool:
        return self._by_file.pop(file_path, None) is not None

    def clear(self) -> None:
        self._by_file = {}

    def snapshot(self) -> list[Endpoint]:
        out: list[Endpoint] = []
        for endpoints in list(self._by_file.values()):
            out.extend(endpoints)
        return out

    def total_count(self) -> int:
        return sum(len(v) for v in list(self._by_file.values()))

    def __len__(self) -> int:
        return len(self._by_file)

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._by_file
