from __future__ import annotations

from abc import ABC, abstractmethod

from routefinder.extractors.spring.nodes import CompilationUnit


class SourceStrategy(ABC):
    """Turns Java source text into the shared node model."""

    name: str = "unknown"

    @abstractmethod
    def read(self, text: str) -> CompilationUnit: ...
