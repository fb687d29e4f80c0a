from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from routefinder.domain.models import Endpoint
from routefinder.errors import SourceParseError
from routefinder.extractors.spring.annotations import contains_any
from routefinder.extractors.spring.base import SourceStrategy
from routefinder.extractors.spring.endpoints import extract_endpoints
from routefinder.extractors.spring.pattern import PatternStrategy
from routefinder.extractors.spring.structural import StructuralStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrimaryOutcome:
    endpoints: list[Endpoint]
    needs_fallback: bool


class SpringEndpointParser:
    """
    Endpoint extraction for one Java file.

    The fast pattern reader runs first; its result is returned as-is when it finds
    at least one endpoint. Only an empty (or failed) primary pass consults the
    structural reader. A file failing both yields no endpoints.

    One instance is meant to be built once and shared by the index manager.
    """

    def __init__(
        self,
        use_prefilter: bool = True,
        primary: Optional[SourceStrategy] = None,
        fallback: Optional[SourceStrategy] = None,
    ):
        self.use_prefilter = use_prefilter
        self.primary = primary or PatternStrategy()
        self.fallback = fallback or StructuralStrategy()

    def is_candidate(self, text: str) -> bool:
        if not self.use_prefilter:
            return True
        return contains_any(text)

    def parse(self, file_path: str, text: str) -> list[Endpoint]:
        if not self.is_candidate(text):
            return []

        outcome = self._run_primary(file_path, text)
        if not outcome.needs_fallback:
            return outcome.endpoints

        logger.debug("No endpoints from %s reader in %s, trying %s", self.primary.name, file_path, self.fallback.name)
        try:
            unit = self.fallback.read(text)
        except SourceParseError as exc:
            logger.debug("Structural parse failed for %s: %s", file_path, exc)
            return []
        return extract_endpoints(unit, file_path)

    def parse_file(self, path: Path) -> list[Endpoint]:
        """Read and parse a file. OSError propagates to the caller."""
        text = path.read_bytes().decode("utf-8", errors="ignore")
        return self.parse(str(path), text)

    def _run_primary(self, file_path: str, text: str) -> PrimaryOutcome:
        try:
            unit = self.primary.read(text)
        except Exception:
            logger.warning("%s reader failed on %s", self.primary.name, file_path, exc_info=True)
            return PrimaryOutcome(endpoints=[], needs_fallback=True)

        endpoints = extract_endpoints(unit, file_path)
        return PrimaryOutcome(endpoints=endpoints, needs_fallback=not endpoints)
