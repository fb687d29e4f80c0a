from __future__ import annotations

import logging
from typing import Iterable

from routefinder.domain.models import Endpoint

logger = logging.getLogger(__name__)

# within a field: exact > prefix > substring; method name and path outrank class name
METHOD_EXACT = 100
METHOD_PREFIX = 80
METHOD_CONTAINS = 60
PATH_EXACT = 90
PATH_PREFIX = 70
PATH_CONTAINS = 50
CLASS_CONTAINS = 40


def _field_score(value: str, query: str, exact: int, prefix: int, contains: int) -> int:
    if value == query:
        return exact
    if value.startswith(query):
        return prefix
    if query in value:
        return contains
    return 0


def score_endpoint(endpoint: Endpoint, query: str) -> int:
    """Additive relevance of `endpoint` for an already lower-cased, stripped query."""
    score = _field_score(endpoint.method_name.lower(), query, METHOD_EXACT, METHOD_PREFIX, METHOD_CONTAINS)
    score += _field_score(endpoint.full_path.lower(), query, PATH_EXACT, PATH_PREFIX, PATH_CONTAINS)
    if query in endpoint.class_name.lower():
        score += CLASS_CONTAINS
    return score


class SearchEngine:
    def search(self, query: str, endpoints: Iterable[Endpoint]) -> list[Endpoint]:
        """
        Rank endpoints against a free-text query.

        Zero-score endpoints are dropped, the rest sorted by descending score with
        ties kept in input order, then de-duplicated on (class, full path, verb)
        keeping the best-scoring instance.
        """
        q = (query or "").strip().lower()
        if not q:
            return []

        scored: list[tuple[int, Endpoint]] = []
        total = 0
        for endpoint in endpoints:
            total += 1
            score = score_endpoint(endpoint, q)
            if score > 0:
                scored.append((score, endpoint))

        # list.sort is stable: equal scores keep insertion order
        scored.sort(key=lambda pair: pair[0], reverse=True)

        seen: set[tuple[str, str, str]] = set()
        results: list[Endpoint] = []
        for _, endpoint in scored:
            key = (endpoint.class_name, endpoint.full_path, endpoint.http_method)
            if key in seen:
                continue
            seen.add(key)
            results.append(endpoint)

        logger.debug(
            "Search %r: %d matches of %d endpoints, %d after de-duplication",
            query,
            len(scored),
            total,
            len(results),
        )
        return results
