"""
Manager hierarchy traversal.

``subordinates_of(user_id)`` is the transitive closure of "reports to"
edges rooted at a user: direct reports, their reports, and so on. Raw edges
come from a ``ReportsSource``; this module only owns the traversal.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Mapping, Protocol

logger = logging.getLogger(__name__)


class ReportsSource(Protocol):
    def direct_reports(self, user_id: str) -> Iterable[str]: ...


class MappingReportsSource:
    """``manager_id -> [report ids]`` held in memory. Used by tests and seeding tools."""

    def __init__(self, edges: Mapping[str, Iterable[str]]) -> None:
        self._edges = {manager: tuple(reports) for manager, reports in edges.items()}

    @classmethod
    def from_managers(cls, managers: Mapping[str, str | None]) -> MappingReportsSource:
        """Build from ``user_id -> manager_id`` (the way user records store it)."""
        edges: dict[str, list[str]] = {}
        for user_id, manager_id in managers.items():
            if manager_id is not None:
                edges.setdefault(manager_id, []).append(user_id)
        return cls(edges)

    def direct_reports(self, user_id: str) -> Iterable[str]:
        return self._edges.get(user_id, ())


class SubordinateResolver:
    """
    Breadth-first traversal with a visited set.

    Depth is unbounded, but each user id is enqueued at most once, so total
    work is bounded by the number of users reachable from the root. If the
    data contains a cycle (A -> B -> A) the traversal still terminates; the
    cycle is logged as a data-integrity warning, never raised.
    """

    def __init__(self, source: ReportsSource) -> None:
        self._source = source

    def subordinates_of(self, user_id: str) -> frozenset[str]:
        visited: set[str] = {user_id}
        queue: deque[str] = deque([user_id])
        cycle_logged = False

        while queue:
            current = queue.popleft()
            for report in self._source.direct_reports(current):
                if report in visited:
                    # Each user has a single manager, so a revisit means a cycle.
                    if not cycle_logged:
                        logger.warning(
                            "Hierarchy cycle detected under user_id=%s (edge %s -> %s); traversal stopped at revisit",
                            user_id,
                            current,
                            report,
                        )
                        cycle_logged = True
                    continue
                visited.add(report)
                queue.append(report)

        visited.discard(user_id)
        return frozenset(visited)
