from __future__ import annotations


class DropAtlasError(Exception):
    """Base class for engine errors."""


class MalformedRuleNode(DropAtlasError, ValueError):
    """A rule node references invalid data. Always recovered by the resolver."""


class CyclicRuleGraph(DropAtlasError, RuntimeError):
    """Traversal hit the visited-node ceiling. Recorded, never raised to callers."""

    def __init__(self, max_nodes: int) -> None:
        self.max_nodes = max_nodes
        super().__init__(f"Rule traversal stopped at the {max_nodes} node ceiling (cyclic or oversized rule graph).")


class MissingCatalogEntry(DropAtlasError, LookupError):
    """An id handed out by the catalog cannot be materialized."""


class IndexConsistencyError(DropAtlasError, AssertionError):
    """Forward and reverse indices disagree. A programming error, never recovered."""
