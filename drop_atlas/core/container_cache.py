from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import IndexConsistencyError
from .loot_cache import RuleLookup, SourcePredicate, scan_sources
from .models import CatalogId, ResolvedDrop
from .resolver import DEFAULT_MAX_RULE_NODES, NameLookup

logger = logging.getLogger(__name__)


class ContainerCache:
    """Container item -> contents, with a single-valued content -> container index.

    The reverse index is first-writer-wins: an item found in several containers
    maps to the first one built, in catalog order. Classification needs one
    canonical container per item, so the others are intentionally dropped.
    """

    def __init__(
        self,
        forward: Mapping[CatalogId, Iterable[ResolvedDrop]] | None = None,
        *,
        skipped: Iterable[CatalogId] = (),
        recovered: Iterable[CatalogId] = (),
    ) -> None:
        self._forward: dict[CatalogId, tuple[ResolvedDrop, ...]] = {
            container_id: tuple(drops) for container_id, drops in (forward or {}).items()
        }
        self._reverse: dict[CatalogId, CatalogId] = {}
        for container_id, drops in self._forward.items():
            for drop in drops:
                self._reverse.setdefault(drop.item_id, container_id)
        self._skipped = tuple(skipped)
        self._recovered = tuple(recovered)

    @classmethod
    def build(
        cls,
        item_ids: Iterable[CatalogId],
        is_container: SourcePredicate,
        rule_lookup: RuleLookup,
        name_of: NameLookup,
        *,
        max_nodes: int = DEFAULT_MAX_RULE_NODES,
    ) -> "ContainerCache":
        scan = scan_sources(
            item_ids,
            rule_lookup,
            name_of,
            include=is_container,
            max_nodes=max_nodes,
            kind="container",
        )
        cache = cls(scan.forward, skipped=scan.skipped, recovered=scan.recovered)
        if __debug__:
            cache.verify()
        logger.info(
            "Container cache built: %d containers, %d item mappings.",
            cache.count(),
            len(cache._reverse),
        )
        return cache

    @property
    def forward(self) -> Mapping[CatalogId, tuple[ResolvedDrop, ...]]:
        return MappingProxyType(self._forward)

    @property
    def reverse(self) -> Mapping[CatalogId, CatalogId]:
        return MappingProxyType(self._reverse)

    def contents_of(self, container_id: CatalogId) -> tuple[ResolvedDrop, ...]:
        return self._forward.get(container_id, ())

    def container_of(self, item_id: CatalogId) -> CatalogId | None:
        return self._reverse.get(item_id)

    def is_content(self, item_id: CatalogId) -> bool:
        return item_id in self._reverse

    def container_ids(self) -> tuple[CatalogId, ...]:
        return tuple(self._forward)

    def mappings(self) -> dict[CatalogId, list[CatalogId]]:
        """Containers mapped to the items whose canonical container they are."""
        result: dict[CatalogId, list[CatalogId]] = {}
        for item_id, container_id in self._reverse.items():
            result.setdefault(container_id, []).append(item_id)
        return {container_id: result[container_id] for container_id in self._forward if container_id in result}

    def count(self) -> int:
        return len(self._forward)

    def total_outcome_count(self) -> int:
        return sum(len(drops) for drops in self._forward.values())

    def skipped_items(self) -> tuple[CatalogId, ...]:
        return self._skipped

    def recovered_items(self) -> tuple[CatalogId, ...]:
        return self._recovered

    def verify(self) -> None:
        for container_id, drops in self._forward.items():
            for drop in drops:
                if drop.item_id not in self._reverse:
                    raise IndexConsistencyError(
                        f"Container {container_id!r} holds item {drop.item_id!r} but the reverse index has no entry."
                    )
        for item_id, container_id in self._reverse.items():
            if not any(drop.item_id == item_id for drop in self._forward.get(container_id, ())):
                raise IndexConsistencyError(
                    f"Item {item_id!r} maps to container {container_id!r}, which does not hold it."
                )
