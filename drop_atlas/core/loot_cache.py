from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from .errors import IndexConsistencyError
from .models import CatalogId, ResolvedDrop
from .resolver import DEFAULT_MAX_RULE_NODES, NameLookup, RuleInput, resolve_detailed

logger = logging.getLogger(__name__)

RuleLookup = Callable[[CatalogId], RuleInput]
SourcePredicate = Callable[[CatalogId], bool]


@dataclass(slots=True)
class SourceScan:
    forward: dict[CatalogId, tuple[ResolvedDrop, ...]] = field(default_factory=dict)
    skipped: list[CatalogId] = field(default_factory=list)
    recovered: list[CatalogId] = field(default_factory=list)


def scan_sources(
    source_ids: Iterable[CatalogId],
    rule_lookup: RuleLookup,
    name_of: NameLookup,
    *,
    include: SourcePredicate | None = None,
    max_nodes: int = DEFAULT_MAX_RULE_NODES,
    kind: str = "source",
) -> SourceScan:
    """Resolve every source's rule tree in catalog order.

    A source whose predicate, rule lookup or resolution raises is skipped and
    the scan moves on. Sources that resolve to nothing are left out of
    ``forward``. Duplicate ids keep their first occurrence.
    """
    scan = SourceScan()
    for source_id in source_ids:
        if source_id in scan.forward:
            logger.debug("Duplicate %s id %r ignored.", kind, source_id)
            continue
        try:
            if include is not None and not include(source_id):
                continue
            rules = rule_lookup(source_id)
            resolution = resolve_detailed(rules, name_of, max_nodes=max_nodes)
        except LookupError as exc:
            logger.debug("Skipping %s %r: %s", kind, source_id, exc)
            scan.skipped.append(source_id)
            continue
        except Exception:
            logger.warning("Skipping %s %r: resolution failed.", kind, source_id, exc_info=True)
            scan.skipped.append(source_id)
            continue

        if resolution.recovered:
            scan.recovered.append(source_id)
            for failure in resolution.failures:
                logger.debug("%s %r rule %s: %s", kind.capitalize(), source_id, failure.path, failure.reason)
        if resolution.empty:
            continue
        scan.forward[source_id] = tuple(resolution.drops)
    return scan


class LootCache:
    """Entity -> resolved drops, with the inverted item -> entities index.

    The reverse index is derived from the forward one at construction, in
    forward (catalog) order, so ``first_entity_that_drops`` is simply the first
    entity the scan met. It is not the most common or most likely source.
    """

    def __init__(
        self,
        forward: Mapping[CatalogId, Iterable[ResolvedDrop]] | None = None,
        *,
        skipped: Iterable[CatalogId] = (),
        recovered: Iterable[CatalogId] = (),
    ) -> None:
        self._forward: dict[CatalogId, tuple[ResolvedDrop, ...]] = {
            entity_id: tuple(drops) for entity_id, drops in (forward or {}).items()
        }
        sources: dict[CatalogId, dict[CatalogId, None]] = {}
        for entity_id, drops in self._forward.items():
            for drop in drops:
                sources.setdefault(drop.item_id, {}).setdefault(entity_id, None)
        self._reverse = {item_id: frozenset(entities) for item_id, entities in sources.items()}
        self._first_source = {item_id: next(iter(entities)) for item_id, entities in sources.items()}
        self._skipped = tuple(skipped)
        self._recovered = tuple(recovered)

    @classmethod
    def build(
        cls,
        entity_ids: Iterable[CatalogId],
        rule_lookup: RuleLookup,
        name_of: NameLookup,
        *,
        include: SourcePredicate | None = None,
        max_nodes: int = DEFAULT_MAX_RULE_NODES,
    ) -> "LootCache":
        scan = scan_sources(
            entity_ids,
            rule_lookup,
            name_of,
            include=include,
            max_nodes=max_nodes,
            kind="entity",
        )
        cache = cls(scan.forward, skipped=scan.skipped, recovered=scan.recovered)
        if __debug__:
            cache.verify()
        logger.info(
            "Loot cache built: %d entities, %d drops, %d items, %d skipped, %d recovered.",
            cache.count(),
            cache.total_outcome_count(),
            len(cache._reverse),
            len(scan.skipped),
            len(scan.recovered),
        )
        return cache

    @property
    def forward(self) -> Mapping[CatalogId, tuple[ResolvedDrop, ...]]:
        return MappingProxyType(self._forward)

    @property
    def reverse(self) -> Mapping[CatalogId, frozenset[CatalogId]]:
        return MappingProxyType(self._reverse)

    def drops_of(self, entity_id: CatalogId) -> tuple[ResolvedDrop, ...]:
        return self._forward.get(entity_id, ())

    def entities_that_drop(self, item_id: CatalogId) -> frozenset[CatalogId]:
        return self._reverse.get(item_id, frozenset())

    def first_entity_that_drops(self, item_id: CatalogId) -> CatalogId | None:
        return self._first_source.get(item_id)

    def drops_item(self, entity_id: CatalogId, item_id: CatalogId) -> bool:
        return entity_id in self.entities_that_drop(item_id)

    def entity_ids(self) -> tuple[CatalogId, ...]:
        return tuple(self._forward)

    def item_ids(self) -> tuple[CatalogId, ...]:
        return tuple(self._reverse)

    def count(self) -> int:
        return len(self._forward)

    def total_outcome_count(self) -> int:
        return sum(len(drops) for drops in self._forward.values())

    def skipped_entities(self) -> tuple[CatalogId, ...]:
        return self._skipped

    def recovered_entities(self) -> tuple[CatalogId, ...]:
        return self._recovered

    def subset(self, include: SourcePredicate) -> "LootCache":
        """Same drops restricted to the entities ``include`` accepts, in the same order."""
        forward = {entity_id: drops for entity_id, drops in self._forward.items() if include(entity_id)}
        return LootCache(
            forward,
            skipped=self._skipped,
            recovered=[entity_id for entity_id in self._recovered if entity_id in forward],
        )

    def verify(self) -> None:
        for entity_id, drops in self._forward.items():
            for drop in drops:
                if entity_id not in self._reverse.get(drop.item_id, ()):
                    raise IndexConsistencyError(
                        f"Entity {entity_id!r} drops item {drop.item_id!r} but the reverse index does not list it."
                    )
        for item_id, entities in self._reverse.items():
            if self._first_source.get(item_id) not in entities:
                raise IndexConsistencyError(f"First source for item {item_id!r} is not among its sources.")
