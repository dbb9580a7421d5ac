from __future__ import annotations

import logging
from dataclasses import dataclass

from .catalog import is_hostile
from .container_cache import ContainerCache
from .loader import CatalogBundle
from .loot_cache import LootCache
from .models import CatalogId
from .obtain import ObtainClassifier, ObtainResult
from .settings import EngineSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DropAtlas:
    """Every index for one catalog snapshot. Rebuild it when the catalog changes.

    ``loot`` holds every named entity's drops for loot tables; ``sources`` is
    its hostile-only view, the one item classification reads.
    """

    catalog: CatalogBundle
    settings: EngineSettings
    loot: LootCache
    sources: LootCache
    containers: ContainerCache
    classifier: ObtainClassifier

    def classify(self, item_id: CatalogId) -> ObtainResult:
        return self.classifier.classify(item_id)


def build_atlas(
    catalog: CatalogBundle,
    settings: EngineSettings | None = None,
    *,
    hostile_only: bool = False,
) -> DropAtlas:
    settings = settings or EngineSettings()
    max_nodes = settings.resolver.max_rule_nodes

    container_patterns = tuple(settings.containers.name_patterns)

    def is_container(item_id: CatalogId) -> bool:
        return catalog.is_container(item_id, container_patterns)

    def include_entity(entity_id: CatalogId) -> bool:
        return is_hostile(catalog.entity(entity_id))

    include = include_entity if hostile_only else None
    loot = LootCache.build(
        catalog.entity_ids(),
        catalog.entity_rules,
        catalog.display_name,
        include=include,
        max_nodes=max_nodes,
    )
    containers = ContainerCache.build(
        catalog.item_ids(),
        is_container,
        catalog.item_rules,
        catalog.display_name,
        max_nodes=max_nodes,
    )
    sources = loot if hostile_only else loot.subset(include_entity)
    classifier = ObtainClassifier(
        catalog.recipe_index(),
        sources,
        containers,
        item_lookup=catalog.find_item,
        settings=settings.fallback,
    )
    logger.info(
        "Drop atlas ready: %d entities, %d hostile sources, %d containers.",
        loot.count(),
        sources.count(),
        containers.count(),
    )
    return DropAtlas(
        catalog=catalog,
        settings=settings,
        loot=loot,
        sources=sources,
        containers=containers,
        classifier=classifier,
    )
