from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Mapping, Sequence

from .container_cache import ContainerCache
from .loot_cache import LootCache
from .models import CatalogId, CatalogItem
from .settings import FallbackSettings

ObtainLabel = Literal["crafted", "mob_drop", "treasure_bag", "unknown"]
ObtainEvidence = Literal["recipe", "container", "loot_table", "heuristic", "none"]

RecipeIndex = Mapping[CatalogId, Sequence[Any]]
ItemLookup = Callable[[CatalogId], "CatalogItem | None"]


@dataclass(frozen=True, slots=True)
class ObtainResult:
    label: ObtainLabel
    source_id: CatalogId | None = None
    evidence: ObtainEvidence = "none"

    @property
    def low_confidence(self) -> bool:
        """Heuristic mob drops share the label but not the structural evidence."""
        return self.evidence == "heuristic"


UNKNOWN = ObtainResult(label="unknown")


def recipe_count(recipe_index: RecipeIndex | None, item_id: CatalogId) -> int:
    if not recipe_index:
        return 0
    return len(recipe_index.get(item_id) or ())


def looks_like_mob_drop(item: CatalogItem, settings: FallbackSettings | None = None) -> bool:
    settings = settings or FallbackSettings()
    name = item.name.lower()
    if any(pattern.lower() in name for pattern in settings.lore_patterns):
        return True
    if item.rarity >= settings.rarity_threshold:
        return True
    if item.combat_capable and item.rarity >= settings.combat_rarity_threshold:
        return True
    if item.value >= settings.value_threshold and item.rarity >= settings.value_min_rarity:
        return True
    return False


def classify(
    item_id: CatalogId,
    recipe_index: RecipeIndex | None,
    loot_index: LootCache,
    container_index: ContainerCache,
    *,
    item: CatalogItem | None = None,
    settings: FallbackSettings | None = None,
) -> ObtainResult:
    """Assign a provenance label. The checks run in a fixed order; first match wins."""
    if recipe_count(recipe_index, item_id) > 0:
        return ObtainResult(label="crafted", evidence="recipe")

    container_id = container_index.container_of(item_id)
    if container_id is not None:
        return ObtainResult(label="treasure_bag", source_id=container_id, evidence="container")

    if loot_index.entities_that_drop(item_id):
        return ObtainResult(
            label="mob_drop",
            source_id=loot_index.first_entity_that_drops(item_id),
            evidence="loot_table",
        )

    if item is not None and looks_like_mob_drop(item, settings):
        return ObtainResult(label="mob_drop", evidence="heuristic")
    return UNKNOWN


class ObtainClassifier:
    def __init__(
        self,
        recipe_index: RecipeIndex | None,
        loot: LootCache,
        containers: ContainerCache,
        item_lookup: ItemLookup | None = None,
        settings: FallbackSettings | None = None,
    ) -> None:
        self.recipe_index = recipe_index or {}
        self.loot = loot
        self.containers = containers
        self.item_lookup = item_lookup
        self.settings = settings or FallbackSettings()

    def _item(self, item_id: CatalogId) -> CatalogItem | None:
        if self.item_lookup is None:
            return None
        try:
            return self.item_lookup(item_id)
        except LookupError:
            return None

    def classify(self, item_id: CatalogId) -> ObtainResult:
        return classify(
            item_id,
            self.recipe_index,
            self.loot,
            self.containers,
            item=self._item(item_id),
            settings=self.settings,
        )

    def classify_all(self, item_ids: Iterable[CatalogId]) -> dict[CatalogId, ObtainResult]:
        return {item_id: self.classify(item_id) for item_id in item_ids}
