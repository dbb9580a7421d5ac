from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from .catalog import entity_kind, is_boss_like, is_mini_boss
from .engine import DropAtlas
from .models import CatalogEntity, CatalogId
from .obtain import ObtainResult, recipe_count


@dataclass(frozen=True, slots=True)
class BossDrop:
    boss_id: CatalogId
    boss_name: str
    mod: str
    mini_boss: bool
    drop_chance: float
    min_stack: int
    max_stack: int
    conditions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ItemProvenance:
    item_id: CatalogId
    name: str
    obtain: ObtainResult
    recipes: int
    dropped_by: tuple[CatalogId, ...] = ()
    container_id: CatalogId | None = None
    boss_drops: tuple[BossDrop, ...] = ()

    def obtained_by(self) -> dict[str, Any]:
        return obtained_by(self.obtain)


def obtained_by(result: ObtainResult) -> dict[str, Any]:
    """Export shape of a classification: the method plus a source id, 0 when none."""
    return {
        "method": result.label,
        "id": result.source_id if result.source_id is not None else 0,
    }


def boss_drops_for(atlas: DropAtlas, item_id: CatalogId) -> list[BossDrop]:
    sources = atlas.loot.entities_that_drop(item_id)
    drops: list[BossDrop] = []
    for entity_id in atlas.loot.entity_ids():
        if entity_id not in sources:
            continue
        entity = atlas.catalog.entity_by_id.get(entity_id)
        if entity is None or not is_boss_like(entity):
            continue
        for drop in atlas.loot.drops_of(entity_id):
            if drop.item_id != item_id:
                continue
            drops.append(
                BossDrop(
                    boss_id=entity_id,
                    boss_name=entity.name,
                    mod=entity.mod,
                    mini_boss=is_mini_boss(entity),
                    drop_chance=drop.drop_chance,
                    min_stack=drop.min_stack,
                    max_stack=drop.max_stack,
                    conditions=tuple(drop.condition_names()),
                )
            )
    return drops


def item_provenance(atlas: DropAtlas, item_id: CatalogId) -> ItemProvenance | None:
    item = atlas.catalog.find_item(item_id)
    if item is None:
        return None
    sources = atlas.loot.entities_that_drop(item_id)
    return ItemProvenance(
        item_id=item_id,
        name=item.name,
        obtain=atlas.classify(item_id),
        recipes=recipe_count(atlas.classifier.recipe_index, item_id),
        dropped_by=tuple(entity_id for entity_id in atlas.loot.entity_ids() if entity_id in sources),
        container_id=atlas.containers.container_of(item_id),
        boss_drops=tuple(boss_drops_for(atlas, item_id)),
    )


def entity_loot_table(atlas: DropAtlas, entity_id: CatalogId) -> list[dict[str, Any]]:
    return [drop.to_dict() for drop in atlas.loot.drops_of(entity_id)]


def container_mappings(atlas: DropAtlas) -> dict[CatalogId, list[CatalogId]]:
    return atlas.containers.mappings()


def bosses_by_mod(atlas: DropAtlas) -> dict[str, list[CatalogEntity]]:
    result: dict[str, list[CatalogEntity]] = {}
    for entity in atlas.catalog.entities:
        if entity.name.strip() and is_boss_like(entity):
            result.setdefault(entity.mod, []).append(entity)
    return result


def entity_summary(entity: CatalogEntity, atlas: DropAtlas) -> dict[str, Any]:
    return {
        "id": entity.id,
        "name": entity.name,
        "type": entity_kind(entity),
        "life": entity.life,
        "rarity": entity.rarity,
        "isBoss": entity.boss,
        "isTownNPC": entity.town_npc,
        "lootTable": entity_loot_table(atlas, entity.id),
        "mod": entity.mod,
    }


def _signature_payload(atlas: DropAtlas) -> dict[str, Any]:
    return {
        "loot": [[str(entity_id), entity_loot_table(atlas, entity_id)] for entity_id in atlas.loot.entity_ids()],
        "containers": [
            [str(container_id), [drop.to_dict() for drop in atlas.containers.contents_of(container_id)]]
            for container_id in atlas.containers.container_ids()
        ],
        "obtain": [
            [str(item_id), obtained_by(atlas.classify(item_id))]
            for item_id in atlas.catalog.item_ids()
        ],
    }


def index_signature(atlas: DropAtlas) -> str:
    """Short hash of every index, stable for a given catalog and settings."""
    payload = _signature_payload(atlas)
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()[:16]
