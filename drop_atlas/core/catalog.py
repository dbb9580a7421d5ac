from __future__ import annotations

from typing import Iterable, Literal

from .models import CatalogEntity, CatalogItem
from .settings import DEFAULT_CONTAINER_PATTERNS

EntityKind = Literal["boss", "npc", "critter", "elite", "mob"]


def looks_like_container(item: CatalogItem, patterns: Iterable[str] = DEFAULT_CONTAINER_PATTERNS) -> bool:
    if item.container:
        return True
    name = item.name.lower()
    if not name:
        return False
    return any(pattern.lower() in name for pattern in patterns)


def is_projectile_like(entity: CatalogEntity) -> bool:
    return entity.life <= 1 and not entity.town_npc


def entity_kind(entity: CatalogEntity) -> EntityKind:
    if entity.boss:
        return "boss"
    if entity.town_npc:
        return "npc"
    if entity.friendly:
        return "critter"
    if entity.life > 100 and entity.damage > 30:
        return "elite"
    return "mob"


def is_mini_boss(entity: CatalogEntity) -> bool:
    if entity.boss or entity.town_npc or entity.friendly:
        return False
    return entity.life > 1000 and (entity.rarity > 0 or entity.value > 10_000)


def is_boss_like(entity: CatalogEntity) -> bool:
    return entity.boss or is_mini_boss(entity)


def is_hostile(entity: CatalogEntity) -> bool:
    return not entity.town_npc and not entity.friendly
