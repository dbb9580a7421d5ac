from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, TypeVar

from pydantic import TypeAdapter, ValidationError

from .catalog import is_projectile_like, looks_like_container
from .errors import MissingCatalogEntry
from .models import CatalogEntity, CatalogId, CatalogItem, DropRule, Recipe
from .resolver import iter_item_ids
from .settings import DEFAULT_CONTAINER_PATTERNS

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_DIR = Path(__file__).resolve().parents[1] / "content"


class ContentValidationError(ValueError):
    def __init__(self, message: str, details: list[str] | None = None) -> None:
        self.details = details or []
        suffix = "\n".join(self.details)
        super().__init__(f"{message}\n{suffix}" if suffix else message)


@dataclass(slots=True)
class CatalogBundle:
    items: list[CatalogItem]
    entities: list[CatalogEntity]
    recipes: list[Recipe]
    item_by_id: dict[CatalogId, CatalogItem]
    entity_by_id: dict[CatalogId, CatalogEntity]
    recipes_by_output: dict[CatalogId, list[Recipe]]

    def entity_ids(self) -> list[CatalogId]:
        """Named, non-projectile entities in catalog order."""
        return [
            entity.id
            for entity in self.entities
            if entity.name.strip() and not is_projectile_like(entity)
        ]

    def item_ids(self) -> list[CatalogId]:
        return [item.id for item in self.items if item.name.strip()]

    def entity(self, entity_id: CatalogId) -> CatalogEntity:
        try:
            return self.entity_by_id[entity_id]
        except KeyError as exc:
            raise MissingCatalogEntry(f"Unknown entity {entity_id!r}.") from exc

    def item(self, item_id: CatalogId) -> CatalogItem:
        try:
            return self.item_by_id[item_id]
        except KeyError as exc:
            raise MissingCatalogEntry(f"Unknown item {item_id!r}.") from exc

    def find_item(self, item_id: CatalogId) -> CatalogItem | None:
        return self.item_by_id.get(item_id)

    def entity_rules(self, entity_id: CatalogId) -> list[DropRule]:
        return self.entity(entity_id).rules

    def item_rules(self, item_id: CatalogId) -> list[DropRule]:
        return self.item(item_id).rules

    def display_name(self, item_id: CatalogId) -> str | None:
        item = self.item_by_id.get(item_id)
        if item is None:
            return None
        return item.name.strip() or None

    def entity_name(self, entity_id: CatalogId) -> str | None:
        entity = self.entity_by_id.get(entity_id)
        if entity is None:
            return None
        return entity.name.strip() or None

    def is_container(self, item_id: CatalogId, patterns: Sequence[str] = DEFAULT_CONTAINER_PATTERNS) -> bool:
        return looks_like_container(self.item(item_id), patterns)

    def recipe_index(self) -> dict[CatalogId, list[Recipe]]:
        return {item_id: list(recipes) for item_id, recipes in self.recipes_by_output.items()}


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ContentValidationError(f"Missing catalog file: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ContentValidationError(f"Invalid JSON in {path.name}: {exc.msg} at line {exc.lineno}") from exc


def _load_typed_list(path: Path, item_type: type[T]) -> list[T]:
    data = _load_json(path)
    adapter = TypeAdapter(list[item_type])  # type: ignore[index]
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        errors = []
        for issue in exc.errors():
            issue_path = ".".join(str(part) for part in issue.get("loc", [])) or "(root)"
            errors.append(f"{path.name}:{issue_path}: {issue.get('msg', 'validation error')}")
        raise ContentValidationError(f"Schema validation failed for {path.name}.", errors) from exc


def _load_optional_typed_list(path: Path, item_type: type[T]) -> list[T]:
    if not path.exists():
        return []
    return _load_typed_list(path, item_type)


def _assert_unique_ids(kind: str, values: Sequence[Any]) -> None:
    seen: set[CatalogId] = set()
    for entry in values:
        entry_id = entry.id
        if entry_id in seen:
            raise ContentValidationError(f"Duplicate {kind} id '{entry_id}'.")
        seen.add(entry_id)


def _dangling_references(
    items: list[CatalogItem],
    entities: list[CatalogEntity],
    recipes: list[Recipe],
) -> list[str]:
    item_ids = {item.id for item in items}
    problems: list[str] = []

    for entity in entities:
        for item_id in iter_item_ids(entity.rules):
            if item_id not in item_ids:
                problems.append(f"entity '{entity.id}' rules reference missing item '{item_id}'.")
    for item in items:
        for item_id in iter_item_ids(item.rules):
            if item_id not in item_ids:
                problems.append(f"item '{item.id}' rules reference missing item '{item_id}'.")
    for recipe in recipes:
        if recipe.output_item not in item_ids:
            problems.append(f"recipe '{recipe.id}' output references missing item '{recipe.output_item}'.")
        for ingredient in recipe.inputs:
            if ingredient.item_id not in item_ids:
                problems.append(f"recipe '{recipe.id}' input references missing item '{ingredient.item_id}'.")
    return problems


def build_catalog(
    items: Sequence[CatalogItem],
    entities: Sequence[CatalogEntity],
    recipes: Sequence[Recipe] = (),
) -> CatalogBundle:
    items = list(items)
    entities = list(entities)
    recipes = list(recipes)

    _assert_unique_ids("item", items)
    _assert_unique_ids("entity", entities)
    _assert_unique_ids("recipe", recipes)

    # Rules pointing at unknown items resolve to nothing; they are not fatal.
    for problem in _dangling_references(items, entities, recipes):
        logger.warning(problem)

    recipes_by_output: dict[CatalogId, list[Recipe]] = {}
    for recipe in recipes:
        recipes_by_output.setdefault(recipe.output_item, []).append(recipe)

    return CatalogBundle(
        items=items,
        entities=entities,
        recipes=recipes,
        item_by_id={item.id: item for item in items},
        entity_by_id={entity.id: entity for entity in entities},
        recipes_by_output=recipes_by_output,
    )


def load_catalog(catalog_dir: Path | str = DEFAULT_CATALOG_DIR) -> CatalogBundle:
    base_path = Path(catalog_dir)
    items = _load_typed_list(base_path / "items.json", CatalogItem)
    entities = _load_typed_list(base_path / "entities.json", CatalogEntity)
    recipes = _load_optional_typed_list(base_path / "recipes.json", Recipe)
    catalog = build_catalog(items, entities, recipes)
    logger.info(
        "Loaded catalog %s: %d items, %d entities, %d recipes.",
        base_path,
        len(catalog.items),
        len(catalog.entities),
        len(catalog.recipes),
    )
    return catalog
