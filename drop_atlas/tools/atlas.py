from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from drop_atlas.core.engine import DropAtlas, build_atlas
from drop_atlas.core.loader import DEFAULT_CATALOG_DIR, ContentValidationError, load_catalog
from drop_atlas.core.models import CatalogId, ResolvedDrop
from drop_atlas.core.report import index_signature, item_provenance
from drop_atlas.core.settings import load_settings
from drop_atlas.services.logger import configure_logging

app = typer.Typer(add_completion=False, help="Inspect resolved drop tables, containers and item provenance.")
console = Console()


def _catalog_option():
    return typer.Option(DEFAULT_CATALOG_DIR, "--catalog", help="Catalog directory with items/entities JSON.")


def _settings_option():
    return typer.Option(None, "--settings", help="Engine settings JSON file.")


def _log_dir_option():
    return typer.Option(None, "--log-dir", help="Write latest.log into this directory.")


def _hostile_option():
    return typer.Option(False, "--hostile-only", help="Leave town NPCs and critters out of the loot tables too.")


def _normalize_id(raw_id: str) -> CatalogId:
    try:
        return int(raw_id)
    except ValueError:
        return raw_id


def _load_atlas(catalog: Path, settings_path: Path | None, log_dir: Path | None, hostile_only: bool) -> DropAtlas:
    configure_logging(log_dir, level=logging.WARNING)
    try:
        settings = load_settings(settings_path)
        bundle = load_catalog(catalog)
    except ContentValidationError as exc:
        console.print(f"[bold red]Catalog load failed:[/bold red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    except ValidationError as exc:
        console.print(f"[bold red]Invalid settings:[/bold red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    return build_atlas(bundle, settings, hostile_only=hostile_only)


def _drop_table(title: str, drops: tuple[ResolvedDrop, ...]) -> Table:
    table = Table(title=title)
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Chance", justify="right")
    table.add_column("Stack", justify="right")
    table.add_column("Conditions", style="magenta")
    for drop in drops:
        table.add_row(
            str(drop.item_id),
            drop.display_name,
            f"{drop.drop_chance:.2%}",
            f"{drop.min_stack}-{drop.max_stack}" if drop.min_stack != drop.max_stack else str(drop.min_stack),
            ", ".join(drop.condition_names()) or "-",
        )
    return table


@app.command()
def summary(
    catalog: Path = _catalog_option(),
    settings: Optional[Path] = _settings_option(),
    log_dir: Optional[Path] = _log_dir_option(),
    hostile_only: bool = _hostile_option(),
) -> None:
    """Index sizes and the deterministic index signature."""
    atlas = _load_atlas(catalog, settings, log_dir, hostile_only)

    labels: dict[str, int] = {}
    heuristic = 0
    for item_id in atlas.catalog.item_ids():
        result = atlas.classify(item_id)
        labels[result.label] = labels.get(result.label, 0) + 1
        if result.low_confidence:
            heuristic += 1

    table = Table(title="Drop Atlas Summary")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Entities with drops", str(atlas.loot.count()))
    table.add_row("Entity drops", str(atlas.loot.total_outcome_count()))
    table.add_row("Hostile sources", str(atlas.sources.count()))
    table.add_row("Containers", str(atlas.containers.count()))
    table.add_row("Container drops", str(atlas.containers.total_outcome_count()))
    table.add_row("Skipped entities", str(len(atlas.loot.skipped_entities())))
    table.add_row("Recovered entities", str(len(atlas.loot.recovered_entities())))
    for label in ("crafted", "treasure_bag", "mob_drop", "unknown"):
        table.add_row(f"Items: {label}", str(labels.get(label, 0)))
    table.add_row("Heuristic mob drops", str(heuristic))
    console.print(table)
    console.print(f"\n[bold green]Index signature:[/bold green] {index_signature(atlas)}")


@app.command()
def entity(
    entity_id: str = typer.Argument(..., help="Entity id."),
    catalog: Path = _catalog_option(),
    settings: Optional[Path] = _settings_option(),
    log_dir: Optional[Path] = _log_dir_option(),
    hostile_only: bool = _hostile_option(),
) -> None:
    """Resolved loot table of one entity."""
    atlas = _load_atlas(catalog, settings, log_dir, hostile_only)
    key = _normalize_id(entity_id)
    if key not in atlas.catalog.entity_by_id:
        console.print(f"[bold red]Unknown entity '{escape(entity_id)}'.[/bold red]")
        raise typer.Exit(1)
    name = atlas.catalog.entity_name(key) or entity_id
    drops = atlas.loot.drops_of(key)
    if not drops:
        console.print(f"{name} drops nothing.")
        return
    console.print(_drop_table(f"{name} ({entity_id})", drops))


@app.command()
def container(
    container_id: str = typer.Argument(..., help="Container item id."),
    catalog: Path = _catalog_option(),
    settings: Optional[Path] = _settings_option(),
    log_dir: Optional[Path] = _log_dir_option(),
) -> None:
    """Resolved contents of one container item."""
    atlas = _load_atlas(catalog, settings, log_dir, False)
    key = _normalize_id(container_id)
    if key not in atlas.containers.forward:
        console.print(f"[bold red]'{escape(container_id)}' is not a container with contents.[/bold red]")
        raise typer.Exit(1)
    name = atlas.catalog.display_name(key) or container_id
    console.print(_drop_table(f"{name} ({container_id})", atlas.containers.contents_of(key)))


@app.command()
def item(
    item_id: str = typer.Argument(..., help="Item id."),
    catalog: Path = _catalog_option(),
    settings: Optional[Path] = _settings_option(),
    log_dir: Optional[Path] = _log_dir_option(),
    hostile_only: bool = _hostile_option(),
) -> None:
    """Where an item comes from."""
    atlas = _load_atlas(catalog, settings, log_dir, hostile_only)
    provenance = item_provenance(atlas, _normalize_id(item_id))
    if provenance is None:
        console.print(f"[bold red]Unknown item '{escape(item_id)}'.[/bold red]")
        raise typer.Exit(1)

    obtain = provenance.obtain
    table = Table(title=f"{provenance.name} ({item_id})")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Obtained by", obtain.label)
    table.add_row("Source", str(obtain.source_id) if obtain.source_id is not None else "-")
    table.add_row("Evidence", obtain.evidence + (" (low confidence)" if obtain.low_confidence else ""))
    table.add_row("Recipes", str(provenance.recipes))
    table.add_row("Container", str(provenance.container_id) if provenance.container_id is not None else "-")
    table.add_row(
        "Dropped by",
        ", ".join(atlas.catalog.entity_name(entity_id) or str(entity_id) for entity_id in provenance.dropped_by) or "-",
    )
    console.print(table)

    if provenance.boss_drops:
        bosses = Table(title="Boss Drops")
        bosses.add_column("Boss", style="cyan")
        bosses.add_column("Mod")
        bosses.add_column("Chance", justify="right")
        bosses.add_column("Stack", justify="right")
        bosses.add_column("Conditions", style="magenta")
        for drop in provenance.boss_drops:
            bosses.add_row(
                drop.boss_name + (" (mini-boss)" if drop.mini_boss else ""),
                drop.mod,
                f"{drop.drop_chance:.2%}",
                f"{drop.min_stack}-{drop.max_stack}",
                ", ".join(drop.conditions) or "-",
            )
        console.print()
        console.print(bosses)


if __name__ == "__main__":
    app()
