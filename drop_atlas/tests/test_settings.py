from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from drop_atlas.core.settings import (
    DEFAULT_CONTAINER_PATTERNS,
    EngineSettings,
    default_settings,
    load_settings,
    merge_settings,
    save_settings,
)


def test_missing_settings_file_yields_defaults(tmp_path: Path) -> None:
    assert load_settings(None) == EngineSettings()
    loaded = load_settings(tmp_path / "absent.json")
    assert loaded.resolver.max_rule_nodes == 10_000
    assert tuple(loaded.containers.name_patterns) == DEFAULT_CONTAINER_PATTERNS
    assert loaded.fallback.value_threshold == 100_000


def test_settings_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config" / "settings.json"
    settings = EngineSettings()
    settings.resolver.max_rule_nodes = 250
    settings.fallback.lore_patterns = ["relic"]
    save_settings(settings, path)

    reloaded = load_settings(path)
    assert reloaded.resolver.max_rule_nodes == 250
    assert reloaded.fallback.lore_patterns == ["relic"]
    assert reloaded.fallback.rarity_threshold == 3


def test_partial_payload_merges_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"resolver": {"max_rule_nodes": 50}, "video": {"fullscreen": True}}), encoding="utf-8")
    loaded = load_settings(path)
    assert loaded.resolver.max_rule_nodes == 50
    assert loaded.as_dict()["fallback"] == default_settings()["fallback"]


def test_unreadable_settings_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path) == EngineSettings()
    path.write_text("[1, 2]", encoding="utf-8")
    assert load_settings(path) == EngineSettings()


def test_out_of_range_values_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"resolver": {"max_rule_nodes": 0}}), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_settings(path)


def test_merge_settings_ignores_non_dict_payloads() -> None:
    assert merge_settings(None) == default_settings()
    merged = merge_settings({"containers": {"name_patterns": ["loot crate"]}})
    assert merged["containers"]["name_patterns"] == ["loot crate"]
    assert merged["resolver"]["max_rule_nodes"] == 10_000
