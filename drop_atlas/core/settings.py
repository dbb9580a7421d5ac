from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_LORE_PATTERNS: tuple[str, ...] = (
    "banner",
    "trophy",
    "mask",
    "dye",
    "soul",
    "essence",
    "scale",
    "horn",
    "fang",
    "claw",
    "eye",
    "heart",
    "brain",
    "relic",
    "treasure bag",
    "expert",
    "master",
)
DEFAULT_CONTAINER_PATTERNS: tuple[str, ...] = ("treasure bag", "boss bag")


class ResolverSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    max_rule_nodes: int = Field(default=10_000, ge=1)


class ContainerSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_CONTAINER_PATTERNS))


class FallbackSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lore_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_LORE_PATTERNS))
    rarity_threshold: int = 3
    combat_rarity_threshold: int = 2
    # Two gold coins at sell price.
    value_threshold: int = Field(default=100_000, ge=0)
    value_min_rarity: int = 1


class EngineSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    containers: ContainerSettings = Field(default_factory=ContainerSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)

    def as_dict(self) -> dict[str, Any]:
        return json.loads(self.model_dump_json())


def merge_settings(payload: dict[str, Any] | None) -> dict[str, Any]:
    if not isinstance(payload, dict):
        payload = {}
    return EngineSettings.model_validate(payload).as_dict()


def default_settings() -> dict[str, Any]:
    return EngineSettings().as_dict()


def load_settings(settings_path: Path | str | None) -> EngineSettings:
    """Read settings JSON; a missing or unreadable file yields the defaults.

    Out-of-range values still raise ``pydantic.ValidationError``.
    """
    if settings_path is None:
        return EngineSettings()
    path = Path(settings_path)
    if not path.exists():
        return EngineSettings()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Ignoring settings file %s: not valid JSON.", path)
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return EngineSettings.model_validate(payload)


def save_settings(settings: EngineSettings, settings_path: Path | str) -> None:
    path = Path(settings_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.as_dict(), indent=2), encoding="utf-8")
