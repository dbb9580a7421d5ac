"""Static loot resolution: rule trees, drop indices and item provenance."""

from .container_cache import ContainerCache
from .engine import DropAtlas, build_atlas
from .errors import (
    CyclicRuleGraph,
    DropAtlasError,
    IndexConsistencyError,
    MalformedRuleNode,
    MissingCatalogEntry,
)
from .loader import CatalogBundle, ContentValidationError, build_catalog, load_catalog
from .loot_cache import LootCache
from .models import (
    CatalogEntity,
    CatalogItem,
    ConditionalChance,
    DropRule,
    FixedChance,
    ModeBranch,
    OneOfMany,
    Recipe,
    ResolvedDrop,
)
from .obtain import ObtainClassifier, ObtainResult, classify
from .resolver import Resolution, resolve, resolve_detailed
from .settings import EngineSettings, load_settings

__all__ = [
    "CatalogBundle",
    "CatalogEntity",
    "CatalogItem",
    "ConditionalChance",
    "ContainerCache",
    "ContentValidationError",
    "CyclicRuleGraph",
    "DropAtlas",
    "DropAtlasError",
    "DropRule",
    "EngineSettings",
    "FixedChance",
    "IndexConsistencyError",
    "LootCache",
    "MalformedRuleNode",
    "MissingCatalogEntry",
    "ModeBranch",
    "ObtainClassifier",
    "ObtainResult",
    "OneOfMany",
    "Recipe",
    "Resolution",
    "ResolvedDrop",
    "build_atlas",
    "build_catalog",
    "classify",
    "load_catalog",
    "load_settings",
    "resolve",
    "resolve_detailed",
]
