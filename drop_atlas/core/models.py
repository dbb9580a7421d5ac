from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

CatalogId = int | str
BranchMode = Literal["expert", "master"]
EquipSlot = Literal["head", "body", "legs"]

MODE_CONDITION_NAMES: dict[str, str] = {"expert": "Expert Mode", "master": "Master Mode"}


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RuleNode(StrictModel):
    """Common shape of every drop rule.

    Values are only type-checked here. Range problems (bad item ids, inverted
    stacks, zero denominators) are left for the resolver, which recovers from
    them node by node instead of rejecting a whole catalog.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    chained_rules: tuple[DropRule, ...] = Field(default=(), alias="chainedRules")


class _StackedDrop(RuleNode):
    item_id: CatalogId = Field(alias="itemId")
    chance_denominator: int = Field(default=1, alias="chanceDenominator")
    min_stack: int = Field(default=1, alias="minStack")
    max_stack: int = Field(default=1, alias="maxStack")


class FixedChance(_StackedDrop):
    rule: Literal["fixed"] = "fixed"


class ConditionalChance(_StackedDrop):
    rule: Literal["conditional"] = "conditional"
    condition_tag: str = Field(default="", alias="conditionTag")


class OneOfMany(RuleNode):
    rule: Literal["one_of_many"] = "one_of_many"
    item_ids: tuple[CatalogId, ...] = Field(default=(), alias="itemIds")
    chance_denominator: int = Field(default=1, alias="chanceDenominator")
    stacks_are_unit: bool = Field(default=True, alias="stacksAreUnit")
    min_stack: int = Field(default=1, alias="minStack")
    max_stack: int = Field(default=1, alias="maxStack")


class ModeBranch(RuleNode):
    rule: Literal["mode_branch"] = "mode_branch"
    mode: BranchMode = "expert"
    primary_branch: DropRule | None = Field(default=None, alias="primaryBranch")
    alternate_branch: DropRule | None = Field(default=None, alias="alternateBranch")


DropRule = Annotated[
    Union[FixedChance, ConditionalChance, OneOfMany, ModeBranch],
    Field(discriminator="rule"),
]

for _model in (RuleNode, _StackedDrop, FixedChance, ConditionalChance, OneOfMany, ModeBranch):
    _model.model_rebuild()


@dataclass(frozen=True, slots=True)
class ResolvedDrop:
    item_id: CatalogId
    display_name: str
    drop_chance: float
    min_stack: int = 1
    max_stack: int = 1
    condition_tags: frozenset[str] = field(default_factory=frozenset)
    # Set on outcomes declared under a mode branch's alternate subtree.
    mode: BranchMode | None = field(default=None, compare=False)

    def condition_names(self) -> list[str]:
        names = sorted(self.condition_tags)
        if self.mode is not None:
            names.append(MODE_CONDITION_NAMES[self.mode])
        return names

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.item_id,
            "name": self.display_name,
            "dropChance": self.drop_chance,
            "minStack": self.min_stack,
            "maxStack": self.max_stack,
            "conditions": self.condition_names(),
        }


class CatalogItem(StrictModel):
    id: CatalogId
    name: str = ""
    rarity: int = 0
    value: int = Field(default=0, ge=0)
    damage: int = 0
    accessory: bool = False
    equip_slots: list[EquipSlot] = Field(default_factory=list, alias="equipSlots")
    container: bool = False
    mod: str = "vanilla"
    rules: list[DropRule] = Field(default_factory=list)

    @property
    def combat_capable(self) -> bool:
        return self.damage > 0 or self.accessory or bool(self.equip_slots)


class CatalogEntity(StrictModel):
    id: CatalogId
    name: str = ""
    life: int = Field(default=1, alias="lifeMax")
    damage: int = 0
    rarity: int = 0
    value: int = Field(default=0, ge=0)
    boss: bool = False
    town_npc: bool = Field(default=False, alias="townNpc")
    friendly: bool = False
    mod: str = "vanilla"
    rules: list[DropRule] = Field(default_factory=list)


class RecipeIngredient(StrictModel):
    item_id: CatalogId = Field(alias="itemId")
    qty: int = Field(default=1, ge=1)


class Recipe(StrictModel):
    id: str = Field(min_length=1)
    output_item: CatalogId = Field(alias="outputItem")
    output_qty: int = Field(default=1, alias="outputQty", ge=1)
    inputs: list[RecipeIngredient] = Field(default_factory=list)
    stations: list[str] = Field(default_factory=list)
