"""Flattening of declarative drop-rule trees into resolved outcomes.

Traversal is depth-first pre-order: a node's own outcomes come first, then
both branches of a mode split (primary before alternate), then every chained
rule in declaration order. Chained rules are siblings of their parent, so
their chances never get multiplied by the parent's.

The walk is iterative and bounded by a visited-node ceiling rather than an
identity set: structurally equal nodes are still distinct drops, and a rule
graph that loops back on itself must stop with whatever it collected so far.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Sequence

from .errors import CyclicRuleGraph, MalformedRuleNode
from .models import (
    BranchMode,
    CatalogId,
    ConditionalChance,
    FixedChance,
    ModeBranch,
    OneOfMany,
    ResolvedDrop,
    RuleNode,
)

DEFAULT_MAX_RULE_NODES = 10_000

NameLookup = Callable[[CatalogId], "str | None"]
RuleInput = RuleNode | Sequence[RuleNode] | None


@dataclass(frozen=True, slots=True)
class NodeFailure:
    path: str
    error: Exception

    @property
    def reason(self) -> str:
        return str(self.error)


@dataclass(slots=True)
class Resolution:
    drops: list[ResolvedDrop] = field(default_factory=list)
    failures: list[NodeFailure] = field(default_factory=list)
    unnamed: list[CatalogId] = field(default_factory=list)
    visited: int = 0
    truncated: bool = False

    @property
    def empty(self) -> bool:
        return not self.drops

    @property
    def recovered(self) -> bool:
        """True when some node was skipped or the walk was cut short."""
        return self.truncated or bool(self.failures)


WalkEntry = tuple[str, object, "BranchMode | None"]


def _root_entries(root: RuleInput) -> list[WalkEntry]:
    if root is None:
        return []
    if isinstance(root, RuleNode):
        return [("root", root, None)]
    if isinstance(root, (list, tuple)):
        return [(f"root[{index}]", node, None) for index, node in enumerate(root)]
    return [("root", root, None)]


def _children(path: str, node: RuleNode, mode: BranchMode | None) -> list[WalkEntry]:
    children: list[WalkEntry] = []
    if isinstance(node, ModeBranch):
        if node.primary_branch is not None:
            children.append((f"{path}.primary", node.primary_branch, mode))
        if node.alternate_branch is not None:
            children.append((f"{path}.alternate", node.alternate_branch, node.mode))
    for index, chained in enumerate(node.chained_rules or ()):
        children.append((f"{path}.chained[{index}]", chained, mode))
    return children


class RuleWalk:
    """Bounded pre-order traversal over rule nodes and their chained rules.

    Yields ``(path, node, mode)`` triples, where ``mode`` is the difficulty
    mode of the nearest enclosing alternate branch, if any. Entries that are
    not rule nodes are still yielded (the resolver reports them) but never
    expanded; neither are nodes whose children cannot be read.
    """

    def __init__(self, root: RuleInput, max_nodes: int = DEFAULT_MAX_RULE_NODES) -> None:
        self.max_nodes = max(1, int(max_nodes))
        self.visited = 0
        self.truncated = False
        self.unreadable: list[tuple[str, Exception]] = []
        self._stack = list(reversed(_root_entries(root)))

    def __iter__(self) -> Iterator[WalkEntry]:
        while self._stack:
            if self.visited >= self.max_nodes:
                self.truncated = True
                return
            path, node, mode = self._stack.pop()
            self.visited += 1
            yield path, node, mode
            if isinstance(node, RuleNode):
                try:
                    children = _children(path, node, mode)
                except (TypeError, AttributeError) as exc:
                    self.unreadable.append((path, exc))
                    continue
                self._stack.extend(reversed(children))


def chance_for(denominator: int | float) -> float:
    if denominator <= 0:
        return 1.0
    return 1.0 / denominator


def _check_item_id(item_id: object) -> None:
    if item_id is None or isinstance(item_id, bool):
        raise MalformedRuleNode(f"Invalid item reference {item_id!r}.")
    if isinstance(item_id, int):
        if item_id <= 0:
            raise MalformedRuleNode(f"Invalid item reference {item_id!r}.")
        return
    if isinstance(item_id, str):
        if not item_id.strip():
            raise MalformedRuleNode("Invalid item reference ''.")
        return
    raise MalformedRuleNode(f"Invalid item reference {item_id!r}.")


def _check_stacks(min_stack: int, max_stack: int) -> None:
    if min_stack < 1 or max_stack < min_stack:
        raise MalformedRuleNode(f"Invalid stack range [{min_stack}, {max_stack}].")


def _display_name(item_id: CatalogId, name_of: NameLookup) -> str | None:
    _check_item_id(item_id)
    try:
        name = name_of(item_id)
    except (LookupError, ValueError, TypeError) as exc:
        raise MalformedRuleNode(f"Item {item_id!r} could not be looked up: {exc}") from exc
    return name or None


def _emit(
    resolution: Resolution,
    item_id: CatalogId,
    name_of: NameLookup,
    chance: float,
    min_stack: int,
    max_stack: int,
    tags: frozenset[str],
    mode: BranchMode | None,
) -> None:
    name = _display_name(item_id, name_of)
    if name is None:
        resolution.unnamed.append(item_id)
        return
    resolution.drops.append(
        ResolvedDrop(
            item_id=item_id,
            display_name=name,
            drop_chance=chance,
            min_stack=min_stack,
            max_stack=max_stack,
            condition_tags=tags,
            mode=mode,
        )
    )


def _resolve_one_of_many(
    resolution: Resolution,
    path: str,
    node: OneOfMany,
    name_of: NameLookup,
    mode: BranchMode | None,
) -> None:
    count = len(node.item_ids)
    if count == 0:
        return
    if node.chance_denominator <= 0:
        raise MalformedRuleNode(f"OneOfMany denominator must be positive, got {node.chance_denominator}.")
    if node.stacks_are_unit:
        min_stack, max_stack = 1, 1
    else:
        _check_stacks(node.min_stack, node.max_stack)
        min_stack, max_stack = node.min_stack, node.max_stack

    chance = 1.0 / (node.chance_denominator * count)
    for index, item_id in enumerate(node.item_ids):
        try:
            _emit(resolution, item_id, name_of, chance, min_stack, max_stack, frozenset(), mode)
        except MalformedRuleNode as exc:
            resolution.failures.append(NodeFailure(path=f"{path}.itemIds[{index}]", error=exc))


def _resolve_node(
    resolution: Resolution,
    path: str,
    node: object,
    name_of: NameLookup,
    mode: BranchMode | None,
) -> None:
    if isinstance(node, (FixedChance, ConditionalChance)):
        _check_stacks(node.min_stack, node.max_stack)
        tags = frozenset()
        if isinstance(node, ConditionalChance) and node.condition_tag:
            tags = frozenset({node.condition_tag})
        _emit(
            resolution,
            node.item_id,
            name_of,
            chance_for(node.chance_denominator),
            node.min_stack,
            node.max_stack,
            tags,
            mode,
        )
        return
    if isinstance(node, OneOfMany):
        _resolve_one_of_many(resolution, path, node, name_of, mode)
        return
    if isinstance(node, ModeBranch):
        # Both branches are expanded by the walk; the split itself emits nothing.
        return
    raise MalformedRuleNode(f"Unsupported rule node {type(node).__name__}.")


def resolve_detailed(
    root: RuleInput,
    name_of: NameLookup,
    *,
    max_nodes: int = DEFAULT_MAX_RULE_NODES,
) -> Resolution:
    resolution = Resolution()
    walk = RuleWalk(root, max_nodes=max_nodes)
    for path, node, mode in walk:
        try:
            _resolve_node(resolution, path, node, name_of, mode)
        except MalformedRuleNode as exc:
            resolution.failures.append(NodeFailure(path=path, error=exc))
        except (TypeError, AttributeError) as exc:
            # Nodes built without validation can miss fields or carry the wrong types.
            error = MalformedRuleNode(f"Incomplete {type(node).__name__} node: {exc}")
            error.__cause__ = exc
            resolution.failures.append(NodeFailure(path=path, error=error))

    for path, exc in walk.unreadable:
        error = MalformedRuleNode(f"Children of {path} could not be read: {exc}")
        error.__cause__ = exc
        resolution.failures.append(NodeFailure(path=path, error=error))

    resolution.visited = walk.visited
    resolution.truncated = walk.truncated
    if walk.truncated:
        resolution.failures.append(NodeFailure(path="root", error=CyclicRuleGraph(walk.max_nodes)))
    return resolution


def resolve(
    root: RuleInput,
    name_of: NameLookup,
    *,
    max_nodes: int = DEFAULT_MAX_RULE_NODES,
) -> tuple[ResolvedDrop, ...]:
    """Resolve a rule tree (or an ordered list of root rules) into flat drops."""
    return tuple(resolve_detailed(root, name_of, max_nodes=max_nodes).drops)


def iter_item_ids(root: RuleInput, *, max_nodes: int = DEFAULT_MAX_RULE_NODES) -> Iterator[CatalogId]:
    """Yield every item id a rule tree references, valid or not, in walk order."""
    for _, node, _ in RuleWalk(root, max_nodes=max_nodes):
        if isinstance(node, (FixedChance, ConditionalChance)):
            yield node.item_id
        elif isinstance(node, OneOfMany):
            yield from node.item_ids or ()
