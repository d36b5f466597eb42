"""
Relation cycle detection.

Depth-first traversal over the relation graph of one catalog:
- to-many edges: Entity.relations, target resolved by targetId uid
- to-one edges: Property.relation_target, target resolved by name

Invariants:
    - The recursion stack holds entity indices on the current path only;
      an entity is popped when backtracking, so reaching the same entity via
      two disjoint paths is not a cycle
    - Unresolved targets (entity not in this catalog, e.g. declared in a file
      not processed in this run) are no edge and not an error

How to change safely:
    - Detection is best-effort per invocation; don't assume a whole-project
      guarantee when files are generated independently
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from .errors import RelationCycleError
from .model import ModelInfo

logger = logging.getLogger(__name__)


def check_relation_cycles(model: ModelInfo) -> None:
    """Fail if any entity can reach itself through relations.

    Raises:
        RelationCycleError: Naming the dotted path (start entity, then relation
            and property names) and the entity closing the cycle

    Example:
        A.b -> B, B.c -> C, C.a -> A raises
        "relation cycle detected: A.b.c.a (A)"
    """
    entities = model.entities or []
    for index, entity in enumerate(entities):
        _visit(model, index, entity.name, set())
    logger.debug(f"No relation cycles among {len(entities)} entities")


def _visit(model: ModelInfo, index: int, path: str, stack: set[int]) -> None:
    stack.add(index)

    for name, target in _edges(model, index):
        if target is None:
            continue
        next_path = f"{path}.{name}"
        if target in stack:
            raise RelationCycleError(next_path, model.entities[target].name)
        _visit(model, target, next_path, stack)

    stack.discard(index)


def _edges(model: ModelInfo, index: int) -> Iterator[tuple[str, Optional[int]]]:
    entity = model.entities[index]

    for relation in entity.relations:
        target = model.entity_index_by_uid(relation.target_id.uid_or_zero())
        if target is None:
            logger.warning(
                f"Relation {entity.name}.{relation.name} targets unknown entity "
                f"{relation.target_id}; skipped in cycle check"
            )
        yield relation.name, target

    for prop in entity.properties or ():
        if not prop.relation_target:
            continue
        target = model.entity_index_by_name(prop.relation_target)
        if target is None:
            logger.debug(
                f"Relation {entity.name}.{prop.name} targets {prop.relation_target} "
                "which isn't in this model; skipped in cycle check"
            )
        yield prop.name, target
