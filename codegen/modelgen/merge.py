"""
Reconciliation of a binding with the model catalog.

For every declared entity, property and to-many relation:
1. Match: explicit uid -> look up by uid (missing uid is an error);
   uid request -> error reporting the stored uid; otherwise by name;
   otherwise create a new catalog element.
2. Merge: the catalog element takes the declared name (renames keep the
   identity), the declaration receives the resolved id and uid.

The merge runs in two phases. The planning phase only reads the catalog and
records matches as positions (indices) in the catalog lists; every user-facing
error is raised there. The apply phase then creates, renames and retires
catalog elements and writes identities back onto the binding.

Invariants:
    - uid matching always wins over name matching
    - A failed merge leaves the catalog and the binding untouched
    - Two declarations never resolve to the same catalog element
    - Entities are never removed; properties and relations missing from the
      declarations are removed and their uids retired

How to change safely:
    - Add new checks to the planning phase, never to the apply phase
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .binding.types import Binding, BindingEntity, BindingProperty, BindingRelation
from .modelinfo.entity import Entity
from .modelinfo.errors import (
    DuplicateNameError,
    RelationTargetNotFoundError,
    UidNotFoundError,
    UidRequestError,
)
from .modelinfo.model import ModelInfo
from .modelinfo.property import Property

logger = logging.getLogger(__name__)


@dataclass
class _PropertyPlan:
    binding: BindingProperty
    index: Optional[int]


@dataclass
class _RelationPlan:
    binding: BindingRelation
    index: Optional[int]


@dataclass
class _EntityPlan:
    binding: BindingEntity
    index: Optional[int]
    properties: list[_PropertyPlan] = field(default_factory=list)
    relations: list[_RelationPlan] = field(default_factory=list)


def merge_binding_with_model_info(binding: Binding, model: ModelInfo) -> None:
    """Resolve identities of all declarations against the catalog.

    Mutates the binding (ids/uids filled in) and the catalog (new elements,
    renames, advanced last-id pointers, retired uids).

    Raises:
        BindingError, DuplicateNameError: Invalid declarations
        UidNotFoundError: An explicit uid isn't in the catalog
        UidRequestError: A declaration asks for its stored uid
        RelationTargetNotFoundError: A to-many relation targets an unknown entity
        UidGenerationError: No unique uid could be drawn
    """
    binding.validate()

    plans = [_plan_entity(entity, model) for entity in binding.entities]
    _check_entity_resolution(plans, model)
    _check_relation_targets(plans, model)

    created = 0
    for plan in plans:
        if plan.index is None:
            model.create_entity(plan.binding.name)
            plan.index = len(model.entities) - 1
            created += 1

    for plan in plans:
        _merge_entity(plan, model)

    # targets are resolved once every entity has its final name
    for plan in plans:
        _merge_relations(plan, model)

    model.package = binding.package
    logger.info(
        f"Merged {len(plans)} entities from {binding.source or 'binding'} "
        f"({created} new, model has {len(model.entities)})"
    )


# ----------------------------------------------------------------------
# Planning
# ----------------------------------------------------------------------


def _plan_entity(declared: BindingEntity, model: ModelInfo) -> _EntityPlan:
    if declared.uid:
        index = model.entity_index_by_uid(declared.uid)
        if index is None:
            raise UidNotFoundError(
                f"entity with uid {declared.uid} was not found (entity {declared.name})",
                declared.uid,
            )
        logger.debug(f"Entity {declared.name} matched by uid {declared.uid}")
    else:
        index = model.entity_index_by_name(declared.name)
        if declared.uid_request:
            raise _uid_request(
                "entity",
                model.entities[index] if index is not None else None,
                f"entity {declared.name}",
            )

    entity = model.entities[index] if index is not None else None
    plan = _EntityPlan(binding=declared, index=index)
    plan.properties = [_plan_property(p, entity, declared.name) for p in declared.properties]
    plan.relations = [_plan_relation(r, entity, declared.name) for r in declared.relations]

    _check_unique(
        [p.index for p in plan.properties],
        lambda i: entity.properties[i],
        "property",
        declared.name,
    )
    _check_unique(
        [r.index for r in plan.relations],
        lambda i: entity.relations[i],
        "relation",
        declared.name,
    )
    return plan


def _plan_property(
    declared: BindingProperty, entity: Optional[Entity], entity_name: str
) -> _PropertyPlan:
    properties = (entity.properties or []) if entity is not None else []

    if declared.uid:
        for index, prop in enumerate(properties):
            if prop.id.uid_or_zero() == declared.uid:
                return _PropertyPlan(declared, index)
        raise UidNotFoundError(
            f"property with uid {declared.uid} not found in '{entity_name}' "
            f"(property {declared.name})",
            declared.uid,
        )

    index = next((i for i, p in enumerate(properties) if p.name == declared.name), None)
    if declared.uid_request:
        raise _uid_request(
            "property",
            properties[index] if index is not None else None,
            f"property {declared.name}, entity {entity_name}",
        )
    return _PropertyPlan(declared, index)


def _plan_relation(
    declared: BindingRelation, entity: Optional[Entity], entity_name: str
) -> _RelationPlan:
    relations = entity.relations if entity is not None else []

    if declared.uid:
        for index, relation in enumerate(relations):
            if relation.id.uid_or_zero() == declared.uid:
                return _RelationPlan(declared, index)
        raise UidNotFoundError(
            f"relation with uid {declared.uid} not found in '{entity_name}' "
            f"(relation {declared.name})",
            declared.uid,
        )

    index = next((i for i, r in enumerate(relations) if r.name == declared.name), None)
    if declared.uid_request:
        raise _uid_request(
            "relation",
            relations[index] if index is not None else None,
            f"relation {declared.name}, entity {entity_name}",
        )
    return _RelationPlan(declared, index)


def _uid_request(kind: str, existing, where: str) -> UidRequestError:
    if existing is None:
        return UidRequestError(
            f"uid annotation value must not be empty ({kind} not found in the model) on {where}"
        )
    uid = existing.id.get_uid()
    return UidRequestError(
        f"uid annotation value must not be empty (model {kind} UID = {uid}) on {where}", uid
    )


def _check_unique(indices, element_at, kind: str, entity_name: str) -> None:
    seen: set[int] = set()
    for index in indices:
        if index is None:
            continue
        if index in seen:
            element = element_at(index)
            raise DuplicateNameError(
                f"two {kind} declarations in entity {entity_name} resolve to "
                f"{kind} {element.name} {element.id}",
                element.name,
                (str(element.id),),
            )
        seen.add(index)


def _check_entity_resolution(plans: list[_EntityPlan], model: ModelInfo) -> None:
    """Reject plans whose resulting entity names would collide."""
    _check_unique(
        [p.index for p in plans],
        lambda i: model.entities[i],
        "entity",
        "binding",
    )

    renamed = {p.index: p.binding.name for p in plans if p.index is not None}
    owners: dict[str, str] = {}
    for index, entity in enumerate(model.entities or ()):
        name = renamed.get(index, entity.name)
        if name in owners:
            raise DuplicateNameError(
                f"duplicate entity name '{name}' ({owners[name]} and {entity.id})",
                name,
                (owners[name], str(entity.id)),
            )
        owners[name] = str(entity.id)

    for plan in plans:
        if plan.index is not None:
            continue
        name = plan.binding.name
        if name in owners:
            raise DuplicateNameError(
                f"duplicate entity name '{name}' ({owners[name]} and a new entity)",
                name,
                (owners[name],),
            )
        owners[name] = "new"


def _check_relation_targets(plans: list[_EntityPlan], model: ModelInfo) -> None:
    renamed = {p.index: p.binding.name for p in plans if p.index is not None}
    names = {renamed.get(i, e.name) for i, e in enumerate(model.entities or ())}
    names.update(p.binding.name for p in plans)

    for plan in plans:
        for relation in plan.relations:
            target = relation.binding.target
            if target not in names:
                raise RelationTargetNotFoundError(
                    f"relation {relation.binding.name} on entity {plan.binding.name}: "
                    f"target entity {target} was not found",
                    target,
                )


# ----------------------------------------------------------------------
# Applying
# ----------------------------------------------------------------------


def _merge_entity(plan: _EntityPlan, model: ModelInfo) -> None:
    entity = model.entities[plan.index]
    declared = plan.binding

    if entity.name != declared.name:
        logger.info(f"Renaming entity {entity.name} {entity.id} to {declared.name}")
    entity.name = declared.name
    declared.id, declared.uid = entity.id.get()

    existing = list(entity.properties or ())
    kept = {p.index for p in plan.properties if p.index is not None}

    for prop_plan in plan.properties:
        if prop_plan.index is None:
            prop = model.create_property(entity)
        else:
            prop = existing[prop_plan.index]
        _merge_property(prop_plan.binding, prop, model)

    for index, prop in enumerate(existing):
        if index not in kept:
            logger.info(f"Property {entity.name}.{prop.name} {prop.id} was removed, retiring its uid")
            model.remove_property(entity, prop)

    declared.last_property_id = str(entity.last_property_id)


def _merge_property(declared: BindingProperty, prop: Property, model: ModelInfo) -> None:
    prop.name = declared.name
    prop.relation_target = declared.relation_target
    declared.id, declared.uid = prop.id.get()

    if not declared.indexed:
        if prop.index_id is not None:
            model.remove_index(prop)
        return

    if prop.index_id is None:
        model.create_index(prop)
    declared.index_id, declared.index_uid = prop.index_id.get()


def _merge_relations(plan: _EntityPlan, model: ModelInfo) -> None:
    entity = model.entities[plan.index]
    existing = list(entity.relations)
    kept = {r.index for r in plan.relations if r.index is not None}

    for rel_plan in plan.relations:
        declared = rel_plan.binding
        if rel_plan.index is None:
            relation = model.create_relation(entity)
        else:
            relation = existing[rel_plan.index]

        target = model.find_entity_by_name(declared.target)
        if target is None:
            # guarded by _check_relation_targets()
            raise RelationTargetNotFoundError(
                f"relation {declared.name} on entity {entity.name}: "
                f"target entity {declared.target} was not found",
                declared.target,
            )

        relation.name = declared.name
        relation.target_id = target.id
        declared.id, declared.uid = relation.id.get()
        declared.target_id, declared.target_uid = target.id.get()

    for index, relation in enumerate(existing):
        if index not in kept:
            logger.info(f"Relation {entity.name}.{relation.name} {relation.id} was removed")
            model.remove_relation(entity, relation)
