"""
Catalog entity definition.

An entity owns its properties and its to-many relations. It has no reference
back to the model; operations that need model-wide state (uid uniqueness,
retired lists, index/relation id pointers) live on ModelInfo.

Invariants:
    - name must be non-empty
    - properties must be a list (None means the field was missing in the file)
    - with at least one property, lastPropertyId validates and equals the
      identity of one of the properties (or a retired property uid)
    - no property id exceeds lastPropertyId.id
    - property names and relation names are unique within the entity

How to change safely:
    - Never reuse a property id/uid: create_property() derives the next id
      from lastPropertyId, not from the current property count
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Optional

from .errors import CatalogCorruptionError, DuplicateNameError, ModelInfoError
from .iduid import IdUid
from .property import Property
from .relation import Relation
from .uidgen import UidGenerator

logger = logging.getLogger(__name__)


@dataclass
class Entity:
    """A named schema element.

    Attributes:
        id: Identity, sequential within the model
        name: Current name (renames keep the identity)
        last_property_id: Identity of the most recently created property
        properties: Ordered property list
        relations: Ordered to-many relation list
    """

    id: IdUid
    name: str = ""
    last_property_id: IdUid = field(default_factory=IdUid)
    properties: Optional[list[Property]] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    def validate(self, retired_property_uids: Collection[int] = ()) -> None:
        """Validate the entity and its children.

        Args:
            retired_property_uids: Model-wide retired property uids; the last
                property id may point at one of them

        Raises:
            ModelInfoError: The first violation found
        """
        self.id.validate()

        if not self.name:
            raise CatalogCorruptionError("name is undefined")

        if self.properties is None:
            raise CatalogCorruptionError("properties are not defined or not an array")

        if self.properties:
            self._validate_last_property_id(retired_property_uids)

        seen: dict[str, Property] = {}
        for prop in self.properties:
            try:
                prop.validate()
            except ModelInfoError as e:
                e.add_context(f"property {prop.name} {prop.id} is invalid")
                raise

            other = seen.get(prop.name)
            if other is not None:
                raise DuplicateNameError(
                    f"duplicate property name '{prop.name}' ({other.id} and {prop.id})",
                    prop.name,
                    (str(other.id), str(prop.id)),
                )
            seen[prop.name] = prop

        seen_relations: dict[str, Relation] = {}
        for relation in self.relations:
            try:
                relation.validate()
            except ModelInfoError as e:
                e.add_context(f"relation {relation.name} {relation.id} is invalid")
                raise

            other_relation = seen_relations.get(relation.name)
            if other_relation is not None:
                raise DuplicateNameError(
                    f"duplicate relation name '{relation.name}' "
                    f"({other_relation.id} and {relation.id})",
                    relation.name,
                    (str(other_relation.id), str(relation.id)),
                )
            seen_relations[relation.name] = relation

    def _validate_last_property_id(self, retired_property_uids: Collection[int]) -> None:
        try:
            self.last_property_id.validate()
        except ModelInfoError as e:
            e.add_context("lastPropertyId")
            raise

        last_id, last_uid = self.last_property_id.get()
        found = False
        for prop in self.properties or ():
            prop_id = prop.id.id_or_zero()
            if prop_id == last_id:
                if prop.id.uid_or_zero() != last_uid:
                    raise CatalogCorruptionError(
                        f"lastPropertyId {self.last_property_id} doesn't match "
                        f"property {prop.name} {prop.id}"
                    )
                found = True
            elif prop_id > last_id:
                raise CatalogCorruptionError(
                    f"lastPropertyId {self.last_property_id} is lower than "
                    f"property {prop.name} {prop.id}"
                )

        if not found and last_uid not in retired_property_uids:
            raise CatalogCorruptionError(
                f"lastPropertyId {self.last_property_id} doesn't match any property"
            )

    def find_property_by_uid(self, uid: int) -> Optional[Property]:
        """Get a property by uid, None if absent."""
        for prop in self.properties or ():
            if prop.id.uid_or_zero() == uid:
                return prop
        return None

    def find_property_by_name(self, name: str) -> Optional[Property]:
        """Get a property by exact (case-sensitive) name, None if absent."""
        for prop in self.properties or ():
            if prop.name == name:
                return prop
        return None

    def create_property(
        self,
        generator: UidGenerator,
        is_used: Optional[Callable[[int], bool]] = None,
    ) -> Property:
        """Allocate and append a new property.

        The id is 1 for the first property, else lastPropertyId.id + 1.

        Args:
            generator: Uid generator
            is_used: Uid scope predicate; defaults to this entity's own uids

        Returns:
            The new (unnamed) property
        """
        if self.properties is None:
            self.properties = []

        next_id = 1
        if not self.last_property_id.is_empty:
            next_id = self.last_property_id.get_id() + 1

        uid = generator.generate(is_used or self.contains_uid)
        prop = Property(id=IdUid.create(next_id, uid))

        self.properties.append(prop)
        self.last_property_id = prop.id
        logger.debug(f"Created property {prop.id} in entity {self.name}")
        return prop

    def find_relation_by_uid(self, uid: int) -> Optional[Relation]:
        for relation in self.relations:
            if relation.id.uid_or_zero() == uid:
                return relation
        return None

    def find_relation_by_name(self, name: str) -> Optional[Relation]:
        for relation in self.relations:
            if relation.name == name:
                return relation
        return None

    def contains_uid(self, uid: int) -> bool:
        """Whether the entity or any of its children uses the uid."""
        if self.id.uid_or_zero() == uid:
            return True
        if self.last_property_id.uid_or_zero() == uid:
            return True
        if any(prop.contains_uid(uid) for prop in self.properties or ()):
            return True
        return any(relation.id.uid_or_zero() == uid for relation in self.relations)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "id": str(self.id),
            "name": self.name,
            "lastPropertyId": str(self.last_property_id),
            "properties": [p.to_dict() for p in self.properties or ()],
        }
        if self.relations:
            result["relations"] = [r.to_dict() for r in self.relations]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entity:
        """Create from dictionary representation.

        A missing or non-array "properties" value is kept as None so
        validate() can report it; a non-array "relations" value raises ValueError.
        """
        properties = data.get("properties")
        relations = data.get("relations")
        if relations is not None and not isinstance(relations, list):
            raise ValueError(f"relations of entity {data.get('name', '')} is not an array")
        return cls(
            id=IdUid.from_json(data.get("id")),
            name=data.get("name", ""),
            last_property_id=IdUid.from_json(data.get("lastPropertyId")),
            properties=[Property.from_dict(p) for p in properties]
            if isinstance(properties, list)
            else None,
            relations=[Relation.from_dict(r) for r in relations or ()],
        )
