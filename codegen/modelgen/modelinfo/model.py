"""
The model catalog (ModelInfo).

ModelInfo is the root of the persisted schema: entities with their properties
and relations, the most recently assigned entity/index/relation identities and
the retired uid lists.

Invariants:
    - With at least one entity, lastEntityId validates and equals the identity
      of one entity (both id and uid), or a retired entity uid
    - No entity id exceeds lastEntityId.id
    - Entity names are unique (case-sensitive)
    - retiredEntityUids, retiredIndexUids and retiredPropertyUids are present
      in the file (an empty list on purpose differs from a missing field)
    - A uid appears at most once in the whole model, retired lists included

How to change safely:
    - Never edit ids by hand; retire instead of deleting so uids aren't reused
    - Resolve VCS merge conflicts so that every last*Id still matches an
      element; validate() refuses to guess which side is authoritative

Example:
    >>> model = ModelInfo.create()
    >>> task = model.create_entity("Task")
    >>> str(model.last_entity_id) == str(task.id)
    True
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from .entity import Entity
from .errors import (
    CatalogCorruptionError,
    DuplicateNameError,
    ModelInfoError,
    UidNotFoundError,
)
from .iduid import IdUid
from .property import Property
from .relation import Relation
from .uidgen import UID_MAX, UidGenerator

if TYPE_CHECKING:
    from .fileio import ModelFile

logger = logging.getLogger(__name__)

MODEL_VERSION = 1

MODEL_NOTES = (
    "KEEP THIS FILE! Check it into a version control system (VCS) like git.",
    "The generator manages crucial IDs for your object model. See docs for details.",
    "If you have VCS merge conflicts, you must resolve them according to the docs.",
)


@dataclass
class ModelInfo:
    """The persisted schema catalog.

    Attributes:
        entities: Ordered entity list; list position is the entity's index
            for the duration of one run
        last_entity_id: Identity of the most recently created entity
        last_index_id: Identity of the most recently created index
        last_relation_id: Identity of the most recently created relation
        retired_entity_uids: Uids of removed entities
        retired_index_uids: Uids of removed indexes
        retired_property_uids: Uids of removed properties
        retired_relation_uids: Uids of removed relations
        model_version: Catalog file format version
        notes: Header comments written at the top of the file
        package: Package of the last merged binding (not persisted)
        uid_generator: Source of new uids (not persisted)
    """

    entities: Optional[list[Entity]] = field(default_factory=list)
    last_entity_id: IdUid = field(default_factory=IdUid)
    last_index_id: IdUid = field(default_factory=IdUid)
    last_relation_id: IdUid = field(default_factory=IdUid)
    retired_entity_uids: Optional[list[int]] = field(default_factory=list)
    retired_index_uids: Optional[list[int]] = field(default_factory=list)
    retired_property_uids: Optional[list[int]] = field(default_factory=list)
    retired_relation_uids: list[int] = field(default_factory=list)
    model_version: int = MODEL_VERSION
    notes: list[str] = field(default_factory=list)
    package: str = field(default="", compare=False)
    uid_generator: UidGenerator = field(default_factory=UidGenerator, repr=False, compare=False)
    _file: Optional[ModelFile] = field(default=None, repr=False, compare=False)

    @classmethod
    def create(cls, uid_generator: Optional[UidGenerator] = None) -> ModelInfo:
        """Create an empty catalog with the explanatory header notes."""
        return cls(
            notes=list(MODEL_NOTES),
            uid_generator=uid_generator or UidGenerator(),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Validate the whole catalog.

        Raises:
            ModelInfoError: The first violation found, prefixed with the
                location (entity name and identity)
        """
        if self.entities is None:
            raise CatalogCorruptionError("entities are not defined or not an array")

        for name in ("retired_entity_uids", "retired_index_uids", "retired_property_uids"):
            if getattr(self, name) is None:
                raise CatalogCorruptionError(f"{_json_key(name)} are not defined or not an array")

        seen: dict[str, Entity] = {}
        for entity in self.entities:
            try:
                entity.validate(self.retired_property_uids or ())
            except ModelInfoError as e:
                e.add_context(f"entity {entity.name} {entity.id} is invalid")
                raise

            other = seen.get(entity.name)
            if other is not None:
                raise DuplicateNameError(
                    f"duplicate entity name '{entity.name}' ({other.id} and {entity.id})",
                    entity.name,
                    (str(other.id), str(entity.id)),
                )
            seen[entity.name] = entity

        if self.entities:
            self._validate_last_entity_id()

        for key, value in (("lastIndexId", self.last_index_id), ("lastRelationId", self.last_relation_id)):
            if value.is_empty:
                continue
            try:
                value.validate()
            except ModelInfoError as e:
                e.add_context(key)
                raise

    def _validate_last_entity_id(self) -> None:
        try:
            self.last_entity_id.validate()
        except ModelInfoError as e:
            e.add_context("lastEntityId")
            raise

        last_id, last_uid = self.last_entity_id.get()
        found = False
        for entity in self.entities or ():
            entity_id = entity.id.id_or_zero()
            if entity_id == last_id:
                if entity.id.uid_or_zero() != last_uid:
                    raise CatalogCorruptionError(
                        f"lastEntityId {self.last_entity_id} doesn't match "
                        f"entity {entity.name} {entity.id}"
                    )
                found = True
            elif entity_id > last_id:
                raise CatalogCorruptionError(
                    f"lastEntityId {self.last_entity_id} is lower than "
                    f"entity {entity.name} {entity.id}"
                )

        if not found and last_uid not in (self.retired_entity_uids or ()):
            raise CatalogCorruptionError(
                f"lastEntityId {self.last_entity_id} doesn't match any entity"
            )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def entity_index_by_uid(self, uid: int) -> Optional[int]:
        """Position of the entity with the given uid, None if absent."""
        for index, entity in enumerate(self.entities or ()):
            if entity.id.uid_or_zero() == uid:
                return index
        return None

    def entity_index_by_name(self, name: str) -> Optional[int]:
        """Position of the first entity with the exact name, None if absent."""
        for index, entity in enumerate(self.entities or ()):
            if entity.name == name:
                return index
        return None

    def find_entity_by_uid(self, uid: int) -> Optional[Entity]:
        index = self.entity_index_by_uid(uid)
        return None if index is None else self.entities[index]

    def find_entity_by_name(self, name: str) -> Optional[Entity]:
        index = self.entity_index_by_name(name)
        return None if index is None else self.entities[index]

    def get_entity_by_uid(self, uid: int) -> Entity:
        """Get an entity by uid.

        Raises:
            UidNotFoundError: If no entity has the uid
        """
        entity = self.find_entity_by_uid(uid)
        if entity is None:
            raise UidNotFoundError(f"entity with uid {uid} was not found", uid)
        return entity

    def create_entity(self, name: str = "") -> Entity:
        """Allocate and append a new entity.

        The id is 1 for the first entity, else lastEntityId.id + 1; the uid is
        unique within the whole model.
        """
        if self.entities is None:
            self.entities = []

        next_id = 1
        if not self.last_entity_id.is_empty:
            next_id = self.last_entity_id.get_id() + 1

        uid = self.uid_generator.generate(self.contains_uid)
        entity = Entity(id=IdUid.create(next_id, uid), name=name)

        self.entities.append(entity)
        self.last_entity_id = entity.id
        logger.debug(f"Created entity {name} {entity.id}")
        return entity

    def remove_entity(self, entity: Entity) -> None:
        """Remove an entity and retire all uids it holds.

        This is an explicit migration action; reconciliation never calls it.
        """
        index = self._position(self.entities or [], entity)
        if index is None:
            raise ModelInfoError(f"can't remove entity {entity.name} {entity.id} - not found")

        for prop in list(entity.properties or ()):
            self.remove_property(entity, prop)
        for relation in list(entity.relations):
            self.remove_relation(entity, relation)

        del self.entities[index]
        self._retire(self.retired_entity_uids, "retired_entity_uids", entity.id)
        logger.info(f"Removed entity {entity.name} {entity.id}")

    # ------------------------------------------------------------------
    # Properties, indexes and relations
    # ------------------------------------------------------------------

    def create_property(self, entity: Entity) -> Property:
        """Allocate a property in the entity with a model-wide unique uid."""
        return entity.create_property(self.uid_generator, self.contains_uid)

    def remove_property(self, entity: Entity, prop: Property) -> None:
        """Remove a property from the entity and retire its uid (and index)."""
        index = self._position(entity.properties or [], prop)
        if index is None:
            raise ModelInfoError(f"can't remove property {prop.name} {prop.id} - not found")

        if prop.index_id is not None:
            self.remove_index(prop)

        del entity.properties[index]
        self._retire(self.retired_property_uids, "retired_property_uids", prop.id)
        logger.debug(f"Removed property {prop.name} {prop.id} from entity {entity.name}")

    def create_index_id(self) -> IdUid:
        """Allocate the next index identity and advance lastIndexId."""
        next_id = 1
        if not self.last_index_id.is_empty:
            next_id = self.last_index_id.get_id() + 1

        uid = self.uid_generator.generate(self.contains_uid)
        self.last_index_id = IdUid.create(next_id, uid)
        return self.last_index_id

    def create_index(self, prop: Property) -> IdUid:
        """Give the property an index identity."""
        if prop.index_id is not None:
            raise ModelInfoError(f"can't create an index on {prop.name} - it already exists")
        prop.index_id = self.create_index_id()
        return prop.index_id

    def remove_index(self, prop: Property) -> None:
        """Drop the property's index and retire the index uid."""
        if prop.index_id is None:
            raise ModelInfoError(f"can't remove index on {prop.name} - it's not defined")
        self._retire(self.retired_index_uids, "retired_index_uids", prop.index_id)
        prop.index_id = None

    def create_relation_id(self) -> IdUid:
        """Allocate the next relation identity and advance lastRelationId."""
        next_id = 1
        if not self.last_relation_id.is_empty:
            next_id = self.last_relation_id.get_id() + 1

        uid = self.uid_generator.generate(self.contains_uid)
        self.last_relation_id = IdUid.create(next_id, uid)
        return self.last_relation_id

    def create_relation(self, entity: Entity) -> Relation:
        """Allocate and append a new to-many relation on the entity."""
        relation = Relation(id=self.create_relation_id())
        entity.relations.append(relation)
        return relation

    def remove_relation(self, entity: Entity, relation: Relation) -> None:
        """Remove a to-many relation and retire its uid."""
        index = self._position(entity.relations, relation)
        if index is None:
            raise ModelInfoError(
                f"can't remove relation {relation.name} {relation.id} - not found"
            )
        del entity.relations[index]
        self._retire(self.retired_relation_uids, "retired_relation_uids", relation.id)

    def contains_uid(self, uid: int) -> bool:
        """Whether the uid is used anywhere in the model, retired lists included."""
        for value in (self.last_entity_id, self.last_index_id, self.last_relation_id):
            if value.uid_or_zero() == uid:
                return True

        for retired in (
            self.retired_entity_uids,
            self.retired_index_uids,
            self.retired_property_uids,
            self.retired_relation_uids,
        ):
            if retired and uid in retired:
                return True

        return any(entity.contains_uid(uid) for entity in self.entities or ())

    @staticmethod
    def _position(items: list[Any], item: Any) -> Optional[int]:
        for index, candidate in enumerate(items):
            if candidate is item:
                return index
        return None

    def _retire(self, retired: Optional[list[int]], name: str, value: IdUid) -> None:
        if retired is None:
            retired = []
            setattr(self, name, retired)
        retired.append(value.get_uid())

    # ------------------------------------------------------------------
    # Serialization and persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            f"_note{n}": note for n, note in enumerate(self.notes, start=1)
        }
        result.update(
            {
                "entities": [e.to_dict() for e in self.entities or ()],
                "lastEntityId": str(self.last_entity_id),
                "lastIndexId": str(self.last_index_id),
                "lastRelationId": str(self.last_relation_id),
                "modelVersion": self.model_version,
                "retiredEntityUids": list(self.retired_entity_uids or ()),
                "retiredIndexUids": list(self.retired_index_uids or ()),
                "retiredPropertyUids": list(self.retired_property_uids or ()),
                "retiredRelationUids": list(self.retired_relation_uids),
            }
        )
        return result

    def to_json(self) -> str:
        """Stable, human-diffable JSON (sorted keys, 2-space indent)."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        uid_generator: Optional[UidGenerator] = None,
    ) -> ModelInfo:
        """Create from dictionary representation.

        Missing or non-array required lists are kept as None so validate()
        can tell "empty on purpose" from "never written" or corrupted.
        Malformed optional lists and uid values raise ValueError.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        entities = data.get("entities")
        notes = [
            data[key]
            for key in sorted(k for k in data if k.startswith("_note"))
            if isinstance(data[key], str)
        ]
        return cls(
            entities=[Entity.from_dict(e) for e in entities] if isinstance(entities, list) else None,
            last_entity_id=IdUid.from_json(data.get("lastEntityId")),
            last_index_id=IdUid.from_json(data.get("lastIndexId")),
            last_relation_id=IdUid.from_json(data.get("lastRelationId")),
            retired_entity_uids=_uid_list(data.get("retiredEntityUids")),
            retired_index_uids=_uid_list(data.get("retiredIndexUids")),
            retired_property_uids=_uid_list(data.get("retiredPropertyUids")),
            retired_relation_uids=_optional_uid_list(data, "retiredRelationUids"),
            model_version=data.get("modelVersion", MODEL_VERSION),
            notes=notes,
            uid_generator=uid_generator or UidGenerator(),
        )

    @property
    def path(self) -> Optional[str]:
        """Path of the backing file, None for an in-memory catalog."""
        return self._file.path if self._file is not None else None

    def attach(self, model_file: ModelFile) -> None:
        """Bind the catalog to an open, locked file handle."""
        self._file = model_file

    def write(self) -> None:
        """Persist the catalog to its file (truncate, write, fsync)."""
        if self._file is None:
            raise ModelInfoError("model is not backed by a file")
        self._file.write(self.to_json())
        logger.debug(f"Wrote model file {self._file.path}")

    def close(self) -> None:
        """Release the file handle (and its lock). Safe to call twice."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> ModelInfo:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _uid_list(value: Any) -> Optional[list[int]]:
    if not isinstance(value, list):
        return None
    for uid in value:
        # bool is an int subclass
        if not isinstance(uid, int) or isinstance(uid, bool) or not 0 < uid <= UID_MAX:
            raise ValueError(f"retired uid {uid!r} is not a valid uid")
    return list(value)


def _optional_uid_list(data: dict[str, Any], key: str) -> list[int]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} is not an array")
    return _uid_list(value) or []


def _json_key(attribute: str) -> str:
    head, *rest = attribute.split("_")
    return head + "".join(word.capitalize() for word in rest)
