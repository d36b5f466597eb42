"""
Binding types: the freshly parsed data-model declarations.

A binding mirrors the catalog shape (entities with properties and to-many
relations) but carries no sequential ids until it is merged with the catalog.
Declarations may carry an explicit uid (rename/migration hint) or an empty uid
annotation (uid request: "tell me the stored uid").

After merge_binding_with_model_info() every entity, property and relation has
its resolved id and uid; indexed properties have their index identity and
relations their target identity.

Invariants:
    - Entity names are unique within the binding (case-sensitive)
    - Property and relation names are unique within their entity
    - Names are non-empty
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..modelinfo.errors import BindingError, DuplicateNameError


@dataclass
class BindingProperty:
    """A declared property.

    Attributes:
        name: Property name
        uid: Explicit uid from the declaration (0 if none)
        uid_request: Whether the declaration has an empty uid annotation
        relation_target: Target entity name of a to-one relation
        indexed: Whether the property is indexed
        id: Resolved sequential id (after merge)
        index_id: Resolved index id (after merge, indexed only)
        index_uid: Resolved index uid (after merge, indexed only)
    """

    name: str
    uid: int = 0
    uid_request: bool = False
    relation_target: str = ""
    indexed: bool = False
    id: int = 0
    index_id: int = 0
    index_uid: int = 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "id": self.id, "uid": self.uid}
        if self.relation_target:
            result["relation_target"] = self.relation_target
        if self.indexed:
            result["index_id"] = self.index_id
            result["index_uid"] = self.index_uid
        return result


@dataclass
class BindingRelation:
    """A declared to-many relation."""

    name: str
    target: str
    uid: int = 0
    uid_request: bool = False
    id: int = 0
    target_id: int = 0
    target_uid: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "uid": self.uid,
            "target": self.target,
            "target_id": self.target_id,
            "target_uid": self.target_uid,
        }


@dataclass
class BindingEntity:
    """A declared entity."""

    name: str
    properties: list[BindingProperty] = field(default_factory=list)
    relations: list[BindingRelation] = field(default_factory=list)
    uid: int = 0
    uid_request: bool = False
    id: int = 0
    last_property_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "id": self.id,
            "uid": self.uid,
            "last_property_id": self.last_property_id,
            "properties": [p.to_dict() for p in self.properties],
        }
        if self.relations:
            result["relations"] = [r.to_dict() for r in self.relations]
        return result


@dataclass
class Binding:
    """All declarations of one source unit.

    Attributes:
        package: Package/module the declarations belong to
        entities: Declared entities in declaration order
        source: Where the declarations were read from (for messages)
    """

    package: str = ""
    entities: list[BindingEntity] = field(default_factory=list)
    source: str = ""

    def validate(self) -> None:
        """Check names before any identity is resolved.

        Raises:
            BindingError: On an empty name
            DuplicateNameError: On a repeated name within one scope
        """
        _check_names("entity", [e.name for e in self.entities], "binding")
        for entity in self.entities:
            scope = f"entity {entity.name}"
            _check_names("property", [p.name for p in entity.properties], scope)
            _check_names("relation", [r.name for r in entity.relations], scope)

    def find_entity(self, name: str) -> BindingEntity | None:
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None

    def to_dict(self) -> dict[str, Any]:
        """Resolved binding, as handed to the code renderer."""
        return {
            "package": self.package,
            "entities": [e.to_dict() for e in self.entities],
        }


def _check_names(kind: str, names: list[str], scope: str) -> None:
    seen: set[str] = set()
    for name in names:
        if not name:
            raise BindingError(f"{kind} name is undefined in {scope}")
        if name in seen:
            raise DuplicateNameError(f"duplicate {kind} name '{name}' in {scope}", name)
        seen.add(name)
