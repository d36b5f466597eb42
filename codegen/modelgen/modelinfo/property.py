"""
Catalog property definition.

Invariants:
    - id is unique within the owning entity (sequential id) and its uid is
      never reused within the model
    - name must be non-empty
    - index_id, if present, validates on its own
    - relation_target names the to-one target entity ("" if not a relation)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import CatalogCorruptionError, ModelInfoError
from .iduid import IdUid


@dataclass
class Property:
    """A named field within an entity.

    Attributes:
        id: Identity, sequential within the owning entity
        name: Current name (renames keep the identity)
        index_id: Identity of the property's index, if indexed
        relation_target: Name of the to-one relation target entity
    """

    id: IdUid
    name: str = ""
    index_id: Optional[IdUid] = None
    relation_target: str = ""

    def validate(self) -> None:
        """Validate the property.

        Raises:
            ModelInfoError: The first violation found
        """
        self.id.validate()

        if self.index_id is not None:
            try:
                self.index_id.validate()
            except ModelInfoError as e:
                e.add_context("indexId")
                raise

        if not self.name:
            raise CatalogCorruptionError("name is undefined")

    def contains_uid(self, uid: int) -> bool:
        """Whether this property or its index uses the uid."""
        if self.id.uid_or_zero() == uid:
            return True
        return self.index_id is not None and self.index_id.uid_or_zero() == uid

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "id": str(self.id),
            "name": self.name,
        }
        if self.index_id is not None:
            result["indexId"] = str(self.index_id)
        if self.relation_target:
            result["relationTarget"] = self.relation_target
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Property:
        """Create from dictionary representation."""
        index_id = data.get("indexId")
        return cls(
            id=IdUid.from_json(data.get("id")),
            name=data.get("name", ""),
            index_id=IdUid.from_json(index_id) if index_id is not None else None,
            relation_target=data.get("relationTarget", ""),
        )
