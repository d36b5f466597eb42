"""
Catalog to-many ("standalone") relation definition.

Invariants:
    - id is allocated model-wide (lastRelationId) and its uid is never reused
    - target_id is the identity of the target entity in the same model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import CatalogCorruptionError, ModelInfoError
from .iduid import IdUid


@dataclass
class Relation:
    """A named to-many relation from its owning entity to a target entity."""

    id: IdUid
    name: str = ""
    target_id: IdUid = field(default_factory=IdUid)

    def validate(self) -> None:
        self.id.validate()

        if not self.name:
            raise CatalogCorruptionError("name is undefined")

        try:
            self.target_id.validate()
        except ModelInfoError as e:
            e.add_context("targetId")
            raise

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "targetId": str(self.target_id),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relation:
        return cls(
            id=IdUid.from_json(data.get("id")),
            name=data.get("name", ""),
            target_id=IdUid.from_json(data.get("targetId")),
        )
