"""
Model catalog for the entity model generator.

This module provides the persisted schema catalog, including:
- Identities (IdUid) and unique uid generation
- Catalog types (ModelInfo, Entity, Property, Relation)
- Relation cycle detection
- Catalog file persistence with exclusive locking

Invariants:
    - ids and uids are immutable once assigned
    - uids are never reused, retired uids included
    - A catalog that fails validation is never written back

How to change safely:
    - Add new elements through ModelInfo.create_* only
    - Retire (never silently drop) removed elements
    - Keep the catalog file under version control
"""

from .entity import Entity
from .errors import (
    BindingError,
    CatalogCorruptionError,
    DuplicateNameError,
    InvalidIdUidError,
    ModelFileError,
    ModelFileLockedError,
    ModelInfoError,
    RelationCycleError,
    RelationTargetNotFoundError,
    UidGenerationError,
    UidNotFoundError,
    UidRequestError,
)
from .fileio import ModelFile, load_or_create_model
from .iduid import IdUid
from .model import MODEL_NOTES, MODEL_VERSION, ModelInfo
from .property import Property
from .relation import Relation
from .relcycles import check_relation_cycles
from .uidgen import RandomUidSource, SequenceUidSource, UidGenerator, UidSource

__all__ = [
    # Types
    "IdUid",
    "ModelInfo",
    "Entity",
    "Property",
    "Relation",
    "MODEL_NOTES",
    "MODEL_VERSION",
    # Uid generation
    "UidGenerator",
    "UidSource",
    "RandomUidSource",
    "SequenceUidSource",
    # Cycles
    "check_relation_cycles",
    # Persistence
    "ModelFile",
    "load_or_create_model",
    # Errors
    "ModelInfoError",
    "InvalidIdUidError",
    "CatalogCorruptionError",
    "UidNotFoundError",
    "UidRequestError",
    "DuplicateNameError",
    "RelationTargetNotFoundError",
    "RelationCycleError",
    "UidGenerationError",
    "ModelFileError",
    "ModelFileLockedError",
    "BindingError",
]
