"""
Error types for the model catalog.

This module defines all exception types raised while loading, validating,
merging and persisting the model catalog:
- ModelInfoError: Base exception
- InvalidIdUidError: Malformed "id:uid" identity
- CatalogCorruptionError: Inconsistent catalog (last-id pointers, missing lists)
- UidNotFoundError: Explicit uid not present in the catalog
- UidRequestError: Empty uid annotation, reports the stored uid
- DuplicateNameError: Two elements share a name within one scope
- RelationTargetNotFoundError: To-many relation targets an unknown entity
- RelationCycleError: Relation graph contains a cycle
- UidGenerationError: Could not draw an unused uid
- ModelFileError / ModelFileLockedError: Catalog file I/O failures
- BindingError: Invalid binding declaration

Invariants:
    - All errors inherit from ModelInfoError
    - Errors include context (names, identities, paths) for debugging
    - No error is ever converted into a "best effort" result
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ModelInfoError(Exception):
    """Base exception for all model catalog errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "MODEL_INFO_ERROR"
        self.details = details or {}

    def add_context(self, context: str) -> None:
        """Prefix the message with the location of the failure.

        Used while an error propagates out of nested validation so that the
        final message reads like "entity Task 1:123 is invalid: name is undefined".
        """
        self.message = f"{context}: {self.message}"
        self.args = (self.message,)


class InvalidIdUidError(ModelInfoError):
    """An identity is malformed.

    Raised when:
    - The text is empty
    - The text doesn't consist of exactly two components
    - A component can't be parsed within its bit width
    - A component equals zero
    """

    def __init__(self, message: str, value: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_ID_UID", details={"value": value})
        self.value = value


class CatalogCorruptionError(ModelInfoError):
    """The loaded catalog is internally inconsistent.

    Usually the result of a bad manual edit or an unresolved VCS merge
    conflict. Never repaired automatically.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CATALOG_CORRUPTION")


class UidNotFoundError(ModelInfoError):
    """An explicit uid was declared but doesn't exist in the catalog."""

    def __init__(self, message: str, uid: int) -> None:
        super().__init__(message, code="UID_NOT_FOUND", details={"uid": uid})
        self.uid = uid


class UidRequestError(ModelInfoError):
    """A declaration carries an empty uid annotation.

    The message reports the uid currently stored in the catalog so the user
    can copy it into the declaration.
    """

    def __init__(self, message: str, uid: Optional[int] = None) -> None:
        super().__init__(message, code="UID_REQUEST", details={"uid": uid})
        self.uid = uid


class DuplicateNameError(ModelInfoError):
    """Two entities/properties/relations resolve to the same name in one scope.

    Attributes:
        name: The conflicting name
        identities: Identities of the conflicting elements (if known)
    """

    def __init__(self, message: str, name: str, identities: tuple[str, ...] = ()) -> None:
        super().__init__(
            message,
            code="DUPLICATE_NAME",
            details={"name": name, "identities": list(identities)},
        )
        self.name = name
        self.identities = identities


class RelationTargetNotFoundError(ModelInfoError):
    """A to-many relation references an entity missing from the catalog."""

    def __init__(self, message: str, target: str) -> None:
        super().__init__(message, code="RELATION_TARGET_NOT_FOUND", details={"target": target})
        self.target = target


class RelationCycleError(ModelInfoError):
    """Relations between entities form a cycle.

    Attributes:
        path: Dotted relation path, starting with the entity name
        entity: Name of the entity closing the cycle
    """

    def __init__(self, path: str, entity: str) -> None:
        super().__init__(
            f"relation cycle detected: {path} ({entity})",
            code="RELATION_CYCLE",
            details={"path": path, "entity": entity},
        )
        self.path = path
        self.entity = entity


class UidGenerationError(ModelInfoError):
    """No unused uid was found within the attempt budget.

    Practically impossible on a 64-bit space; treat as a bug report.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"internal error: could not generate a unique UID after {attempts} attempts",
            code="UID_GENERATION",
            details={"attempts": attempts},
        )
        self.attempts = attempts


class ModelFileError(ModelInfoError):
    """Reading or writing the catalog file failed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="MODEL_FILE_ERROR", details={"path": path})
        self.path = path


class ModelFileLockedError(ModelFileError):
    """The catalog file is already held exclusively by another handle."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"model file {path} is locked by another process; "
            "run generator invocations sharing a model file one at a time",
            path=path,
        )
        self.code = "MODEL_FILE_LOCKED"


class BindingError(ModelInfoError):
    """The binding declaration is invalid."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, code="BINDING_ERROR", details={"source": source})
        self.source = source
