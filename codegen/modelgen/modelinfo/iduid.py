"""
Paired sequential-id + random-uid identities.

An IdUid is stored in its canonical text form "<id>:<uid>":
- id: 32-bit unsigned, sequential within its scope (entities in a model,
  properties in an entity, indexes/relations in a model)
- uid: 64-bit unsigned, random, never reused within the model

Invariants:
    - Both components are nonzero for a valid identity
    - The empty string means "unset" (e.g. lastIndexId before any index)
    - create() never fails; validate() is where malformed values are caught

Example:
    >>> value = IdUid.create(3, 8717895732742165505)
    >>> str(value)
    '3:8717895732742165505'
    >>> value.get()
    (3, 8717895732742165505)
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidIdUidError

ID_BITS = 32
UID_BITS = 64


@dataclass(frozen=True)
class IdUid:
    """Canonical "id:uid" identity value.

    Attributes:
        value: The canonical text, or "" when unset
    """

    value: str = ""

    @classmethod
    def create(cls, id: int, uid: int) -> IdUid:
        """Build an identity from its components.

        Zero components are representable so validate() can report them.
        """
        return cls(f"{id}:{uid}")

    @classmethod
    def from_json(cls, value: object) -> IdUid:
        """Build from a decoded JSON value; null/missing becomes unset."""
        if value is None:
            return cls()
        return cls(str(value))

    @property
    def is_empty(self) -> bool:
        """Whether the identity is unset."""
        return self.value == ""

    def validate(self) -> None:
        """Validate the identity.

        Raises:
            InvalidIdUidError: naming the bad component
        """
        if self.is_empty:
            raise InvalidIdUidError("is undefined", self.value)

        if len(self.value.split(":")) != 2:
            raise InvalidIdUidError(
                f"invalid format '{self.value}' - expected exactly one colon", self.value
            )

        try:
            self.get_id()
        except InvalidIdUidError as e:
            raise InvalidIdUidError(f"id: {e.message}", self.value) from e

        try:
            self.get_uid()
        except InvalidIdUidError as e:
            raise InvalidIdUidError(f"uid: {e.message}", self.value) from e

    def get_id(self) -> int:
        """Return the sequential id component."""
        return self._component(0, ID_BITS)

    def get_uid(self) -> int:
        """Return the uid component."""
        return self._component(1, UID_BITS)

    def get(self) -> tuple[int, int]:
        """Return (id, uid)."""
        return self.get_id(), self.get_uid()

    def id_or_zero(self) -> int:
        """Id component, or 0 if the identity is unset or malformed."""
        try:
            return self.get_id()
        except InvalidIdUidError:
            return 0

    def uid_or_zero(self) -> int:
        """Uid component, or 0 if the identity is unset or malformed."""
        try:
            return self.get_uid()
        except InvalidIdUidError:
            return 0

    def _component(self, n: int, bits: int) -> int:
        if self.is_empty:
            raise InvalidIdUidError("is undefined", self.value)

        parts = self.value.split(":")
        if n >= len(parts):
            raise InvalidIdUidError(f"is missing in '{self.value}'", self.value)

        text = parts[n]
        if not (text.isascii() and text.isdigit()):
            raise InvalidIdUidError(f"can't parse '{text}' as unsigned int", self.value)

        component = int(text)
        if component >= 1 << bits:
            raise InvalidIdUidError(
                f"can't parse '{text}' as unsigned int: out of {bits}-bit range", self.value
            )
        if component == 0:
            raise InvalidIdUidError("equals zero", self.value)
        return component

    def __str__(self) -> str:
        return self.value
