"""Entity references and hierarchy type tags.

An EntityRef is the only handle the closure table ever holds on an entity:
a type tag plus a scalar key. Entities themselves are owned elsewhere.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from ancestry.contracts.errors import MissingAncestryTypeError, UnknownAncestryTypeError

KeyValue = int | str | uuid.UUID


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Stable (type_tag, key) pair identifying an entity.

    Two refs are equal iff both fields are equal, so `EntityRef("user", 1)`
    and `EntityRef("user", "1")` are different refs. ModelRegistry.ref_for()
    canonicalises keys so refs from callers and from stored rows agree.
    """

    type_tag: str
    key: KeyValue

    @property
    def storage_key(self) -> str:
        """Key as stored in the string key columns."""
        return str(self.key)

    def __str__(self) -> str:
        return f"{self.type_tag}:{self.key}"


@runtime_checkable
class AncestryType(Protocol):
    """Anything with a string `.value` can name a hierarchy type.

    StrEnum members satisfy this, which is the intended way to get
    type-safe hierarchy names:

        class Hierarchy(StrEnum):
            SELLER = "seller"
            ORGANIZATION = "organization"
    """

    @property
    def value(self) -> str: ...


HierarchyType = str | AncestryType


def normalize_type(
    hierarchy_type: HierarchyType | None,
    known_types: Collection[str] | None = None,
) -> str:
    """Return the string tag for a hierarchy type.

    Args:
        hierarchy_type: String tag or object exposing `.value`
        known_types: Optional whitelist; empty or None accepts any tag

    Raises:
        MissingAncestryTypeError: If no type was given
        UnknownAncestryTypeError: If a whitelist is configured and the tag is not in it
    """
    if hierarchy_type is None:
        raise MissingAncestryTypeError()
    if isinstance(hierarchy_type, Enum) or not isinstance(hierarchy_type, str):
        value = getattr(hierarchy_type, "value", None)
    else:
        value = hierarchy_type
    if not isinstance(value, str) or value == "":
        raise MissingAncestryTypeError()
    if known_types and value not in known_types:
        raise UnknownAncestryTypeError(value, sorted(known_types))
    return value
