"""Entity reference resolution.

Maps live entities to EntityRefs (type tag + key) and back. Each entity
class is registered explicitly at startup with an EntityAdapter; nothing
is discovered by reflection beyond reading the configured key attribute.

    registry = ModelRegistry()
    registry.register(User, "user", key="id", key_type=int, loader=users.get)
    registry.key_map({"user": "uuid"}, key_types={"user": UUID})  # User.uuid instead of User.id
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from ancestry.contracts.errors import ConflictingKeyMapsError, InvalidEntityError, MissingKeyMappingError
from ancestry.contracts.refs import EntityRef, KeyValue

if TYPE_CHECKING:
    from ancestry.core.config import AncestrySettings

logger = structlog.get_logger(__name__)

DEFAULT_KEY = "id"


@dataclass(frozen=True, slots=True)
class EntityAdapter:
    """How one entity class participates in hierarchies.

    Attributes:
        type_tag: Tag stored in the type columns
        key: Attribute read to obtain the key (before key maps apply)
        key_type: Decodes the stored string key back to its native type
        loader: Resolves a key to a live entity; None leaves results as refs
    """

    type_tag: str
    key: str = DEFAULT_KEY
    key_type: Callable[[str], KeyValue] = str
    loader: Callable[[KeyValue], Any] | None = None


class ModelRegistry:
    """Registry of entity adapters and key mappings."""

    def __init__(self) -> None:
        self._by_class: dict[type, EntityAdapter] = {}
        self._by_tag: dict[str, EntityAdapter] = {}
        self._key_map: dict[str, str] = {}
        self._key_types: dict[str, Callable[[str], KeyValue]] = {}
        self._require_mapping = False

    def register(
        self,
        cls: type,
        type_tag: str | None = None,
        *,
        key: str | None = None,
        key_type: Callable[[str], KeyValue] | None = None,
        loader: Callable[[KeyValue], Any] | None = None,
    ) -> EntityAdapter:
        """Register an entity class.

        Args:
            cls: Entity class
            type_tag: Tag stored in the closure table (default: lowercased class name)
            key: Key attribute (default: "id")
            key_type: Decoder for stored keys (default: str)
            loader: Key -> entity resolver for query results

        Returns:
            The registered adapter
        """
        adapter = EntityAdapter(
            type_tag=type_tag or cls.__name__.lower(),
            key=key or DEFAULT_KEY,
            key_type=key_type or str,
            loader=loader,
        )
        self._by_class[cls] = adapter
        self._by_tag[adapter.type_tag] = adapter
        return adapter

    def key_map(
        self,
        mapping: Mapping[type | str, str],
        key_types: Mapping[type | str, Callable[[str], KeyValue]] | None = None,
    ) -> None:
        """Map entity types (class or tag) to alternate key attributes.

        Args:
            mapping: Entity type -> key attribute
            key_types: Entity type -> decoder for the mapped attribute. A mapped
                type without one decodes as str, unless the mapping names the
                adapter's own key attribute.
        """
        for target, attribute in mapping.items():
            self._key_map[self._tag_for(target)] = attribute
        for target, key_type in (key_types or {}).items():
            self._key_types[self._tag_for(target)] = key_type

    def enforce_key_map(
        self,
        mapping: Mapping[type | str, str],
        key_types: Mapping[type | str, Callable[[str], KeyValue]] | None = None,
    ) -> None:
        """Register mappings and require one for every entity type."""
        self.key_map(mapping, key_types)
        self.require_key_map()

    def require_key_map(self) -> None:
        """Reject entities whose type has no explicit key mapping."""
        self._require_mapping = True

    def configure(self, settings: AncestrySettings) -> None:
        """Apply key mappings from settings.

        Raises:
            ConflictingKeyMapsError: If both key_map and enforce_key_map are set
        """
        if settings.key_map and settings.enforce_key_map:
            raise ConflictingKeyMapsError()
        if settings.enforce_key_map:
            self.enforce_key_map(settings.enforce_key_map)
        elif settings.key_map:
            self.key_map(settings.key_map)

    def reset(self) -> None:
        """Clear key mappings and enforcement. Registered adapters stay."""
        self._key_map.clear()
        self._key_types.clear()
        self._require_mapping = False

    def adapter_for_tag(self, type_tag: str) -> EntityAdapter | None:
        return self._by_tag.get(type_tag)

    def key_attribute(self, entity_or_cls: Any) -> str:
        """Attribute used as key for an entity or entity class.

        Raises:
            MissingKeyMappingError: If mappings are enforced and none exists
        """
        cls = entity_or_cls if isinstance(entity_or_cls, type) else type(entity_or_cls)
        type_tag = self._tag_for(cls)
        if type_tag in self._key_map:
            return self._key_map[type_tag]
        if self._require_mapping:
            raise MissingKeyMappingError(type_tag)
        adapter = self._by_class.get(cls)
        return adapter.key if adapter is not None else DEFAULT_KEY

    def ref_for(self, entity: Any) -> EntityRef:
        """Return the canonical EntityRef for an entity or ref.

        The key is passed through the same decoder used for stored rows, so a
        caller's ref compares equal to the ref read back from the table
        (`EntityRef("node", 1)` becomes `EntityRef("node", "1")` for a
        str-keyed type).

        Raises:
            InvalidEntityError: If the entity lacks the key attribute, its key is
                None, or the key cannot be decoded for its type
            MissingKeyMappingError: If mappings are enforced and none exists
        """
        if isinstance(entity, EntityRef):
            return self._canonical(entity)
        if entity is None:
            raise InvalidEntityError("Cannot reference None as an entity")
        attribute = self.key_attribute(entity)
        try:
            key = getattr(entity, attribute)
        except AttributeError as e:
            raise InvalidEntityError(f"{type(entity).__name__} has no key attribute '{attribute}'") from e
        if key is None:
            raise InvalidEntityError(
                f"{type(entity).__name__}.{attribute} is None - persist the entity before using it in a hierarchy"
            )
        return self._canonical(EntityRef(self._tag_for(type(entity)), key))

    def key_type_for(self, type_tag: str) -> Callable[[str], KeyValue]:
        """Decoder for stored keys of a type tag.

        Follows the key attribute actually in use: a key-mapped type decodes
        with its mapping's key_type, falling back to str when the mapping
        points away from the adapter's own key.
        """
        adapter = self._by_tag.get(type_tag)
        if type_tag in self._key_map:
            if type_tag in self._key_types:
                return self._key_types[type_tag]
            if adapter is not None and self._key_map[type_tag] == adapter.key:
                return adapter.key_type
            return str
        return adapter.key_type if adapter is not None else str

    def decode(self, type_tag: str, raw_key: str) -> EntityRef:
        """Build an EntityRef from stored columns, restoring the key type."""
        return EntityRef(type_tag, self.key_type_for(type_tag)(raw_key))

    def _canonical(self, ref: EntityRef) -> EntityRef:
        try:
            return self.decode(ref.type_tag, ref.storage_key)
        except (TypeError, ValueError) as e:
            raise InvalidEntityError(f"Key {ref.key!r} is not a valid key for entity type '{ref.type_tag}'") from e

    def resolve(self, ref: EntityRef) -> Any:
        """Resolve a ref to a live entity.

        Returns the ref itself when its type has no loader. Returns None when
        the loader cannot find the entity (it was deleted externally).
        """
        adapter = self._by_tag.get(ref.type_tag)
        if adapter is None or adapter.loader is None:
            return ref
        entity = adapter.loader(ref.key)
        if entity is None:
            logger.warning("entity_not_found", entity_type=ref.type_tag, key=ref.key)
        return entity

    def _tag_for(self, target: type | str) -> str:
        if isinstance(target, str):
            return target
        adapter = self._by_class.get(target)
        return adapter.type_tag if adapter is not None else target.__name__.lower()
