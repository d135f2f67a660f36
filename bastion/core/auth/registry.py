"""
Entity registry.

Authorities, resources, boundaries and roles are referenced in storage
as a (type_tag, identity) pair. The registry maps type tags to entity
classes, decides which attribute carries an entity's identity, and
answers ownership questions.

Usage:
    registry = EntityRegistry()

    @registry.entity("users")
    class User(Base):
        ...

    registry.register(Post, tag="posts")
    registry.owned_via(Post, "author_id")

    registry.ref(user)        # EntityRef(type_tag="users", identity="5")
    registry.subject(Post)    # Subject(type_tag="posts", identity=None, exists=False)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from bastion.core.exceptions import (
    ConfigurationError,
    MorphKeyViolationError,
    UnknownEntityTypeError,
)

logger = logging.getLogger(__name__)

WILDCARD = "*"

OwnershipCheck = Callable[[Any, Any], bool]


# ============================================================
# REFERENCES
# ============================================================

@dataclass(frozen=True)
class EntityRef:
    """Polymorphic pointer to a stored entity."""
    type_tag: str
    identity: str


@dataclass(frozen=True)
class Subject:
    """
    What an ability check is about.

    - type_tag="*": every type (global wildcard)
    - identity=None: the type as a whole (class-level check)
    - identity set: one instance; exists tells whether it is persisted
    """
    type_tag: str
    identity: str | None = None
    exists: bool = False

    @property
    def is_wildcard(self) -> bool:
        return self.type_tag == WILDCARD

    @classmethod
    def wildcard(cls) -> "Subject":
        return cls(type_tag=WILDCARD)


# ============================================================
# REGISTRY
# ============================================================

class EntityRegistry:
    """
    Maps type tags to entity classes and entity classes to key attributes.

    Unregistered classes fall back to their __tablename__, then to the
    class name, so ad-hoc entities work without configuration.
    """

    def __init__(self, ownership_attribute: str = "user_id"):
        self.ownership_attribute = ownership_attribute
        self._classes: dict[str, Type] = {}
        self._tags: dict[Type, str] = {}
        self._keys: dict[str, str] = {}
        self._enforce_keys = False
        self._ownership: dict[str, str | OwnershipCheck] = {}

    # ============================================================
    # REGISTRATION
    # ============================================================

    def register(self, cls: Type, tag: str | None = None, key: str | None = None) -> Type:
        tag = tag or self._default_tag(cls)
        self._classes[tag] = cls
        self._tags[cls] = tag
        if key is not None:
            self._keys[tag] = key
        return cls

    def entity(self, tag: str | None = None, key: str | None = None) -> Callable[[Type], Type]:
        """
        Decorator to register an entity class.

        Usage:
            @registry.entity("teams")
            class Team(Base):
                ...
        """
        def decorator(cls: Type) -> Type:
            return self.register(cls, tag=tag, key=key)
        return decorator

    def load_key_maps(
        self,
        key_map: dict[str, str] | None = None,
        enforced_key_map: dict[str, str] | None = None,
    ) -> None:
        """Apply key maps from settings. Both at once is a configuration error."""
        if key_map and enforced_key_map:
            raise ConfigurationError(
                "key_map and enforced_key_map are mutually exclusive"
            )
        if enforced_key_map:
            self.enforce_morph_key_map(enforced_key_map)
        elif key_map:
            self.morph_key_map(key_map)

    def morph_key_map(self, mapping: dict[str, str]) -> None:
        self._keys.update(mapping)

    def enforce_morph_key_map(self, mapping: dict[str, str]) -> None:
        self.morph_key_map(mapping)
        self.require_key_map()

    def require_key_map(self) -> None:
        self._enforce_keys = True

    # ============================================================
    # LOOKUPS
    # ============================================================

    def type_tag(self, entity: Any) -> str:
        """Type tag for an instance, a class, or a tag string."""
        if isinstance(entity, str):
            return entity
        cls = entity if isinstance(entity, type) else type(entity)
        tag = self._tags.get(cls)
        if tag is not None:
            return tag
        return self._default_tag(cls)

    def entity_class(self, tag: str) -> Type:
        cls = self._classes.get(tag)
        if cls is None:
            raise UnknownEntityTypeError(tag, sorted(self._classes))
        return cls

    def has_entity(self, tag: str) -> bool:
        return tag in self._classes

    def list_entities(self) -> list[str]:
        return list(self._classes.keys())

    def key_name(self, entity: Any) -> str:
        """Attribute holding the identity of an entity type."""
        tag = self.type_tag(entity)
        if tag in self._keys:
            return self._keys[tag]
        cls = entity if isinstance(entity, type) else type(entity)
        if cls.__name__ in self._keys:
            return self._keys[cls.__name__]
        if self._enforce_keys:
            raise MorphKeyViolationError(cls.__name__)
        return self._primary_key_name(cls)

    def key_of(self, entity: Any) -> str | None:
        value = getattr(entity, self.key_name(entity), None)
        return None if value is None else str(value)

    def exists(self, entity: Any) -> bool:
        """Whether an instance has a persisted identity."""
        try:
            state = sa_inspect(entity)
        except NoInspectionAvailable:
            return self.key_of(entity) is not None
        return bool(state.has_identity) and self.key_of(entity) is not None

    def ref(self, entity: Any) -> EntityRef:
        identity = self.key_of(entity)
        if identity is None:
            raise ValueError(f"{type(entity).__name__} instance has no identity")
        return EntityRef(type_tag=self.type_tag(entity), identity=identity)

    def subject(self, resource: Any) -> Subject:
        """Normalize a resource, resource class or type tag into a Subject."""
        if isinstance(resource, str):
            if resource == WILDCARD:
                return Subject.wildcard()
            return Subject(type_tag=resource)
        if isinstance(resource, type):
            return Subject(type_tag=self.type_tag(resource))
        return Subject(
            type_tag=self.type_tag(resource),
            identity=self.key_of(resource),
            exists=self.exists(resource),
        )

    # ============================================================
    # OWNERSHIP
    # ============================================================

    def owned_via(
        self,
        model: Any,
        attribute: str | OwnershipCheck | None = None,
    ) -> None:
        """
        Configure how ownership is determined.

        owned_via("author_id")                    # every type
        owned_via(Post, "author_id")              # one type
        owned_via(Post, lambda post, user: ...)   # custom check
        """
        if attribute is None:
            self._ownership[WILDCARD] = model
            return
        self._ownership[self.type_tag(model)] = attribute

    def is_owned_by(self, authority: Any, resource: Any) -> bool:
        if resource is None or isinstance(resource, (str, type)):
            return False
        tag = self.type_tag(resource)
        rule = self._ownership.get(tag, self._ownership.get(WILDCARD, self.ownership_attribute))
        if callable(rule):
            return rule(resource, authority) is True
        owner = getattr(resource, rule, None)
        key = self.key_of(authority)
        return owner is not None and key is not None and str(owner) == key

    # ============================================================
    # HELPERS
    # ============================================================

    @staticmethod
    def _default_tag(cls: Type) -> str:
        return getattr(cls, "__tablename__", None) or cls.__name__

    @staticmethod
    def _primary_key_name(cls: Type) -> str:
        try:
            mapper = sa_inspect(cls)
        except NoInspectionAvailable:
            return "id"
        primary_key = mapper.primary_key
        if len(primary_key) != 1:
            logger.debug("Composite primary key on %s, using 'id'", cls.__name__)
            return "id"
        return mapper.get_property_by_column(primary_key[0]).key
