"""
Tests for settings, registry configuration and facade wiring.
"""

from dataclasses import dataclass

import pytest
from pydantic import ValidationError

from bastion.core.auth import Bastion, EntityRegistry
from bastion.core.auth.clipboard import CachedClipboard
from bastion.core.config import BastionSettings, CacheSettings
from bastion.core.exceptions import (
    ConfigurationError,
    MorphKeyViolationError,
    UnknownEntityTypeError,
)
from bastion.implementations.cache.memory import MemoryCacheBackend
from bastion.implementations.cache.null import NullCacheBackend
from bastion.implementations.register import create_cache_backend

from tests.models import Post, User


@dataclass
class Account:
    uuid: str
    owner: str | None = None


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BASTION_GUARD", raising=False)
        settings = BastionSettings(_env_file=None)

        assert settings.guard == "web"
        assert settings.gate_slot == "after"
        assert settings.cache.backend == "memory"
        assert settings.database.url.startswith("sqlite+aiosqlite")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BASTION_GUARD", "api")
        monkeypatch.setenv("BASTION_GATE_SLOT", "before")

        settings = BastionSettings(_env_file=None)

        assert settings.guard == "api"
        assert settings.gate_slot == "before"

    def test_both_key_maps_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            BastionSettings(
                _env_file=None,
                key_map={"users": "id"},
                enforced_key_map={"users": "id"},
            )

    def test_invalid_gate_slot(self):
        with pytest.raises(ValidationError):
            BastionSettings(_env_file=None, gate_slot="during")

    def test_invalid_cache_backend(self):
        with pytest.raises(ValidationError):
            CacheSettings(backend="memcached")


class TestCacheFactory:
    def test_builds_configured_backend(self):
        assert isinstance(create_cache_backend(CacheSettings(backend="memory")), MemoryCacheBackend)
        assert isinstance(create_cache_backend(CacheSettings(backend="null")), NullCacheBackend)

    def test_unknown_backend_lists_available(self):
        settings = CacheSettings.model_construct(backend="memcached")

        with pytest.raises(ConfigurationError, match="Available"):
            create_cache_backend(settings)


class TestRegistry:
    def test_fallback_tags(self):
        registry = EntityRegistry()

        assert registry.type_tag(Post) == "posts"
        assert registry.type_tag(Account) == "Account"
        assert registry.type_tag("teams") == "teams"

    def test_decorator_registration(self):
        registry = EntityRegistry()

        @registry.entity("accounts", key="uuid")
        class Tenant:
            def __init__(self, uuid):
                self.uuid = uuid

        assert registry.entity_class("accounts") is Tenant
        assert registry.key_of(Tenant("abc")) == "abc"
        assert registry.ref(Tenant("abc")).type_tag == "accounts"

    def test_unknown_type_lists_available(self, registry):
        with pytest.raises(UnknownEntityTypeError) as exc_info:
            registry.entity_class("widgets")
        assert "users" in str(exc_info.value)

    def test_key_map(self):
        registry = EntityRegistry()
        registry.morph_key_map({"Account": "uuid"})

        assert registry.key_of(Account(uuid="a-1")) == "a-1"

    def test_enforced_key_map(self):
        registry = EntityRegistry()
        registry.enforce_morph_key_map({"users": "id"})

        assert registry.key_of(User(id=3, name="x")) == "3"
        with pytest.raises(MorphKeyViolationError):
            registry.key_of(Account(uuid="a-1"))

    def test_load_both_key_maps_is_an_error(self):
        with pytest.raises(ConfigurationError):
            EntityRegistry().load_key_maps({"users": "id"}, {"users": "id"})

    def test_ownership(self):
        registry = EntityRegistry()
        registry.morph_key_map({"Account": "uuid"})
        registry.owned_via(Account, "owner")
        owner = Account(uuid="u-1")

        assert registry.is_owned_by(owner, Account(uuid="a-2", owner="u-1"))
        assert not registry.is_owned_by(owner, Account(uuid="a-3", owner="u-9"))
        assert not registry.is_owned_by(owner, Account)

    def test_subject_existence(self):
        registry = EntityRegistry()

        assert registry.subject("*").is_wildcard
        assert registry.subject(Post).identity is None
        transient = registry.subject(Post(id=4, title="x"))
        assert (transient.identity, transient.exists) == ("4", False)


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_wires_settings(self, db):
        settings = BastionSettings(
            _env_file=None,
            guard="api",
            gate_slot="before",
            ownership_attribute="author_id",
            key_map={"Account": "uuid"},
            cache=CacheSettings(backend="null", prefix="perms"),
        )
        registry = EntityRegistry()

        bastion = Bastion.from_settings(db, registry, settings)

        assert bastion.guard_name == "api"
        assert bastion.gate().slot == "before"
        assert registry.ownership_attribute == "author_id"
        assert registry.key_of(Account(uuid="k")) == "k"
        assert isinstance(bastion.clipboard, CachedClipboard)
        assert isinstance(bastion.clipboard.cache, NullCacheBackend)
        assert bastion.clipboard.prefix == "perms"

    @pytest.mark.asyncio
    async def test_checks_work_with_null_cache(self, db, registry, user):
        settings = BastionSettings(_env_file=None, cache=CacheSettings(backend="null"))
        bastion = Bastion.from_settings(db, registry, settings)

        await bastion.allow(user).to("edit", Post)
        assert await bastion.can(user, "edit", Post)
