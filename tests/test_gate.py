"""
Tests for the gate hooks.
"""

import pytest

from bastion.core.auth.gate import GateIntegration
from bastion.core.exceptions import ConfigurationError

from tests.models import Post


class TestGateIntegration:
    def test_invalid_slot(self, bastion):
        with pytest.raises(ConfigurationError):
            GateIntegration(bastion.clipboard, slot="during")

    @pytest.mark.asyncio
    async def test_after_hook_answers_when_gate_had_no_opinion(self, bastion, user, factory):
        post = await factory.post()
        await bastion.allow(user).to("edit", Post)
        await bastion.forbid(user).to("delete", Post)
        hook = bastion.gate()

        assert await hook.after(user, "edit", None, [post]) is True
        assert await hook.after(user, "delete", None, [post]) is False
        assert await hook.after(user, "archive", None, [post]) is None

    @pytest.mark.asyncio
    async def test_after_hook_never_overrides_prior_result(self, bastion, user):
        await bastion.forbid(user).to("edit", Post)
        hook = bastion.gate()

        assert await hook.after(user, "edit", True, [Post]) is True
        assert await hook.after(user, "edit", False, [Post]) is False

    @pytest.mark.asyncio
    async def test_after_slot_skips_before_hook(self, bastion, user):
        await bastion.allow(user).to("publish")
        hook = bastion.gate()

        assert await hook.before(user, "publish") is None
        assert await hook.after(user, "publish") is True

    @pytest.mark.asyncio
    async def test_before_slot(self, bastion, user):
        await bastion.allow(user).to("publish")
        hook = GateIntegration(bastion.clipboard, slot="before")

        assert await hook.before(user, "publish") is True
        assert await hook.before(user, "archive") is None
        assert await hook.after(user, "publish", None) is None

    @pytest.mark.asyncio
    async def test_boundary_argument(self, bastion, user, factory):
        team = await factory.team()
        await bastion.allow(user).within(team).to("manage", Post)
        hook = bastion.gate()

        assert await hook.after(user, "manage", None, [Post, team]) is True
        assert await hook.after(user, "manage", None, [Post]) is None

    @pytest.mark.asyncio
    async def test_arguments_it_cannot_interpret(self, bastion, user, factory):
        team = await factory.team()
        await bastion.allow(user).everything()
        hook = bastion.gate()

        assert await hook.after(user, "edit", None, [Post, team, "extra"]) is None
        assert await hook.after(user, "edit", None, [42]) is None
        assert await hook.after(user, "edit", None, [{"id": 1}]) is None

    @pytest.mark.asyncio
    async def test_guard_follows_facade(self, bastion, user):
        api = bastion.guard("api")
        await api.allow(user).to("publish")

        assert await api.gate().after(user, "publish") is True
        assert await bastion.gate().after(user, "publish") is None
