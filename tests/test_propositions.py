"""
Tests for propositions: context paths, builder helpers, evaluation and
the storage codec.
"""

import base64
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from bastion.core.auth.propositions import (
    AllOf,
    AnyOf,
    Comparison,
    Const,
    EvaluationContext,
    Not,
    Opaque,
    Proposition,
    PropositionBuilder,
    Recognized,
    Var,
    decode,
    dumps,
    encode,
    evaluate,
    loads,
)
from bastion.core.exceptions import (
    InvalidOperatorError,
    InvalidPatternError,
    InvalidPropositionArgumentError,
    MissingContextPathError,
    UndecodablePropositionError,
)

from tests.models import Post, User

props = PropositionBuilder()


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 4, hour, minute, tzinfo=timezone.utc)


class TestEvaluationContext:
    def test_resolves_rooted_paths(self):
        context = EvaluationContext.build(
            authority={"id": 5, "tags": ["a", "b"]},
            resource={"owner": {"id": 5}},
            region="eu",
        )

        assert context.resolve("authority.id") == 5
        assert context.resolve("authority.tags[1]") == "b"
        assert context.resolve("resource.owner.id") == 5
        assert context.resolve("extra.region") == "eu"

    def test_bare_path_resolves_in_extra(self):
        context = EvaluationContext.build(amount=900)
        assert context.resolve("amount") == 900

    def test_now_is_injected(self):
        now = at(9, 30)
        assert EvaluationContext.build(now=now).resolve("now") == now

    def test_missing_path_raises(self):
        context = EvaluationContext.build(authority={"id": 1})

        with pytest.raises(MissingContextPathError):
            context.resolve("authority.team_id")
        with pytest.raises(MissingContextPathError):
            context.resolve("authority.id.value")

    def test_mapped_entities_are_flattened(self):
        user = User(id=5, name="Alice", approval_limit=100)
        context = EvaluationContext.build(authority=user, resource=Post(id=1, user_id=5, title="x", amount=3))

        assert context.authority["approval_limit"] == 100
        assert context.resolve("resource.user_id") == 5

    def test_plain_objects_are_flattened(self):
        context = EvaluationContext.build(authority=SimpleNamespace(id=3, _secret="x"))

        assert context.resolve("authority.id") == 3
        assert "_secret" not in context.authority


class TestBuilderHelpers:
    def test_resource_owned_by(self):
        proposition = props.resource_owned_by()

        assert proposition.evaluate(EvaluationContext.build({"id": 5}, {"user_id": 5}))
        assert not proposition.evaluate(EvaluationContext.build({"id": 5}, {"user_id": 9}))

    def test_resource_owned_by_custom_fields(self):
        proposition = props.resource_owned_by(ownership_field="author_id", id_field="uid")
        context = EvaluationContext.build({"uid": "u1"}, {"author_id": "u1"})

        assert proposition.evaluate(context)

    def test_time_between_is_inclusive(self):
        proposition = props.time_between("09:00", "17:00")

        assert proposition.evaluate(EvaluationContext.build(now=at(9, 0)))
        assert proposition.evaluate(EvaluationContext.build(now=at(17, 0)))
        assert not proposition.evaluate(EvaluationContext.build(now=at(17, 1)))
        assert not proposition.evaluate(EvaluationContext.build(now=at(8, 59)))

    def test_time_between_rejects_bad_bounds(self):
        with pytest.raises(InvalidPropositionArgumentError):
            props.time_between("9am", "17:00")

    def test_within_limit_reads_limit_from_authority(self):
        proposition = props.within_limit("amount", "approval_limit")
        authority = {"approval_limit": 10000}

        assert proposition.evaluate(EvaluationContext.build(authority, amount=9000))
        assert proposition.evaluate(EvaluationContext.build(authority, amount=10000))
        assert not proposition.evaluate(EvaluationContext.build(authority, amount=15000))

    def test_within_limit_exclusive(self):
        proposition = props.within_limit("amount", "approval_limit", inclusive=False)
        assert not proposition.evaluate(EvaluationContext.build({"approval_limit": 10}, amount=10))

    def test_matches(self):
        proposition = props.matches("resource.team_id", "authority.team_id")

        assert proposition.evaluate(EvaluationContext.build({"team_id": 2}, {"team_id": 2}))
        assert not proposition.evaluate(EvaluationContext.build({"team_id": 2}, {"team_id": 3}))


class TestCombinators:
    def test_empty_all_of_node_is_true_and_empty_any_of_is_false(self):
        context = EvaluationContext.build()

        assert AllOf(()).evaluate(context)
        assert not AnyOf(()).evaluate(context)

    def test_all_of_and_any_of_require_arguments(self):
        with pytest.raises(InvalidPropositionArgumentError):
            props.all_of()
        with pytest.raises(InvalidPropositionArgumentError):
            props.any_of()

    def test_logical_combinators(self):
        owned = props.resource_owned_by()
        business_hours = props.time_between("09:00", "17:00")
        mine_at_night = EvaluationContext.build({"id": 1}, {"user_id": 1}, now=at(22))

        assert not props.logical_and(owned, business_hours).evaluate(mine_at_night)
        assert props.logical_or(owned, business_hours).evaluate(mine_at_night)
        assert props.logical_not(business_hours).evaluate(mine_at_night)

    def test_compare_operators(self):
        context = EvaluationContext.build({"roles": ["editor"], "email": "a@example.com"}, status="open")

        assert props.compare("authority.roles", "contains", "editor").evaluate(context)
        assert props.compare("status", "in", ["open", "pending"]).evaluate(context)
        assert props.compare("status", "not_in", ["closed"]).evaluate(context)
        assert props.compare("authority.email", "ends_with", "@example.com").evaluate(context)
        assert props.compare("authority.email", "starts_with", "a@").evaluate(context)
        assert props.compare("authority.email", "matches", r"^[a-z]+@").evaluate(context)

    def test_unknown_operator_is_rejected(self):
        with pytest.raises(InvalidOperatorError):
            Comparison("~=", Var("a"), Const(1))

    def test_invalid_literal_pattern_is_rejected(self):
        with pytest.raises(InvalidPatternError):
            props.compare("resource.title", "matches", "([unclosed")

    def test_invalid_pattern_from_context_raises_during_evaluation(self):
        proposition = props.compare("title", "matches", "pattern", literal=False)

        with pytest.raises(InvalidPatternError):
            proposition.evaluate(EvaluationContext.build(title="x", pattern="[a-"))

    def test_missing_path_raises_during_evaluation(self):
        with pytest.raises(MissingContextPathError):
            props.resource_owned_by().evaluate(EvaluationContext.build({"id": 1}, {}))

    def test_absent_proposition_places_no_condition(self):
        assert evaluate(None, EvaluationContext.build())


class TestCodec:
    def test_helper_propositions_are_stored_by_recipe(self):
        proposition = props.within_limit("amount", "approval_limit")

        encoded = encode(proposition)
        assert isinstance(encoded, Recognized)
        assert encoded.method == "within_limit"
        assert dumps(proposition) == {
            "method": "within_limit",
            "params": {"value_key": "amount", "limit_key": "approval_limit", "inclusive": True},
        }
        assert loads(dumps(proposition)) == proposition

    def test_composed_propositions_are_stored_opaque(self):
        proposition = props.any_of(
            props.resource_owned_by(),
            props.logical_not(props.time_between("00:00", "06:00")),
        )

        encoded = encode(proposition)
        assert isinstance(encoded, Opaque)
        document = dumps(proposition)
        assert set(document) == {"format", "payload"}

        restored = loads(document)
        for context in (
            EvaluationContext.build({"id": 1}, {"user_id": 1}, now=at(3)),
            EvaluationContext.build({"id": 1}, {"user_id": 2}, now=at(3)),
            EvaluationContext.build({"id": 1}, {"user_id": 2}, now=at(12)),
        ):
            assert restored.evaluate(context) == proposition.evaluate(context)

    def test_foreign_opaque_format_is_rejected(self):
        document = {
            "format": "php-serialize",
            "payload": base64.b64encode(b'O:8:"Closure":0:{}').decode(),
        }
        with pytest.raises(UndecodablePropositionError):
            loads(document)

    def test_bare_string_is_rejected(self):
        with pytest.raises(UndecodablePropositionError):
            loads('a:1:{s:4:"rule";}')

    def test_corrupt_tree_payload_is_rejected(self):
        with pytest.raises(UndecodablePropositionError):
            decode(Opaque(b"{not json"))

    def test_unknown_recipe_is_rejected(self):
        with pytest.raises(InvalidPropositionArgumentError):
            loads({"method": "is_admin", "params": {}})

    def test_none_round_trips(self):
        assert dumps(None) is None
        assert loads(None) is None

    def test_equality_ignores_identity(self):
        assert Proposition(Not(Comparison("==", Var("a"), Const(1)))) == Proposition(
            Not(Comparison("==", Var("a"), Const(1)))
        )
