"""
Tests for attribute constraints.
"""

from types import SimpleNamespace

import pytest

from bastion.core.auth.constraints import (
    Builder,
    ColumnConstraint,
    Constrainer,
    Constraint,
    Group,
    ValueConstraint,
)
from bastion.core.exceptions import InvalidLogicalOperatorError, InvalidOperatorError


def entity(**attributes):
    return SimpleNamespace(**attributes)


class TestValueConstraint:
    def test_two_argument_form_means_equality(self):
        constraint = Constraint.where("status", "published")

        assert constraint.operator == "="
        assert constraint.check(entity(status="published"))
        assert not constraint.check(entity(status="draft"))

    @pytest.mark.parametrize("operator,value,expected", [
        ("=", 10, True),
        ("==", 10, True),
        ("!=", 10, False),
        ("<", 11, True),
        (">", 9, True),
        ("<=", 10, True),
        (">=", 11, False),
    ])
    def test_operators(self, operator, value, expected):
        assert Constraint.where("price", operator, value).check(entity(price=10)) is expected

    def test_numeric_strings_compare_as_numbers(self):
        assert Constraint.where("price", "<", 100).check(entity(price="99.5"))

    def test_incomparable_values_never_match(self):
        assert not Constraint.where("price", "<", 100).check(entity(price=None))
        assert not Constraint.where("price", ">", "abc").check(entity(price=5))

    def test_reads_mappings(self):
        assert Constraint.where("status", "open").check({"status": "open"})

    def test_invalid_operator_is_rejected_at_construction(self):
        with pytest.raises(InvalidOperatorError):
            Constraint.where("price", "<>", 10)

    def test_invalid_logical_operator_is_rejected(self):
        with pytest.raises(InvalidLogicalOperatorError):
            ValueConstraint("price", "=", 10, logical_operator="xor")

    def test_column_must_be_a_string(self):
        with pytest.raises(ValueError):
            ValueConstraint(5, "=", 10)

    def test_or_where_sets_logical_operator(self):
        constraint = Constraint.or_where("archived", False)
        assert constraint.is_or()
        assert not constraint.is_and()


class TestColumnConstraint:
    def test_compares_two_resource_columns(self):
        constraint = Constraint.where_column("spent", "<=", "budget")

        assert constraint.check(entity(spent=5, budget=10))
        assert not constraint.check(entity(spent=15, budget=10))

    def test_against_authority_reads_right_side_from_authority(self):
        constraint = Constraint.where_column("user_id", "id", against="authority")

        assert constraint.check(entity(user_id=5), entity(id=5))
        assert not constraint.check(entity(user_id=5), entity(id=9))

    def test_against_authority_without_authority_fails(self):
        constraint = Constraint.where_column("user_id", "id", against="authority")
        assert not constraint.check(entity(user_id=5))

    def test_against_must_be_known(self):
        with pytest.raises(ValueError):
            ColumnConstraint("a", "=", "b", against="team")


class TestGroup:
    def test_empty_group_passes(self):
        assert Group().check(entity())

    def test_and_members_all_must_pass(self):
        group = Group((
            Constraint.where("status", "open"),
            Constraint.where("price", "<", 10),
        ))

        assert group.check(entity(status="open", price=5))
        assert not group.check(entity(status="open", price=50))

    def test_or_member_joins_with_or(self):
        group = Group((
            Constraint.where("status", "open"),
            Constraint.or_where("price", "<", 10),
        ))

        assert group.check(entity(status="closed", price=5))
        assert group.check(entity(status="open", price=50))
        assert not group.check(entity(status="closed", price=50))

    def test_group_starting_with_or_starts_false(self):
        group = Group((Constraint.or_where("status", "open"),))

        assert group.check(entity(status="open"))
        assert not group.check(entity(status="closed"))

    def test_add_returns_new_group(self):
        group = Group()
        grown = group.add(Constraint.where("status", "open"))

        assert len(group.constraints) == 0
        assert len(grown.constraints) == 1


class TestBuilder:
    def test_single_constraint_builds_itself(self):
        built = Builder().where("status", "open").build()
        assert isinstance(built, ValueConstraint)

    def test_nested_callable_builds_group(self):
        built = (
            Builder()
            .where("status", "published")
            .or_where(lambda q: q.where("draft", True).where_column("user_id", "id", against="authority"))
            .build()
        )

        assert isinstance(built, Group)
        owner = entity(id=3)
        assert built.check(entity(status="published", draft=False, user_id=1), owner)
        assert built.check(entity(status="draft", draft=True, user_id=3), owner)
        assert not built.check(entity(status="draft", draft=True, user_id=1), owner)

    def test_where_without_value_is_an_error(self):
        with pytest.raises(TypeError):
            Builder().where("status")


class TestPersistence:
    def test_to_data_and_back_checks_identically(self):
        built = (
            Builder()
            .where("price", ">=", 100)
            .or_where_column("owner_id", "id", against="authority")
            .build()
        )
        restored = Constrainer.from_data(built.to_data())
        authority = entity(id=7)

        assert restored == built
        for resource in (entity(price=150, owner_id=1), entity(price=5, owner_id=7), entity(price=5, owner_id=1)):
            assert restored.check(resource, authority) == built.check(resource, authority)

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValueError):
            Constraint.from_data({"kind": "sql", "params": {}})
