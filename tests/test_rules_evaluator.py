"""Tests for condition evaluation and load-time condition checks."""

import pytest

from govflow.exceptions import ConfigurationError
from govflow.models import Condition, Operator, ProfileSnapshot, UnknownPolicy
from govflow.rules_evaluator import RulesEvaluator

from .conftest import make_requirement


class TestEvaluate:
    """Operator semantics at evaluation time."""

    @pytest.mark.parametrize(
        "operator,value,actual,expected",
        [
            (Operator.GTE, 18, 18, True),
            (Operator.GT, 18, 18, False),
            (Operator.LT, 65, 64, True),
            (Operator.LTE, 30000, 30000.5, False),
            (Operator.BETWEEN, [18, 65], 65, True),
            (Operator.BETWEEN, [18, 65], 17, False),
            (Operator.NE, 3, 4, True),
        ],
    )
    def test_numeric_operators(self, operator, value, actual, expected):
        condition = Condition(field="age", operator=operator, value=value)
        assert RulesEvaluator.evaluate(condition, actual) is expected

    def test_text_comparison_ignores_case_and_whitespace(self):
        condition = Condition(field="citizenship", operator=Operator.EQ, value="Citizen")
        assert RulesEvaluator.evaluate(condition, "  citizen ") is True

    def test_in_operator_on_text(self):
        condition = Condition(
            field="employment_status", operator=Operator.IN, value=["unemployed", "retired"]
        )
        assert RulesEvaluator.evaluate(condition, "RETIRED") is True
        assert RulesEvaluator.evaluate(condition, "employed") is False

    def test_boolean_equality(self):
        condition = Condition(field="is_veteran", operator=Operator.EQ, value=True)
        assert RulesEvaluator.evaluate(condition, True) is True
        assert RulesEvaluator.evaluate(condition, False) is False

    def test_absent_value_never_matches(self):
        condition = Condition(field="age", operator=Operator.NE, value=30)
        assert RulesEvaluator.evaluate(condition, None) is False

    def test_type_mismatch_raises_instead_of_false(self):
        condition = Condition(field="age", operator=Operator.GTE, value=18)
        with pytest.raises(ConfigurationError):
            RulesEvaluator.evaluate(condition, "eighteen")

    def test_bool_is_not_treated_as_number(self):
        condition = Condition(field="age", operator=Operator.GTE, value=1)
        with pytest.raises(ConfigurationError):
            RulesEvaluator.evaluate(condition, True)


class TestCheckCondition:
    """Load-time validation of conditions."""

    def test_well_formed_conditions_have_no_problems(self):
        conditions = [
            Condition(field="age", operator=Operator.BETWEEN, value=[18, 65]),
            Condition(field="location", operator=Operator.IN, value=["CA", "NY"]),
            Condition(field="has_disability", operator=Operator.EQ, value=True),
        ]
        for condition in conditions:
            assert RulesEvaluator.check_condition(condition) == []

    def test_unknown_profile_field(self):
        problems = RulesEvaluator.check_condition(Condition(field="shoe_size", operator=Operator.EQ, value=9))
        assert problems and "unknown profile field" in problems[0]

    def test_ordering_operator_on_text_field(self):
        problems = RulesEvaluator.check_condition(Condition(field="location", operator=Operator.GT, value="CA"))
        assert problems

    def test_between_with_min_above_max(self):
        problems = RulesEvaluator.check_condition(Condition(field="age", operator=Operator.BETWEEN, value=[65, 18]))
        assert problems and "greater than max" in problems[0]

    def test_between_needs_a_pair(self):
        problems = RulesEvaluator.check_condition(Condition(field="age", operator=Operator.BETWEEN, value=[18]))
        assert problems

    def test_in_needs_non_empty_list_of_matching_kind(self):
        assert RulesEvaluator.check_condition(Condition(field="location", operator=Operator.IN, value=[]))
        assert RulesEvaluator.check_condition(Condition(field="location", operator=Operator.IN, value=["CA", 3]))

    def test_eq_value_kind_must_match_field(self):
        problems = RulesEvaluator.check_condition(Condition(field="is_veteran", operator=Operator.EQ, value="yes"))
        assert problems

    def test_non_blocking_policy_rejected_on_mandatory_requirement(self):
        requirement = make_requirement(
            "family", "household_size", Operator.GTE, 3,
            mandatory=True, unknown_policy=UnknownPolicy.NON_BLOCKING,
        )
        problems = RulesEvaluator.check_requirement(requirement)
        assert any("non_blocking" in p for p in problems)


def test_get_profile_value_returns_none_for_missing_attribute():
    profile = ProfileSnapshot(age=40)
    assert RulesEvaluator.get_profile_value(profile, "age") == 40
    assert RulesEvaluator.get_profile_value(profile, "annual_income") is None
