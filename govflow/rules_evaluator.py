import logging
from typing import Any, Callable, Dict, List, Optional

from govflow.exceptions import ConfigurationError
from govflow.models import Condition, Operator, ProfileSnapshot, Requirement, UnknownPolicy

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
TEXT = "text"
BOOLEAN = "boolean"

# Value kind of every ProfileSnapshot attribute a condition may reference
PROFILE_FIELD_KINDS: Dict[str, str] = {
    "age": NUMERIC,
    "household_size": NUMERIC,
    "residency_years": NUMERIC,
    "annual_income": NUMERIC,
    "location": TEXT,
    "income_bracket": TEXT,
    "employment_status": TEXT,
    "citizenship": TEXT,
    "is_veteran": BOOLEAN,
    "has_disability": BOOLEAN,
}

ORDERING_OPERATORS = {Operator.GT, Operator.LT, Operator.GTE, Operator.LTE}


def kind_of(value: Any) -> Optional[str]:
    """Classify a scalar value; bool is checked first since it subclasses int"""
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMERIC
    if isinstance(value, str):
        return TEXT
    return None


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().casefold()
    return value


def _eq(actual, expected):
    return _normalize(actual) == _normalize(expected)


def _ne(actual, expected):
    return _normalize(actual) != _normalize(expected)


def _gt(actual, expected):
    return actual > expected


def _lt(actual, expected):
    return actual < expected


def _gte(actual, expected):
    return actual >= expected


def _lte(actual, expected):
    return actual <= expected


def _in(actual, expected):
    return _normalize(actual) in [_normalize(item) for item in expected]


def _between(actual, expected):
    low, high = expected
    return low <= actual <= high


class RulesEvaluator:
    """Evaluates eligibility conditions against profile values"""

    OPERATORS: Dict[Operator, Callable[[Any, Any], bool]] = {
        Operator.EQ: _eq,
        Operator.NE: _ne,
        Operator.GT: _gt,
        Operator.LT: _lt,
        Operator.GTE: _gte,
        Operator.LTE: _lte,
        Operator.IN: _in,
        Operator.BETWEEN: _between,
    }

    @staticmethod
    def expected_kind(condition: Condition) -> Optional[str]:
        """Kind of profile value the condition's operator can compare against"""
        op = condition.operator
        if op in ORDERING_OPERATORS or op == Operator.BETWEEN:
            return NUMERIC
        if op == Operator.IN:
            if isinstance(condition.value, (list, tuple)) and condition.value:
                return kind_of(condition.value[0])
            return None
        return kind_of(condition.value)

    @staticmethod
    def check_condition(condition: Condition) -> List[str]:
        """
        Check a condition for load-time consistency
        Returns: list of problems (empty when the condition is well-formed)
        """
        problems = []
        field = condition.field
        op = condition.operator
        value = condition.value

        field_kind = PROFILE_FIELD_KINDS.get(field)
        if field_kind is None:
            return [f"unknown profile field '{field}'"]

        if op in (Operator.EQ, Operator.NE):
            if kind_of(value) != field_kind:
                problems.append(f"'{op.value}' on {field_kind} field '{field}' needs a {field_kind} value, got {value!r}")

        elif op in ORDERING_OPERATORS:
            if field_kind != NUMERIC:
                problems.append(f"'{op.value}' is not defined for {field_kind} field '{field}'")
            elif kind_of(value) != NUMERIC:
                problems.append(f"'{op.value}' on '{field}' needs a numeric value, got {value!r}")

        elif op == Operator.IN:
            if not isinstance(value, (list, tuple)) or not value:
                problems.append(f"'in' on '{field}' needs a non-empty list, got {value!r}")
            else:
                bad = [item for item in value if kind_of(item) != field_kind]
                if bad:
                    problems.append(f"'in' on {field_kind} field '{field}' has mismatched items {bad!r}")

        elif op == Operator.BETWEEN:
            if field_kind != NUMERIC:
                problems.append(f"'between' is not defined for {field_kind} field '{field}'")
            elif (not isinstance(value, (list, tuple)) or len(value) != 2
                    or any(kind_of(bound) != NUMERIC for bound in value)):
                problems.append(f"'between' on '{field}' needs a [min, max] numeric pair, got {value!r}")
            elif value[0] > value[1]:
                problems.append(f"'between' on '{field}' has min {value[0]} greater than max {value[1]}")

        return problems

    @staticmethod
    def check_requirement(requirement: Requirement) -> List[str]:
        """Check a requirement, prefixing problems with its id"""
        problems = [
            f"requirement '{requirement.requirement_id}': {problem}"
            for problem in RulesEvaluator.check_condition(requirement.condition)
        ]
        if requirement.mandatory and requirement.unknown_policy == UnknownPolicy.NON_BLOCKING:
            problems.append(
                f"requirement '{requirement.requirement_id}': 'non_blocking' unknown policy "
                f"is only allowed on optional requirements"
            )
        return problems

    @staticmethod
    def get_profile_value(profile: ProfileSnapshot, field: str) -> Any:
        """Get value from the profile snapshot, None when absent"""
        return getattr(profile, field, None)

    @staticmethod
    def evaluate(condition: Condition, profile_value: Any) -> bool:
        """
        Evaluate a single condition against a profile value

        Absent values never match. A value whose type the operator cannot
        compare raises ConfigurationError instead of evaluating to False.
        """
        if profile_value is None:
            return False

        expected = RulesEvaluator.expected_kind(condition)
        actual = kind_of(profile_value)
        if expected is None or actual != expected:
            raise ConfigurationError(
                f"Condition on '{condition.field}' with operator '{condition.operator.value}' "
                f"cannot compare {type(profile_value).__name__} value {profile_value!r}"
            )

        op_func = RulesEvaluator.OPERATORS[condition.operator]
        return op_func(profile_value, condition.value)
