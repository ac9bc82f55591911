#!/usr/bin/env python3
"""
Value Dispatcher - applies parsed rules to field values.

Selects the primitive check for each (rule, value kind) pair and stops at the
first failing rule. Sequence fields are checked element-wise, rule by rule.

Supported pairs:
- len: STRING
- min, max: STRING (by length), INTEGER
- in: STRING (string arguments), INTEGER (integer arguments)

Any other pair fails the field.
"""

import collections.abc
import logging
import typing
from enum import Enum
from typing import Any, Iterable, Sequence

from rule_checks import CHECKS
from rule_parser import Rule, RuleError, RuleSyntaxError

logger = logging.getLogger(__name__)


class FieldNotValidError(RuleError):
    """Raised when a field value fails one of its rules."""

    def __init__(self, rule: Rule, value: Any):
        self.rule = rule
        self.value = value
        super().__init__("field not valid")


class ValueKind(str, Enum):
    """Closed set of value kinds the dispatcher understands."""
    STRING = "string"
    INTEGER = "integer"
    SEQUENCE = "sequence"
    OTHER = "other"

    @classmethod
    def of_value(cls, value: Any) -> 'ValueKind':
        """Classify a runtime value."""
        if isinstance(value, str):
            return cls.STRING
        # bool is an int subclass but is not an integer field
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.INTEGER
        if isinstance(value, (list, tuple)):
            return cls.SEQUENCE
        return cls.OTHER

    @classmethod
    def of_type(cls, hint: Any) -> 'ValueKind':
        """
        Classify a declared type hint.

        Args:
            hint: Resolved annotation, e.g. str, int, List[int], tuple[str, ...]

        Returns:
            Matching ValueKind, OTHER for anything unsupported
        """
        if hint is str:
            return cls.STRING
        if hint is int:
            return cls.INTEGER

        origin = typing.get_origin(hint) or hint
        if (isinstance(origin, type) and issubclass(origin, collections.abc.Sequence)
                and not issubclass(origin, (str, bytes, bytearray))):
            return cls.SEQUENCE
        return cls.OTHER


def _integer_pool(rule: Rule) -> tuple:
    if rule.args_int is None:
        raise RuleSyntaxError(str(rule), "non-integer value in set for integer field")
    return rule.args_int


# Supported (rule name, kind) pairs mapped to the (value, argument) passed to
# the rule's registered check
OPERANDS = {
    ('len', ValueKind.STRING): lambda rule, value: (value, rule.bound),
    ('min', ValueKind.STRING): lambda rule, value: (len(value), rule.bound),
    ('max', ValueKind.STRING): lambda rule, value: (len(value), rule.bound),
    ('in', ValueKind.STRING): lambda rule, value: (value, rule.args_str),
    ('min', ValueKind.INTEGER): lambda rule, value: (value, rule.bound),
    ('max', ValueKind.INTEGER): lambda rule, value: (value, rule.bound),
    ('in', ValueKind.INTEGER): lambda rule, value: (value, _integer_pool(rule)),
}


def _fails(rule: Rule, kind: ValueKind, value: Any) -> bool:
    """Return True when `rule` rejects `value` of the given kind."""
    operands = OPERANDS.get((rule.name, kind))

    # Unsupported (rule, kind) pair or a value of the wrong type
    if operands is None or ValueKind.of_value(value) is not kind:
        return True

    check = CHECKS[rule.name]
    return not check(*operands(rule, value))


def dispatch(rules: Iterable[Rule], kind: ValueKind, value: Any) -> None:
    """
    Apply rules to a scalar value, short-circuiting on the first failure.

    Args:
        rules: Parsed rules in evaluation order
        kind: Declared kind of the field
        value: Field value

    Raises:
        FieldNotValidError: If any rule rejects the value
        RuleSyntaxError: If an 'in' rule with non-integer arguments meets an
            integer value

    Example:
        >>> dispatch(parse_rule_set("min:3&max:10"), ValueKind.INTEGER, 5)  # passes
        >>> dispatch(parse_rule_set("len:2"), ValueKind.INTEGER, 5)  # len on an int
        FieldNotValidError: field not valid
    """
    for rule in rules:
        if _fails(rule, kind, value):
            logger.debug("Rule %s rejected %s value %r", rule, kind.value, value)
            raise FieldNotValidError(rule, value)


def dispatch_sequence(rules: Iterable[Rule], values: Sequence[Any]) -> None:
    """
    Apply rules to every element of a sequence.

    Evaluation is rule-major: the first rule is checked against every element
    before the second rule is tried on any element. Each element is checked
    according to its own runtime kind.

    Args:
        rules: Parsed rules in evaluation order
        values: Sequence field value

    Raises:
        FieldNotValidError: On the first failing element/rule pair, or if
            the value is not a list or tuple
    """
    rules = tuple(rules)
    if rules and ValueKind.of_value(values) is not ValueKind.SEQUENCE:
        raise FieldNotValidError(rules[0], values)

    for rule in rules:
        for element in values:
            dispatch((rule,), ValueKind.of_value(element), element)
