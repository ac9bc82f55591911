#!/usr/bin/env python3
"""
Rule Parser for Field Validation Tags

This module turns the compact rule strings attached to record fields into
structured Rule objects, e.g.:
"len:5", "min:18&max:120", "in:admin,staff"

Supported Rules:
- len:N     string length equals N
- min:N     integer >= N, or string length >= N
- max:N     integer <= N, or string length <= N
- in:a,b,c  value is one of the listed values (empty list allows nothing)

Clauses are joined with '&' and evaluated left to right.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


CLAUSE_SEPARATOR = '&'
NAME_SEPARATOR = ':'
ARG_SEPARATOR = ','

# Rule names accepted by the parser
RULE_NAMES = ('len', 'min', 'max', 'in')

_INT_PATTERN = re.compile(r'^[+-]?[0-9]+$')


class RuleError(Exception):
    """Base exception for rule parsing and evaluation errors."""
    pass


class RuleSyntaxError(RuleError):
    """
    Exception raised when a rule clause cannot be parsed.

    Attributes:
        clause: The offending clause text
        reason: Why the clause was rejected
    """

    def __init__(self, clause: str, reason: str):
        self.clause = clause
        self.reason = reason
        super().__init__(f"invalid validator syntax: {reason} in '{clause}'")


@dataclass(frozen=True)
class Rule:
    """
    A single parsed validation directive.

    Attributes:
        name: Rule name, one of RULE_NAMES
        args_int: Integer arguments; None for an 'in' rule whose arguments
            are not all integers
        args_str: Trimmed argument strings, verbatim
    """
    name: str
    args_int: Optional[Tuple[int, ...]]
    args_str: Tuple[str, ...]

    @property
    def bound(self) -> int:
        """First integer argument, used by len/min/max."""
        return self.args_int[0]

    def __str__(self) -> str:
        return f"{self.name}{NAME_SEPARATOR}{ARG_SEPARATOR.join(self.args_str)}"


def _parse_int(token: str) -> Optional[int]:
    if _INT_PATTERN.match(token):
        return int(token)
    return None


def parse_rule(clause: str) -> Rule:
    """
    Parse one 'name:args' clause into a Rule.

    Args:
        clause: Clause text, e.g. "min:3" or "in:a,b"

    Returns:
        Parsed Rule

    Raises:
        RuleSyntaxError: If the clause has no ':' separator, names an
            unknown rule, or has a non-integer argument where one is required

    Example:
        >>> parse_rule("min: 3")
        Rule(name='min', args_int=(3,), args_str=('3',))
        >>> parse_rule("in:a, b").args_int is None
        True
    """
    name, sep, args_text = clause.partition(NAME_SEPARATOR)
    if not sep:
        raise RuleSyntaxError(clause, "missing ':' separator")

    name = name.strip()
    if name not in RULE_NAMES:
        raise RuleSyntaxError(
            clause,
            f"unknown rule '{name}' (available rules: {', '.join(RULE_NAMES)})"
        )

    if name == 'in' and not args_text.strip():
        # "in:" is the empty allowed set
        return Rule(name=name, args_int=(), args_str=())

    args_str = tuple(arg.strip() for arg in args_text.split(ARG_SEPARATOR))
    parsed = [_parse_int(arg) for arg in args_str]

    if name == 'in':
        args_int = None if None in parsed else tuple(parsed)
        return Rule(name=name, args_int=args_int, args_str=args_str)

    for arg, value in zip(args_str, parsed):
        if value is None:
            raise RuleSyntaxError(clause, f"argument '{arg}' is not an integer")

    return Rule(name=name, args_int=tuple(parsed), args_str=args_str)


def parse_rule_set(rule_string: str) -> Tuple[Rule, ...]:
    """
    Parse a full field rule string into an ordered tuple of Rules.

    Parsing is all-or-nothing: the first bad clause aborts the whole string.

    Args:
        rule_string: Clauses joined by '&', e.g. "min:1&max:5"

    Returns:
        Rules in clause order

    Raises:
        RuleSyntaxError: If any clause is malformed

    Example:
        >>> [r.name for r in parse_rule_set("min:1&max:5")]
        ['min', 'max']
    """
    rules = tuple(parse_rule(clause) for clause in rule_string.split(CLAUSE_SEPARATOR))
    logger.debug("Parsed rule string %r into %d rule(s)", rule_string, len(rules))
    return rules
