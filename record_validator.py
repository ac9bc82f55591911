#!/usr/bin/env python3
"""
Record Validator - walks a dataclass record and validates every tagged field.

Rules are attached to dataclass fields through field metadata:

    @dataclass
    class User:
        name: str = rule("len:5")
        age: int = rule("min:18&max:120")
        roles: List[str] = rule("in:admin,staff", default_factory=list)

Key Features:
- Fields are processed in declaration order
- Untagged fields are skipped without reading their value
- Per-field problems (syntax, unexported field, failed rule) are collected,
  never fatal
- Only a non-record input aborts the whole call
- Optional RuleTable overrides for rules declared outside the code
"""

import dataclasses
import logging
import typing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from rule_dispatch import FieldNotValidError, ValueKind, dispatch, dispatch_sequence
from rule_parser import RuleError, RuleSyntaxError, parse_rule_set
from rule_table import RuleTable, RuleTableError

logger = logging.getLogger(__name__)


# Field metadata key holding the rule string
RULE_METADATA_KEY = "validate"

NOT_A_RECORD_MESSAGE = "wrong argument given, should be a dataclass instance"
UNEXPORTED_MESSAGE = "validation for unexported field is not allowed"


class NotARecordError(RuleError, TypeError):
    """Raised when the value given to validate() is not a dataclass instance."""

    def __init__(self, value: Any = None):
        self.value = value
        super().__init__(NOT_A_RECORD_MESSAGE)


@dataclass
class ValidationFailure:
    """
    One failed field.

    Attributes:
        field_name: Name of the field that failed
        rule: The field's original rule string
        category: "syntax", "unexported" or "not_valid"
        detail: Description of the problem
    """
    field_name: str
    rule: str
    category: str
    detail: str = ""

    @property
    def message(self) -> str:
        """Single-line human-readable message."""
        if self.category == "not_valid":
            return f"field: {self.field_name} not valid for {self.rule}"
        return f"field: {self.field_name}: {self.detail}"

    def format_error(self, source: str = "") -> str:
        """
        Format the failure for console output.

        Args:
            source: Optional location of the record, e.g. "users.yaml[3]"

        Example:
            [ERROR] users.yaml[3].age: not_valid
              Detail: field: age not valid for min:18
              Rule: min:18
        """
        target = f"{source}.{self.field_name}" if source else self.field_name
        parts = [f"[ERROR] {target}: {self.category}", f"  Detail: {self.message}"]
        if self.rule:
            parts.append(f"  Rule: {self.rule}")
        return "\n".join(parts)

    def __str__(self) -> str:
        return self.message


class RecordValidationError(RuleError):
    """
    Aggregate of every field failure found in one record.

    The message lists each failure's message in field declaration order,
    one per line.
    """

    def __init__(self, failures: List[ValidationFailure]):
        self.failures = list(failures)
        super().__init__("\n".join(failure.message for failure in self.failures))


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Static description of one record field.

    Attributes:
        name: Field name
        rule: Rule string, empty when the field is not validated
        exported: False for underscore-prefixed fields
        kind: Declared kind, None when it can only be known from the value
    """
    name: str
    rule: str
    exported: bool
    kind: Optional[ValueKind]


def rule(expression: str, **field_kwargs: Any) -> Any:
    """
    Declare a dataclass field carrying a validation rule.

    Args:
        expression: Rule string, e.g. "min:1&max:5"
        **field_kwargs: Passed through to dataclasses.field (default,
            default_factory, repr, ...)

    Returns:
        A dataclasses.Field with the rule stored in its metadata
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata[RULE_METADATA_KEY] = expression
    return dataclasses.field(metadata=metadata, **field_kwargs)


def is_record(value: Any) -> bool:
    """Return True for dataclass instances (not dataclass classes)."""
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _resolve_hints(record_type: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        # Unresolvable forward references fall back to runtime kinds
        logger.debug("Could not resolve type hints for %s", record_type.__name__)
        return {}


def describe_fields(record_type: type, overrides: Optional[Dict[str, str]] = None) -> List[FieldDescriptor]:
    """
    Build field descriptors for a dataclass type.

    Args:
        record_type: Dataclass type
        overrides: Optional {field name: rule string} replacing metadata rules

    Returns:
        Descriptors in field declaration order

    Raises:
        RuleTableError: If an override names a field the record does not have
    """
    fields = dataclasses.fields(record_type)
    overrides = overrides or {}

    unknown = set(overrides) - {f.name for f in fields}
    if unknown:
        raise RuleTableError(
            f"Rule table names unknown field(s) of {record_type.__name__}: "
            f"{', '.join(sorted(unknown))}"
        )

    hints = _resolve_hints(record_type)
    descriptors = []

    for f in fields:
        hint = hints.get(f.name, f.type)
        if hint is typing.Any or isinstance(hint, str):
            kind = None
        else:
            kind = ValueKind.of_type(hint)

        descriptors.append(FieldDescriptor(
            name=f.name,
            rule=overrides.get(f.name, f.metadata.get(RULE_METADATA_KEY, "")),
            exported=not f.name.startswith("_"),
            kind=kind,
        ))

    return descriptors


class RecordValidator:
    """
    Field-by-field validation engine for dataclass records.

    Collects every failing field instead of stopping at the first one.
    """

    def __init__(self, rule_table: Optional[RuleTable] = None):
        """
        Initialize record validator.

        Args:
            rule_table: Optional rule table whose entries override the rules
                declared in field metadata
        """
        self.rule_table = rule_table

    def evaluate(self, record: Any) -> List[ValidationFailure]:
        """
        Validate every tagged field of a record.

        Args:
            record: Dataclass instance

        Returns:
            List of ValidationFailure objects (empty if validation passes)

        Raises:
            NotARecordError: If record is not a dataclass instance
            RuleTableError: If the rule table names unknown fields
        """
        if not is_record(record):
            raise NotARecordError(record)

        record_type = type(record)
        overrides = self.rule_table.rules_for(record_type) if self.rule_table else None
        failures: List[ValidationFailure] = []

        for descriptor in describe_fields(record_type, overrides):
            failure = self._check_field(record, descriptor)
            if failure is not None:
                failures.append(failure)

        logger.debug("Validated %s: %d failing field(s)", record_type.__name__, len(failures))
        return failures

    def _check_field(self, record: Any, descriptor: FieldDescriptor) -> Optional[ValidationFailure]:
        """Run one field's rules, returning its failure or None."""
        if not descriptor.rule:
            return None

        if not descriptor.exported:
            return ValidationFailure(
                field_name=descriptor.name,
                rule=descriptor.rule,
                category="unexported",
                detail=UNEXPORTED_MESSAGE,
            )

        try:
            rules = parse_rule_set(descriptor.rule)

            value = getattr(record, descriptor.name, dataclasses.MISSING)
            if value is dataclasses.MISSING:
                raise FieldNotValidError(rules[0], value)

            kind = descriptor.kind or ValueKind.of_value(value)

            if kind is ValueKind.SEQUENCE:
                dispatch_sequence(rules, value)
            else:
                dispatch(rules, kind, value)

        except RuleSyntaxError as e:
            return ValidationFailure(
                field_name=descriptor.name,
                rule=descriptor.rule,
                category="syntax",
                detail=str(e),
            )
        except FieldNotValidError as e:
            logger.debug("Field %s failed rule %s", descriptor.name, e.rule)
            return ValidationFailure(
                field_name=descriptor.name,
                rule=descriptor.rule,
                category="not_valid",
                detail=(
                    f"field has no value for {e.rule}" if e.value is dataclasses.MISSING
                    else f"value {e.value!r} rejected by {e.rule}"
                ),
            )

        return None


def validate(record: Any, rule_table: Optional[RuleTable] = None) -> None:
    """
    Validate a record, raising if any field fails.

    Args:
        record: Dataclass instance
        rule_table: Optional rule table overriding field metadata rules

    Raises:
        NotARecordError: If record is not a dataclass instance
        RecordValidationError: If one or more fields fail, carrying the
            failures in field declaration order
    """
    failures = RecordValidator(rule_table).evaluate(record)
    if failures:
        raise RecordValidationError(failures)
