#!/usr/bin/env python3
"""
Tests for record_validator.py - field-by-field validation of dataclass records.

Test coverage:
- Structural error for non-record inputs
- Untagged fields are skipped
- len / min / max / in rules on string, integer and sequence fields
- Syntax and unexported-field failures are field-local
- Failures keep field declaration order in the aggregate error
- Rule table overrides
"""

import dataclasses
import unittest
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from record_validator import (
    NOT_A_RECORD_MESSAGE,
    RULE_METADATA_KEY,
    NotARecordError,
    RecordValidationError,
    RecordValidator,
    ValidationFailure,
    describe_fields,
    is_record,
    rule,
    validate,
)
from rule_dispatch import ValueKind
from rule_table import RuleTable, RuleTableError


@dataclass
class User:
    id: str = rule("len:36")
    name: str = rule("min:2&max:20")
    age: int = rule("min:18&max:120")
    role: str = rule("in:admin,stuff")
    phones: List[str] = rule("len:11")
    nickname: str = ""


@dataclass
class App:
    version: str = rule("len:5")


@dataclass
class Response:
    code: int = rule("in:200,404,500")
    body: str = field(default="")


@dataclass
class Token:
    header: str = rule("len:3")
    _secret: str = rule("len:3")
    payload: str = rule("min:1")


def make_user(**overrides: Any) -> User:
    values = dict(
        id="0" * 36,
        name="Alice",
        age=30,
        role="admin",
        phones=["12345678901", "10987654321"],
    )
    values.update(overrides)
    return User(**values)


class TestStructuralError(unittest.TestCase):
    """Test non-record inputs are rejected before any field is inspected."""

    def test_rejects_non_records(self):
        for value in (None, 1, "text", [1, 2], {"version": "1.0.0"}, App):
            with self.subTest(value=value):
                with self.assertRaises(NotARecordError) as ctx:
                    validate(value)
                self.assertEqual(str(ctx.exception), NOT_A_RECORD_MESSAGE)

    def test_structural_error_is_type_error(self):
        with self.assertRaises(TypeError):
            validate(42)

    def test_evaluate_rejects_non_records(self):
        with self.assertRaises(NotARecordError):
            RecordValidator().evaluate({"code": 200})

    def test_is_record(self):
        self.assertTrue(is_record(App("1.0.0")))
        self.assertFalse(is_record(App))
        self.assertFalse(is_record(object()))


class TestValidRecords(unittest.TestCase):
    """Test records whose fields all pass."""

    def test_valid_user(self):
        self.assertIsNone(validate(make_user()))
        self.assertEqual(RecordValidator().evaluate(make_user()), [])

    def test_valid_app(self):
        self.assertIsNone(validate(App("1.0.0")))

    def test_valid_response(self):
        self.assertIsNone(validate(Response(code=404)))

    def test_record_without_rules(self):
        @dataclass
        class Plain:
            a: int = 0
            b: str = ""

        self.assertIsNone(validate(Plain()))


class TestSkippedFields(unittest.TestCase):
    """Test fields without a rule string are never inspected."""

    def test_untagged_field_value_is_ignored(self):
        @dataclass
        class Holder:
            anything: Any = None
            count: int = rule("min:0", default=1)

        self.assertIsNone(validate(Holder(anything=object())))

    def test_untagged_field_is_not_read(self):
        @dataclass
        class Lazy:
            count: int = rule("min:0", default=1)
            untouched: Any = field(default=None)

        class Guarded(Lazy):
            @property
            def untouched(self):
                raise AssertionError("untagged field was read")

            @untouched.setter
            def untouched(self, value):
                pass

        record = Guarded()
        self.assertEqual(RecordValidator().evaluate(record), [])

    def test_empty_rule_string_is_skipped(self):
        @dataclass
        class Holder:
            value: int = rule("", default=-5)

        self.assertIsNone(validate(Holder()))


class TestFieldRules(unittest.TestCase):
    """Test each rule kind through the record walker."""

    def test_len_on_string(self):
        self.assertIsNone(validate(App("12345")))
        for version in ("1234", "123456"):
            with self.subTest(version=version):
                with self.assertRaises(RecordValidationError) as ctx:
                    validate(App(version))
                self.assertEqual(str(ctx.exception), "field: version not valid for len:5")

    def test_integer_bounds(self):
        for age, ok in ((17, False), (18, True), (120, True), (121, False)):
            with self.subTest(age=age):
                failures = RecordValidator().evaluate(make_user(age=age))
                self.assertEqual(failures == [], ok)

    def test_string_membership(self):
        failures = RecordValidator().evaluate(make_user(role="guest"))
        self.assertEqual([f.field_name for f in failures], ["role"])
        self.assertEqual(failures[0].category, "not_valid")

    def test_integer_membership(self):
        with self.assertRaises(RecordValidationError):
            validate(Response(code=302))

    def test_empty_membership(self):
        @dataclass
        class Closed:
            value: int = rule("in:")

        with self.assertRaises(RecordValidationError):
            validate(Closed(0))

    def test_integer_membership_with_string_arguments(self):
        @dataclass
        class Mixed:
            value: int = rule("in:one,two")

        failures = RecordValidator().evaluate(Mixed(1))
        self.assertEqual(failures[0].category, "syntax")

    def test_rule_on_incompatible_kind(self):
        @dataclass
        class Flags:
            enabled: bool = rule("min:1")

        failures = RecordValidator().evaluate(Flags(True))
        self.assertEqual(failures[0].category, "not_valid")

    def test_short_circuit_keeps_original_rule_string(self):
        failures = RecordValidator().evaluate(make_user(name="A"))
        self.assertEqual(failures[0].rule, "min:2&max:20")
        self.assertEqual(failures[0].message, "field: name not valid for min:2&max:20")
        self.assertIn("min:2", failures[0].detail)

    def test_any_field_uses_runtime_kind(self):
        @dataclass
        class Loose:
            value: Any = rule("min:3")

        self.assertIsNone(validate(Loose(5)))
        self.assertIsNone(validate(Loose("abc")))
        self.assertIsNone(validate(Loose([3, 4])))
        with self.assertRaises(RecordValidationError):
            validate(Loose("ab"))


class TestSequenceFields(unittest.TestCase):
    """Test sequence fields are validated element by element."""

    def test_all_elements_pass(self):
        @dataclass
        class Scores:
            values: List[int] = rule("min:2")

        self.assertIsNone(validate(Scores([2, 3, 4])))

    def test_single_failing_element_fails_field(self):
        failures = RecordValidator().evaluate(make_user(phones=["12345678901", "123"]))
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].field_name, "phones")

    def test_tuple_field(self):
        @dataclass
        class Codes:
            values: Tuple[int, ...] = rule("in:1,2")

        self.assertIsNone(validate(Codes((1, 2, 1))))
        with self.assertRaises(RecordValidationError):
            validate(Codes((1, 3)))

    def test_empty_sequence_passes(self):
        self.assertIsNone(validate(make_user(phones=[])))

    def test_none_in_sequence_field_fails(self):
        failures = RecordValidator().evaluate(make_user(phones=None))
        self.assertEqual(failures[0].category, "not_valid")


class TestFieldLocalFailures(unittest.TestCase):
    """Test syntax and visibility failures do not stop other fields."""

    def test_unknown_rule_is_syntax_failure(self):
        @dataclass
        class Broken:
            first: int = rule("foo:1")
            second: int = rule("min:10")

        failures = RecordValidator().evaluate(Broken(1, 5))

        self.assertEqual([f.field_name for f in failures], ["first", "second"])
        self.assertEqual(failures[0].category, "syntax")
        self.assertIn("invalid validator syntax", failures[0].message)
        self.assertEqual(failures[1].category, "not_valid")

    def test_malformed_clause_is_syntax_failure(self):
        @dataclass
        class Broken:
            value: int = rule("min")

        failures = RecordValidator().evaluate(Broken(1))
        self.assertEqual(failures[0].category, "syntax")

    def test_unexported_field(self):
        failures = RecordValidator().evaluate(Token("abc", "toolong", ""))

        self.assertEqual([f.field_name for f in failures], ["_secret", "payload"])
        self.assertEqual(failures[0].category, "unexported")
        self.assertEqual(
            failures[0].message,
            "field: _secret: validation for unexported field is not allowed"
        )

    def test_unexported_field_reported_even_if_value_valid(self):
        failures = RecordValidator().evaluate(Token("abc", "abc", "x"))
        self.assertEqual([f.category for f in failures], ["unexported"])

    def test_unassigned_field_fails_without_stopping_others(self):
        @dataclass
        class Lazy:
            count: int = field(init=False, metadata={RULE_METADATA_KEY: "min:1"})
            name: str = rule("len:3")

        failures = RecordValidator().evaluate(Lazy(name="toolong"))

        self.assertEqual([f.field_name for f in failures], ["count", "name"])
        self.assertEqual([f.category for f in failures], ["not_valid", "not_valid"])
        self.assertEqual(failures[0].message, "field: count not valid for min:1")
        self.assertIn("no value", failures[0].detail)


class TestAggregateError(unittest.TestCase):
    """Test the aggregate error keeps field declaration order."""

    def test_failures_in_declaration_order(self):
        user = make_user(id="short", age=10, role="guest")

        with self.assertRaises(RecordValidationError) as ctx:
            validate(user)

        error = ctx.exception
        self.assertEqual([f.field_name for f in error.failures], ["id", "age", "role"])
        self.assertEqual(
            str(error),
            "field: id not valid for len:36\n"
            "field: age not valid for min:18&max:120\n"
            "field: role not valid for in:admin,stuff"
        )

    def test_format_error(self):
        failure = ValidationFailure(field_name="age", rule="min:18", category="not_valid")
        formatted = failure.format_error()

        self.assertIn("[ERROR] age: not_valid", formatted)
        self.assertIn("field: age not valid for min:18", formatted)
        self.assertIn("Rule: min:18", formatted)

    def test_format_error_with_source(self):
        failure = ValidationFailure(field_name="age", rule="min:18", category="not_valid")

        self.assertEqual(
            failure.format_error("users.yaml[3]").splitlines(),
            [
                "[ERROR] users.yaml[3].age: not_valid",
                "  Detail: field: age not valid for min:18",
                "  Rule: min:18",
            ]
        )


class TestFieldDescriptors(unittest.TestCase):
    """Test descriptor construction from dataclass metadata."""

    def test_describe_user(self):
        descriptors = describe_fields(User)

        self.assertEqual(
            [d.name for d in descriptors],
            ["id", "name", "age", "role", "phones", "nickname"]
        )
        by_name = {d.name: d for d in descriptors}
        self.assertEqual(by_name["age"].kind, ValueKind.INTEGER)
        self.assertEqual(by_name["phones"].kind, ValueKind.SEQUENCE)
        self.assertEqual(by_name["nickname"].rule, "")
        self.assertTrue(by_name["id"].exported)

    def test_describe_unexported(self):
        by_name = {d.name: d for d in describe_fields(Token)}
        self.assertFalse(by_name["_secret"].exported)

    def test_rule_helper_keeps_metadata_and_defaults(self):
        @dataclass
        class Tagged:
            value: int = rule("min:1", default=3, metadata={"doc": "count"})

        (f,) = dataclasses.fields(Tagged)
        self.assertEqual(f.metadata[RULE_METADATA_KEY], "min:1")
        self.assertEqual(f.metadata["doc"], "count")
        self.assertEqual(Tagged().value, 3)

    def test_plain_metadata_tag(self):
        @dataclass
        class Tagged:
            value: int = field(default=0, metadata={"validate": "min:1"})

        with self.assertRaises(RecordValidationError):
            validate(Tagged())


class TestRuleTableOverrides(unittest.TestCase):
    """Test rule tables replace field metadata rules."""

    def test_table_overrides_metadata_rule(self):
        table = RuleTable(records={"App": {"version": "len:3"}})

        self.assertIsNone(validate(App("1.0"), rule_table=table))
        with self.assertRaises(RecordValidationError):
            validate(App("1.0.0"), rule_table=table)

    def test_table_adds_rule_to_untagged_field(self):
        table = RuleTable(records={"Response": {"body": "max:3"}})

        failures = RecordValidator(table).evaluate(Response(code=200, body="toolong"))
        self.assertEqual([f.field_name for f in failures], ["body"])

    def test_empty_table_rule_disables_field(self):
        table = RuleTable(records={"App": {"version": ""}})
        self.assertIsNone(validate(App("x"), rule_table=table))

    def test_table_for_other_record_is_ignored(self):
        table = RuleTable(records={"User": {"name": "len:1"}})
        self.assertIsNone(validate(App("1.0.0"), rule_table=table))

    def test_table_with_unknown_field(self):
        table = RuleTable(records={"App": {"release": "len:3"}})

        with self.assertRaises(RuleTableError) as ctx:
            validate(App("1.0.0"), rule_table=table)
        self.assertIn("release", str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
