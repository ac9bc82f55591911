#!/usr/bin/env python3
"""
Rule tables - field rules declared in YAML instead of field metadata.

A rule table maps record class names to per-field rule strings:

    schema_version: 1
    records:
      User:
        name: "len:5"
        age: "min:18&max:120"

Tables are checked against RULE_TABLE_SCHEMA (JSON Schema Draft 7) when
loaded and cached per path. Entries override the rules declared on the
dataclass fields; an empty string disables a field's rule.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml
from jsonschema import Draft7Validator

from rule_parser import RuleError, RuleSyntaxError, parse_rule_set

logger = logging.getLogger(__name__)


RULE_TABLE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Field rule table",
    "type": "object",
    "required": ["schema_version", "records"],
    "additionalProperties": False,
    "properties": {
        "schema_version": {"type": "integer", "const": 1},
        "records": {
            "type": "object",
            "propertyNames": {"pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
            "additionalProperties": {
                "type": "object",
                "propertyNames": {"pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                "additionalProperties": {"type": "string"},
            },
        },
    },
}

# Global table cache keyed by resolved path
_table_cache: Dict[Path, 'RuleTable'] = {}


class RuleTableError(RuleError, ValueError):
    """Exception raised when a rule table cannot be loaded or applied."""
    pass


@dataclass
class RuleTable:
    """
    Field rules for one or more record classes.

    Attributes:
        records: Mapping of record class name to {field name: rule string}
        source: Where the table was loaded from (empty for in-memory tables)
    """
    records: Dict[str, Dict[str, str]] = field(default_factory=dict)
    source: str = ""

    def rules_for(self, record_type: type) -> Dict[str, str]:
        """Return the field rules declared for a record class, keyed by field name."""
        return dict(self.records.get(record_type.__name__, {}))

    def check(self) -> List[Tuple[str, str, RuleSyntaxError]]:
        """
        Parse every rule string in the table.

        Returns:
            List of (record name, field name, error) for rules that do not
            parse; empty when the whole table is valid
        """
        problems = []
        for record_name, field_rules in self.records.items():
            for field_name, rule_string in field_rules.items():
                if not rule_string:
                    continue
                try:
                    parse_rule_set(rule_string)
                except RuleSyntaxError as e:
                    problems.append((record_name, field_name, e))
        return problems

    def to_dict(self) -> Dict[str, Any]:
        return {"schema_version": 1, "records": self.records}


def parse_rule_table(data: Any, source: str = "") -> RuleTable:
    """
    Build a RuleTable from already-parsed YAML/JSON data.

    Args:
        data: Table document
        source: Label used in error messages

    Returns:
        Validated RuleTable

    Raises:
        RuleTableError: If the document does not match RULE_TABLE_SCHEMA
    """
    label = source or "<rule table>"
    errors = sorted(Draft7Validator(RULE_TABLE_SCHEMA).iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        details = "; ".join(
            f"{'/'.join(str(p) for p in error.path) or '(root)'}: {error.message}"
            for error in errors
        )
        raise RuleTableError(f"Invalid rule table {label}: {details}")

    return RuleTable(records=data["records"], source=source)


def load_rule_table(table_path: Path, use_cache: bool = True) -> RuleTable:
    """Load a rule table from a YAML file with caching.

    Args:
        table_path: Path to the YAML rule table
        use_cache: Whether to use cached tables (default: True)

    Returns:
        Validated RuleTable

    Raises:
        RuleTableError: If the file cannot be read, is not valid YAML, or
            does not match the rule table schema
    """
    table_path = Path(table_path).resolve()

    if use_cache and table_path in _table_cache:
        return _table_cache[table_path]

    try:
        content = table_path.read_text(encoding='utf-8')
    except OSError as e:
        raise RuleTableError(f"Failed to read rule table {table_path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise RuleTableError(f"Failed to parse YAML in {table_path}: {e}") from e

    table = parse_rule_table(data, source=str(table_path))
    logger.debug("Loaded rule table %s with %d record(s)", table_path, len(table.records))

    if use_cache:
        _table_cache[table_path] = table

    return table


def clear_cache() -> None:
    """Clear the rule table cache."""
    _table_cache.clear()
