#!/usr/bin/env python3
"""Command-line tool for tag-driven field validation."""

import argparse
import dataclasses
import importlib
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from record_validator import NotARecordError, RecordValidator
from rule_parser import RuleSyntaxError, parse_rule_set
from rule_table import RuleTable, RuleTableError, load_rule_table


def load_target(target: str) -> type:
    """Import the dataclass named by a 'module:ClassName' target.

    Args:
        target: Target specification, e.g. "myapp.models:User"

    Returns:
        The dataclass type

    Raises:
        ValueError: If the target is malformed, cannot be imported, or is
            not a dataclass
    """
    module_name, sep, class_name = target.partition(':')
    if not sep or not module_name or not class_name:
        raise ValueError(f"Target must look like 'module:ClassName', got: {target}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import module '{module_name}': {e}") from e

    record_type = getattr(module, class_name, None)
    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise ValueError(f"'{target}' is not a dataclass")

    return record_type


def load_records_data(data_path: Path) -> List[Dict[str, Any]]:
    """Load record field values from a YAML file.

    The file holds either a single mapping or a list of mappings.

    Raises:
        ValueError: If the file cannot be read or has the wrong shape
    """
    try:
        data = yaml.safe_load(data_path.read_text(encoding='utf-8'))
    except OSError as e:
        raise ValueError(f"Failed to read {data_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML in {data_path}: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{data_path} must contain a mapping or a list of mappings")

    return data


def check_rules(args) -> int:
    """Parse rule strings given on the command line.

    Returns:
        Exit code: 0 if every rule string parses, 1 otherwise
    """
    exit_code = 0

    for expression in args.rules:
        try:
            rules = parse_rule_set(expression)
        except RuleSyntaxError as e:
            print(f"[ERROR] {expression}: {e}", file=sys.stderr)
            exit_code = 1
            continue

        print(f"[OK] {expression} -> {' & '.join(str(r) for r in rules)}")

    return exit_code


def check_table(args) -> int:
    """Load a rule table and check that every rule string parses.

    Returns:
        Exit code: 0 on success, 1 on rule syntax errors, 2 if the table
        cannot be loaded
    """
    try:
        table = load_rule_table(Path(args.table))
    except RuleTableError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    # Show effective rules if debug flag is set
    if getattr(args, 'show_effective_rules', False):
        print("=== Effective Rules ===")
        print(f"Table: {table.source}")
        print(yaml.dump(table.to_dict(), default_flow_style=False, sort_keys=False))
        print("=" * 60)
        return 0

    problems = table.check()
    if problems:
        for record_name, field_name, error in problems:
            print(f"[ERROR] {record_name}.{field_name}: {error}", file=sys.stderr)
        return 1

    field_count = sum(len(fields) for fields in table.records.values())
    print(f"Rule table check passed: {len(table.records)} records, {field_count} fields")
    return 0


def validate_data(args) -> int:
    """Validate records loaded from a YAML file against a dataclass.

    Returns:
        Exit code: 0 if every record passes, 1 on validation failures,
        2 on target, data or rule table errors
    """
    data_path = Path(args.data)

    try:
        record_type = load_target(args.target)
        items = load_records_data(data_path)
        rule_table: Optional[RuleTable] = load_rule_table(Path(args.rules)) if args.rules else None
    except (ValueError, RuleTableError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    validator = RecordValidator(rule_table)
    errors = []

    for index, item in enumerate(items):
        label = f"{data_path.name}[{index}]"

        try:
            record = record_type(**item)
        except (TypeError, ValueError) as e:
            print(f"[ERROR] {label}: cannot build {record_type.__name__}: {e}", file=sys.stderr)
            return 2

        try:
            failures = validator.evaluate(record)
        except (NotARecordError, RuleTableError) as e:
            print(f"[ERROR] {label}: {e}", file=sys.stderr)
            return 2

        for failure in failures:
            errors.append(failure.format_error(label))

    if errors:
        for error in errors:
            print(error, file=sys.stderr)
        return 1

    print(f"Validation passed: {len(items)} {record_type.__name__} records")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the validation tool."""
    parser = argparse.ArgumentParser(
        description="Validate dataclass records against field rule tags",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s check-rules "min:1&max:5" "in:admin,staff"
  %(prog)s check-table rules.yaml
  %(prog)s validate-data myapp.models:User users.yaml --rules rules.yaml
        """
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Command to run'
    )

    # check-rules subcommand
    parser_rules = subparsers.add_parser(
        'check-rules',
        help='Parse rule strings and report syntax errors'
    )
    parser_rules.add_argument('rules', nargs='+', metavar='RULE', help='Rule string, e.g. "min:1&max:5"')

    # check-table subcommand
    parser_table = subparsers.add_parser(
        'check-table',
        help='Check a YAML rule table'
    )
    parser_table.add_argument('table', help='Path to the rule table')
    parser_table.add_argument(
        '--show-effective-rules',
        action='store_true',
        help='Show the loaded rule table and exit (debug mode)'
    )

    # validate-data subcommand
    parser_data = subparsers.add_parser(
        'validate-data',
        help='Validate YAML records against a dataclass'
    )
    parser_data.add_argument('target', help="Dataclass to build, as 'module:ClassName'")
    parser_data.add_argument('data', help='YAML file with a mapping or a list of mappings')
    parser_data.add_argument('--rules', help='Optional rule table overriding field tags')

    # Parse arguments
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Dispatch to handler functions
    handlers: Dict[str, callable] = {
        'check-rules': check_rules,
        'check-table': check_table,
        'validate-data': validate_data,
    }

    handler = handlers.get(args.command)
    if handler is None:
        print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
