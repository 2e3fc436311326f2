#!/usr/bin/env python
# Copyright 2021-present Kensho Technologies, LLC.
"""Utility modeled after json.tool, anonymizes a GraphQL schema and queries written against it.

Used as: python -m graphql_anonymizer.tool schema.graphql [query.graphql ...]

Reads the schema SDL from the given file, and the queries from the given files, one query per
file. If no query files are given, a single query is read from standard input. Outputs the
anonymized schema SDL followed by each anonymized query, one per line, to standard output.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from graphql import build_schema, print_schema

from .anonymization.anonymize import anonymize_schema_and_queries


def _read_file(path: str) -> str:
    with open(path, "r") as f:
        return f.read()


def _make_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m graphql_anonymizer.tool",
        description="Anonymize a GraphQL schema and the queries written against it.",
    )
    parser.add_argument("schema", help="Path to the GraphQL schema, in SDL")
    parser.add_argument(
        "queries",
        nargs="*",
        help="Paths to GraphQL queries, one per file (default: one query from standard input)",
    )
    parser.add_argument(
        "--variables", help="Path to a JSON object with the values of the queries' variables"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log the progress of anonymization"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Read a GraphQL schema and queries, and output them anonymized to standard output."""
    args = _make_argument_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    schema = build_schema(_read_file(args.schema))
    if args.queries:
        queries = [_read_file(query_path) for query_path in args.queries]
    else:
        queries = [sys.stdin.read()]
    variables = None
    if args.variables is not None:
        variables = json.loads(_read_file(args.variables))

    result = anonymize_schema_and_queries(schema, queries, variables)

    sys.stdout.write(print_schema(result.schema) + "\n")
    for query in result.queries:
        sys.stdout.write(query + "\n")


if __name__ == "__main__":
    main()
