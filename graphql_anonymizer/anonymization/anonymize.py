# Copyright 2021-present Kensho Technologies, LLC.
from collections import namedtuple
import logging
from typing import Any, Mapping, Optional, Sequence

from graphql import GraphQLSchema

from .anonymize_query import anonymize_query, validate_variables
from .anonymize_schema import anonymize_schema


logger = logging.getLogger(__name__)


AnonymizationResult = namedtuple(
    "AnonymizationResult",
    (
        "schema",  # GraphQLSchema, the anonymized schema
        "queries",  # List[str], the anonymized queries, in the same order as the input queries
    ),
)


def anonymize_schema_and_queries(
    schema: GraphQLSchema,
    queries: Sequence[str],
    variables: Optional[Mapping[str, Any]] = None,
) -> AnonymizationResult:
    """Anonymize the schema, and the queries written against it, consistently with each other.

    The schema is anonymized first, after which each query is anonymized on its own: names that
    only exist within a query, such as fragment and variable names, and literal values are
    numbered from 1 again for each query.

    Args:
        schema: the schema to anonymize. It is not modified
        queries: queries written against the schema, each containing exactly one operation
                 definition. May be empty
        variables: optional values of the queries' variables. They do not affect the result

    Returns:
        AnonymizationResult with the anonymized schema and the compact text of each anonymized
        query, the i-th output query corresponding to the i-th input query

    Raises:
        - GraphQLParsingError if a query could not be parsed
        - GraphQLValidationError if a query does not contain exactly one operation definition
        - GraphQLInvalidArgumentError if the variables are not a mapping
    """
    validate_variables(variables)

    anonymized_schema_descriptor = anonymize_schema(schema)
    anonymized_queries = []
    for query_index, query_string in enumerate(queries):
        logger.debug("Anonymizing query %(index)s.", {"index": query_index})
        anonymized_queries.append(
            anonymize_query(
                schema, anonymized_schema_descriptor.element_names, query_string, variables
            )
        )

    logger.info(
        "Anonymized a schema with %(type_count)s types and %(query_count)s queries.",
        {"type_count": len(schema.type_map), "query_count": len(anonymized_queries)},
    )
    return AnonymizationResult(
        schema=anonymized_schema_descriptor.schema, queries=anonymized_queries
    )
