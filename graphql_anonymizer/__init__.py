# Copyright 2021-present Kensho Technologies, LLC.
"""Commonly-used functions and data types from this package."""
from .anonymization.anonymize import AnonymizationResult, anonymize_schema_and_queries  # noqa
from .anonymization.anonymize_query import (  # noqa
    QueryNameCollection,
    anonymize_query,
    collect_query_names,
    rewrite_query,
)
from .anonymization.anonymize_schema import AnonymizedSchemaDescriptor, anonymize_schema  # noqa
from .exceptions import (  # noqa
    GraphQLError,
    GraphQLInvalidArgumentError,
    GraphQLParsingError,
    GraphQLValidationError,
)


__package_name__ = "graphql-anonymizer"
__version__ = "1.0.0"
