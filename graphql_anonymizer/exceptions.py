# Copyright 2021-present Kensho Technologies, LLC.
class GraphQLError(Exception):
    """Generic error when processing GraphQL."""


class GraphQLParsingError(GraphQLError):
    """Exception raised when the provided GraphQL string could not be parsed."""


class GraphQLValidationError(GraphQLError):
    """Exception raised when the provided GraphQL does not have the shape anonymization requires.

    For example:
    - the query document contains more than one operation definition;
    - the query document contains no operation definition at all.
    """


class GraphQLInvalidArgumentError(GraphQLError):
    """Exception raised when the arguments to an anonymization call are invalid.

    For example, the variables supplied alongside the queries are not a mapping.
    """
