# Copyright 2021-present Kensho Technologies, LLC.
from typing import Dict, Type

from graphql.error import GraphQLSyntaxError
from graphql.language.ast import (
    DocumentNode,
    FragmentDefinitionNode,
    InlineFragmentNode,
    OperationDefinitionNode,
)
from graphql.language.parser import parse

from .exceptions import GraphQLError, GraphQLParsingError


def get_ast_field_name(ast):
    """Return the field name for the given AST node."""
    return ast.name.value


def get_human_friendly_ast_field_name(ast):
    """Return a human-friendly name for the AST node, suitable for error messages."""
    if isinstance(ast, InlineFragmentNode):
        if ast.type_condition is None:
            return "inline fragment without type condition"
        return "type coercion to {}".format(ast.type_condition.name.value)
    elif isinstance(ast, OperationDefinitionNode):
        return "{} operation definition".format(ast.operation.value)

    return get_ast_field_name(ast)


def safe_parse_graphql(graphql_string: str) -> DocumentNode:
    """Return an AST representation of the given GraphQL input, reraising GraphQL library errors."""
    try:
        ast = parse(graphql_string)
    except GraphQLSyntaxError as e:
        raise GraphQLParsingError(e) from e

    return ast


def get_only_operation_definition(
    document_ast: DocumentNode, desired_error_type: Type[GraphQLError]
) -> OperationDefinitionNode:
    """Assert that the Document AST contains exactly one operation definition, and return it.

    Fragment definitions may accompany the operation, any number of them.

    Args:
        document_ast: parsed query document
        desired_error_type: exception class to raise if the document does not contain exactly
                            one operation definition

    Returns:
        the only OperationDefinitionNode of the document
    """
    if not isinstance(document_ast, DocumentNode):
        raise AssertionError(
            'Received an unexpected value for "document_ast": {}'.format(document_ast)
        )

    operation_definitions = [
        definition
        for definition in document_ast.definitions
        if isinstance(definition, OperationDefinitionNode)
    ]
    if len(operation_definitions) != 1:
        raise desired_error_type(
            "Expected a GraphQL document with exactly one operation definition, but found {}. "
            "Anonymizing documents with several operations is not supported, since it would be "
            "ambiguous which operation is the query.".format(len(operation_definitions))
        )

    return operation_definitions[0]


def get_fragment_definitions_by_name(
    document_ast: DocumentNode,
) -> Dict[str, FragmentDefinitionNode]:
    """Return a dict mapping fragment names to the fragment definitions of the document."""
    return {
        definition.name.value: definition
        for definition in document_ast.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }
