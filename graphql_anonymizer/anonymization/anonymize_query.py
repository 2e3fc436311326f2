# Copyright 2021-present Kensho Technologies, LLC.
"""Rewrite a query so that it matches the anonymized version of the schema it is written against.

Anonymizing a query happens in two passes over its AST.

The first pass walks the query against the original schema, using graphql-core's TypeInfo to
resolve every field, argument, input object field and enum value literal to the schema element it
refers to. The name each element was given by schema anonymization becomes the new name of the
AST node. Names that only exist within the query are given out along the way, in the order they
are first seen:
- fragments become Fragment1, Fragment2 and so on, and fragment definitions are walked at the
  point of their first spread;
- variables become var1, var2 and so on;
- aliases become alias1, alias2 and so on.

The second pass builds the new AST, replacing every name and every string and int literal, which
become "stringValue1", "stringValue2" and so on, and 1, 2 and so on, respectively. A named
operation is always renamed to "operation". Float, boolean and null literals are kept.

Names defined by GraphQL itself are preserved: __typename and the other meta fields, everything
within introspection types, built-in scalars in variable definitions, and the arguments of the
@include, @skip and @deprecated directives. Directive names used within a query are never
renamed.

For example, the query:
    query HeroName($episode: Episode) {
        hero(episode: $episode) {
            name
        }
    }
becomes:
    query operation($var1:Enum1){field1(argument1:$var1){field2}}
"""
from collections import namedtuple
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from graphql import GraphQLSchema, TypeInfo, TypeInfoVisitor, get_named_type
from graphql.language.ast import (
    ArgumentNode,
    DirectiveNode,
    DocumentNode,
    EnumValueNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    IntValueNode,
    NamedTypeNode,
    NameNode,
    ObjectFieldNode,
    OperationDefinitionNode,
    StringValueNode,
    VariableDefinitionNode,
    VariableNode,
)
from graphql.language.printer import print_ast
from graphql.language.visitor import Visitor, VisitorAction, visit
from graphql.type.definition import is_enum_type, is_input_object_type
from graphql.utilities import strip_ignored_characters

from ..ast_manipulation import (
    get_fragment_definitions_by_name,
    get_human_friendly_ast_field_name,
    get_only_operation_definition,
    safe_parse_graphql,
)
from ..exceptions import GraphQLInvalidArgumentError, GraphQLValidationError
from .name_generation import (
    ALIAS_PREFIX,
    FRAGMENT_PREFIX,
    INT_VALUE_CATEGORY,
    OPERATION_NAME,
    STRING_VALUE_PREFIX,
    VARIABLE_PREFIX,
    NameAllocator,
)
from .utils import (
    ElementNameMap,
    IdentityKeyedDict,
    get_copy_of_node_with_new_name,
    is_preserved_directive,
    is_preserved_field,
    is_preserved_type,
)


logger = logging.getLogger(__name__)


QueryNameCollection = namedtuple(
    "QueryNameCollection",
    (
        "node_names",  # IdentityKeyedDict, AST node of the query to its new name
        "variable_names",  # Dict[str, str], original variable name to new variable name
        "alias_names",  # Dict[str, str], original alias to new alias
    ),
)


def anonymize_query(
    schema: GraphQLSchema,
    element_names: ElementNameMap,
    query_string: str,
    variables: Optional[Mapping[str, Any]] = None,
) -> str:
    """Return the compact text of the query, rewritten to match the anonymized schema.

    Args:
        schema: the original schema, which the query is written against
        element_names: the names given to the elements of the original schema by
                       anonymize_schema
        query_string: the query to anonymize. It must contain exactly one operation definition,
                      and may contain any number of fragment definitions
        variables: optional values of the query's variables. They do not affect the result, since
                   every branch of the query is rewritten regardless of @skip and @include

    Returns:
        the anonymized query, printed without any insignificant whitespace

    Raises:
        - GraphQLParsingError if the query could not be parsed
        - GraphQLValidationError if the query does not contain exactly one operation definition
        - GraphQLInvalidArgumentError if the variables are not a mapping
    """
    document = safe_parse_graphql(query_string)
    try:
        collection = collect_query_names(schema, element_names, document, variables)
    except GraphQLValidationError as e:
        raise GraphQLValidationError(f"{e} Offending query: {query_string}") from e

    new_document = rewrite_query(schema, element_names, document, collection)
    return strip_ignored_characters(print_ast(new_document))


def collect_query_names(
    schema: GraphQLSchema,
    element_names: ElementNameMap,
    document: DocumentNode,
    variables: Optional[Mapping[str, Any]] = None,
) -> QueryNameCollection:
    """Walk the query against the original schema, and decide the new name of every AST node.

    Args:
        schema: the original schema, which the query is written against
        element_names: the names given to the elements of the original schema
        document: the parsed query. It is not modified
        variables: optional values of the query's variables, which do not affect the result

    Returns:
        QueryNameCollection with the new names of AST nodes, variables and aliases

    Raises:
        - GraphQLValidationError if the document does not contain exactly one operation definition
        - GraphQLInvalidArgumentError if the variables are not a mapping
    """
    validate_variables(variables)
    operation = get_only_operation_definition(document, GraphQLValidationError)
    fragments = get_fragment_definitions_by_name(document)

    visitor = QueryNameCollectingVisitor(schema, element_names, fragments)
    visit(operation, TypeInfoVisitor(visitor.type_info, visitor))
    logger.debug(
        "Resolved %(node_count)s query nodes, %(variable_count)s variables and "
        "%(alias_count)s aliases.",
        {
            "node_count": len(visitor.node_names),
            "variable_count": len(visitor.variable_names),
            "alias_count": len(visitor.alias_names),
        },
    )
    return QueryNameCollection(
        node_names=visitor.node_names,
        variable_names=visitor.variable_names,
        alias_names=visitor.alias_names,
    )


def rewrite_query(
    schema: GraphQLSchema,
    element_names: ElementNameMap,
    document: DocumentNode,
    collection: QueryNameCollection,
) -> DocumentNode:
    """Return a new AST of the query with every name and string and int literal replaced.

    Args:
        schema: the original schema, which the query is written against
        element_names: the names given to the elements of the original schema
        document: the parsed query. It is not modified
        collection: the new names of the query's AST nodes, variables and aliases, as returned by
                    collect_query_names for this very document

    Returns:
        the rewritten AST
    """
    visitor = QueryRewritingVisitor(schema, element_names, collection)
    return visit(document, visitor)


def validate_variables(variables: Any) -> None:
    """Raise GraphQLInvalidArgumentError if the variables are neither None nor a mapping."""
    if variables is not None and not isinstance(variables, Mapping):
        raise GraphQLInvalidArgumentError(
            f"Expected the query variables to be a mapping from variable name to value, but got "
            f"{type(variables).__name__}: {variables}"
        )


class QueryNameCollectingVisitor(Visitor):
    """Resolve every named node of a query against the original schema, recording its new name.

    Must be used wrapped in a TypeInfoVisitor over this visitor's type_info.
    """

    # The new name of every named AST node reached, including preserved ones, which keep their
    # original name
    node_names: IdentityKeyedDict[Any, str]

    # Maps original variable name to new variable name
    variable_names: Dict[str, str]

    # Maps original alias to new alias. Fields sharing a response key keep sharing it.
    alias_names: Dict[str, str]

    def __init__(
        self,
        schema: GraphQLSchema,
        element_names: ElementNameMap,
        fragments: Dict[str, FragmentDefinitionNode],
    ) -> None:
        """Create a visitor for resolving the named nodes of one query.

        Args:
            schema: the original schema, which the query is written against
            element_names: the names given to the elements of the original schema
            fragments: the fragment definitions of the query, by name
        """
        super().__init__()
        self.type_info = TypeInfo(schema)
        self.element_names = element_names
        self.fragments = fragments
        self.name_allocator = NameAllocator()
        self.node_names = IdentityKeyedDict()
        self.variable_names = {}
        self.alias_names = {}

    def _get_element_name(self, element: Any, node_description: str) -> str:
        new_name = self.element_names.get(element)
        if new_name is None:
            raise AssertionError(
                f"Could not find the new name of {element}, which "
                f"{node_description} resolves to. This is a bug."
            )
        return new_name

    def enter_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Record the new name and alias of the field."""
        field_definition = self.type_info.get_field_def()
        parent_type = self.type_info.get_parent_type()
        if field_definition is None:
            raise AssertionError(
                f"Field {node.name.value} does not exist on type {parent_type}, so it cannot be "
                f"renamed."
            )

        if is_preserved_field(field_definition, parent_type):
            self.node_names[node] = node.name.value
        else:
            self.node_names[node] = self._get_element_name(
                field_definition, f"field {node.name.value}"
            )

        if node.alias is not None and node.alias.value not in self.alias_names:
            self.alias_names[node.alias.value] = self.name_allocator.allocate_name(ALIAS_PREFIX)

    def enter_directive(
        self, node: DirectiveNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Check that the directive exists, so its arguments are not mistaken for field ones."""
        if self.type_info.get_directive() is None:
            raise AssertionError(
                f"Directive @{node.name.value} does not exist in the schema, so its arguments "
                f"cannot be renamed."
            )

    def enter_argument(
        self, node: ArgumentNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Record the new name of the field or directive argument."""
        argument_definition = self.type_info.get_argument()
        if argument_definition is None:
            raise AssertionError(
                f"Argument {node.name.value} does not exist in the schema, so it cannot be renamed."
            )

        directive = self.type_info.get_directive()
        if directive is not None:
            is_preserved = is_preserved_directive(directive)
        else:
            is_preserved = is_preserved_field(
                self.type_info.get_field_def(), self.type_info.get_parent_type()
            )

        if is_preserved:
            self.node_names[node] = node.name.value
        else:
            self.node_names[node] = self._get_element_name(
                argument_definition, f"argument {node.name.value}"
            )

    def enter_fragment_spread(
        self,
        node: FragmentSpreadNode,
        key: Any,
        parent: Any,
        path: List[Any],
        ancestors: List[Any],
    ) -> None:
        """Record the new name of the fragment, walking its definition on its first spread."""
        fragment_name = node.name.value
        fragment = self.fragments.get(fragment_name)
        if fragment is None:
            raise AssertionError(
                f"Fragment {fragment_name} is spread but never defined, so it cannot be renamed."
            )

        if fragment in self.node_names:
            self.node_names[node] = self.node_names[fragment]
            return

        new_fragment_name = self.name_allocator.allocate_name(FRAGMENT_PREFIX)
        self.node_names[fragment] = new_fragment_name
        self.node_names[node] = new_fragment_name
        # The fragment's selections are resolved within the current scope of the type info.
        visit(fragment, TypeInfoVisitor(self.type_info, self))

    def enter_variable(
        self, node: VariableNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Give the variable a new name the first time it is used."""
        if isinstance(parent, VariableDefinitionNode):
            # Declared variables are named where they are used.
            return
        variable_name = node.name.value
        if variable_name not in self.variable_names:
            self.variable_names[variable_name] = self.name_allocator.allocate_name(
                VARIABLE_PREFIX
            )

    def enter_object_field(
        self, node: ObjectFieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Record the new name of the input field, if the literal is of an input object type."""
        parent_input_type = get_named_type(self.type_info.get_parent_input_type())
        if not is_input_object_type(parent_input_type) or is_preserved_type(parent_input_type):
            # E.g. an object literal passed to a custom scalar, whose keys have no new name
            return
        input_field = parent_input_type.fields.get(node.name.value)
        if input_field is None:
            raise AssertionError(
                f"Input field {node.name.value} does not exist on type {parent_input_type}, so it "
                f"cannot be renamed."
            )
        self.node_names[node] = self._get_element_name(
            input_field, f"input field {node.name.value}"
        )

    def enter_enum_value(
        self, node: EnumValueNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Record the new name of the enum value, if the literal is of an enum type."""
        enum_type = get_named_type(self.type_info.get_input_type())
        if not is_enum_type(enum_type) or is_preserved_type(enum_type):
            return
        enum_value = self.type_info.get_enum_value()
        if enum_value is None:
            raise AssertionError(
                f"Enum value {node.value} does not exist on type {enum_type}, so it cannot be "
                f"renamed."
            )
        self.node_names[node] = self._get_element_name(
            enum_value, f"enum value {node.value}"
        )


class QueryRewritingVisitor(Visitor):
    """Build the anonymized AST of a query whose new names were already collected."""

    def __init__(
        self,
        schema: GraphQLSchema,
        element_names: ElementNameMap,
        collection: QueryNameCollection,
    ) -> None:
        """Create a visitor for rewriting one query.

        Args:
            schema: the original schema, which the query is written against
            element_names: the names given to the elements of the original schema
            collection: the new names of the query's AST nodes, variables and aliases
        """
        super().__init__()
        self.schema = schema
        self.element_names = element_names
        self.node_names = collection.node_names
        self.variable_names = collection.variable_names
        self.alias_names = collection.alias_names
        # Literals are numbered per query, in document order
        self.literal_allocator = NameAllocator()

    def _get_node_name(self, node: Any) -> str:
        new_name = self.node_names.get(node)
        if new_name is None:
            raise AssertionError(
                f"No new name was collected for {type(node).__name__} "
                f"{get_human_friendly_ast_field_name(node)}. This is a bug, or the query contains "
                f"parts that are never reached from its operation."
            )
        return new_name

    def enter_operation_definition(
        self,
        node: OperationDefinitionNode,
        key: Any,
        parent: Any,
        path: List[Any],
        ancestors: List[Any],
    ) -> Union[OperationDefinitionNode, VisitorAction]:
        """Give a named operation the fixed operation name."""
        if node.name is None:
            return None
        return get_copy_of_node_with_new_name(node, OPERATION_NAME)

    def enter_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[FieldNode, VisitorAction]:
        """Rename the field and its alias."""
        new_node = get_copy_of_node_with_new_name(node, self._get_node_name(node))
        if node.alias is not None:
            new_node.alias = NameNode(value=self.alias_names[node.alias.value])
        return new_node

    def enter_argument(
        self, node: ArgumentNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[ArgumentNode, VisitorAction]:
        """Rename the argument."""
        return get_copy_of_node_with_new_name(node, self._get_node_name(node))

    def enter_fragment_definition(
        self,
        node: FragmentDefinitionNode,
        key: Any,
        parent: Any,
        path: List[Any],
        ancestors: List[Any],
    ) -> Union[FragmentDefinitionNode, VisitorAction]:
        """Rename the fragment definition. Its type condition is renamed as a named type."""
        return get_copy_of_node_with_new_name(node, self._get_node_name(node))

    def enter_fragment_spread(
        self,
        node: FragmentSpreadNode,
        key: Any,
        parent: Any,
        path: List[Any],
        ancestors: List[Any],
    ) -> Union[FragmentSpreadNode, VisitorAction]:
        """Rename the fragment spread."""
        return get_copy_of_node_with_new_name(node, self._get_node_name(node))

    def enter_named_type(
        self, node: NamedTypeNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[NamedTypeNode, VisitorAction]:
        """Rename a type condition or the type of a variable definition."""
        type_name = node.name.value
        named_type = self.schema.get_type(type_name)
        if named_type is None:
            raise AssertionError(
                f"Type {type_name} does not exist in the schema, so it cannot be renamed."
            )
        if is_preserved_type(named_type):
            return None
        new_type_name = self.element_names.get(named_type)
        if new_type_name is None:
            raise AssertionError(
                f"Could not find the new name of type {type_name}. This is a bug."
            )
        return get_copy_of_node_with_new_name(node, new_type_name)

    def enter_variable(
        self, node: VariableNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[VariableNode, VisitorAction]:
        """Rename the variable, both where it is defined and where it is used."""
        variable_name = node.name.value
        new_variable_name = self.variable_names.get(variable_name)
        if new_variable_name is None:
            raise AssertionError(
                f"Variable ${variable_name} is never used within the operation, so it has no new "
                f"name."
            )
        return get_copy_of_node_with_new_name(node, new_variable_name)

    def enter_object_field(
        self, node: ObjectFieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[ObjectFieldNode, VisitorAction]:
        """Rename the input field of an input object literal, if it has a new name."""
        new_name = self.node_names.get(node)
        if new_name is None:
            return None
        return get_copy_of_node_with_new_name(node, new_name)

    def enter_enum_value(
        self, node: EnumValueNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[EnumValueNode, VisitorAction]:
        """Rename the enum value literal, if it has a new name."""
        new_name = self.node_names.get(node)
        if new_name is None:
            return None
        return EnumValueNode(value=new_name)

    def enter_string_value(
        self, node: StringValueNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[StringValueNode, VisitorAction]:
        """Replace the string literal with the next placeholder string."""
        return StringValueNode(
            value=self.literal_allocator.allocate_name(STRING_VALUE_PREFIX), block=False
        )

    def enter_int_value(
        self, node: IntValueNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> Union[IntValueNode, VisitorAction]:
        """Replace the int literal with the next placeholder number."""
        return IntValueNode(value=str(self.literal_allocator.allocate_number(INT_VALUE_CATEGORY)))
