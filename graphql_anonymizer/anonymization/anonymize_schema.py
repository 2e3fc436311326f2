# Copyright 2021-present Kensho Technologies, LLC.
"""Replace every user-chosen name of a GraphQL schema with a sequentially numbered placeholder.

Given the following schema:
    type Query {
        hero(episode: Episode): Character
    }
    enum Episode {
        NEWHOPE
        EMPIRE
    }
    type Character {
        name: String
    }
anonymizing it produces a schema with exactly the same shape, but in which nothing but the shape
is left to read:
    schema {
        query: Object1
    }
    type Object1 {
        field1(argument1: Enum1): Object2
    }
    enum Enum1 {
        EnumValue1
        EnumValue2
    }
    type Object2 {
        field2: String
    }

Every named schema element is renamed: object, interface, union, enum, input object and scalar
types, fields, arguments, enum values, input fields and directives. Each category of element has
its own counter, so the first object type is always Object1 and the first interface is always
Interface1. Elements are numbered in the order they are reached by a walk that visits the root
operation types first, then the remaining types in the order the schema lists them, and finally
the directives. Within a type, fields are numbered in order, each immediately followed by its
arguments.

Names defined by GraphQL itself are preserved, together with everything beneath them:
- introspection types, e.g. __Schema and __Type;
- the built-in scalars Int, Float, String, Boolean and ID;
- the directives @include, @skip, @deprecated and @specifiedBy.

A field that a type shares with an interface it implements keeps being shared: all the fields
linked that way get the same new name, and so do their arguments with matching names. Otherwise
the renamed type would no longer implement the renamed interface.

Descriptions, @specifiedBy URLs and deprecation reasons are free text, so they are dropped
(deprecation itself is kept, with the default reason). Input field default values on scalar fields
are free data: string defaults are replaced by "defaultValue1", "defaultValue2" and so on, and
integer defaults by 1, 2 and so on, using two separate counters.

The original schema is not modified. Alongside the new schema, anonymization returns the map
from original schema element to new name, which is what queries written against the original
schema need to be rewritten consistently.
"""
from collections import namedtuple
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union, cast

from graphql import (
    DEFAULT_DEPRECATION_REASON,
    GraphQLArgument,
    GraphQLDirective,
    GraphQLEnumType,
    GraphQLEnumValue,
    GraphQLField,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLType,
    GraphQLUnionType,
    get_named_type,
    is_enum_type,
    is_input_object_type,
    is_interface_type,
    is_list_type,
    is_non_null_type,
    is_object_type,
    is_scalar_type,
    is_union_type,
)

from .name_generation import (
    ARGUMENT_PREFIX,
    DEFAULT_INT_VALUE_CATEGORY,
    DEFAULT_STRING_VALUE_PREFIX,
    DIRECTIVE_PREFIX,
    ENUM_PREFIX,
    ENUM_VALUE_PREFIX,
    FIELD_PREFIX,
    INPUT_FIELD_PREFIX,
    INPUT_OBJECT_PREFIX,
    INTERFACE_PREFIX,
    OBJECT_PREFIX,
    SCALAR_PREFIX,
    UNION_PREFIX,
    NameAllocator,
)
from .utils import ElementNameMap, is_preserved_directive, is_preserved_type


logger = logging.getLogger(__name__)


AnonymizedSchemaDescriptor = namedtuple(
    "AnonymizedSchemaDescriptor",
    (
        "schema",  # GraphQLSchema, isomorphic to the original schema but with anonymized names
        "element_names",  # ElementNameMap, original schema element to its name in the new schema
        # element_names only contains elements that were renamed, never preserved ones
    ),
)


# A field of an object or interface type, identified by (type name, field name)
FieldKey = Tuple[str, str]

# Named types are renamed with the prefix of their kind. Order matters, since the checks are
# performed in order and the first match wins.
_type_prefix_checks: Tuple[Tuple[Callable[[Any], bool], str], ...] = (
    (is_object_type, OBJECT_PREFIX),
    (is_interface_type, INTERFACE_PREFIX),
    (is_union_type, UNION_PREFIX),
    (is_enum_type, ENUM_PREFIX),
    (is_input_object_type, INPUT_OBJECT_PREFIX),
    (is_scalar_type, SCALAR_PREFIX),
)


def anonymize_schema(schema: GraphQLSchema) -> AnonymizedSchemaDescriptor:
    """Create a schema with the same shape as the input but with every user-chosen name replaced.

    Args:
        schema: the schema to anonymize. It is not modified

    Returns:
        AnonymizedSchemaDescriptor containing the new schema and the map from each renamed
        element of the input schema to its new name. The map is frozen
    """
    naming_visitor = SchemaElementNamingVisitor(schema)
    element_names = naming_visitor.name_schema_elements()
    element_names.freeze()
    logger.debug("Named %(count)s schema elements.", {"count": len(element_names)})

    new_schema = AnonymizedSchemaBuilder(
        schema, element_names, naming_visitor.input_field_default_values
    ).build()
    return AnonymizedSchemaDescriptor(schema=new_schema, element_names=element_names)


def _get_named_types_in_walk_order(schema: GraphQLSchema) -> List[GraphQLNamedType]:
    """Return the named types of the schema, root operation types first, without duplicates."""
    root_types = [
        root_type
        for root_type in (schema.query_type, schema.mutation_type, schema.subscription_type)
        if root_type is not None
    ]
    root_type_names = {root_type.name for root_type in root_types}
    other_types = [
        named_type
        for type_name, named_type in schema.type_map.items()
        if type_name not in root_type_names
    ]
    # A single type may serve as more than one root type.
    unique_root_types: List[GraphQLNamedType] = []
    for root_type in root_types:
        if all(root_type is not seen_type for seen_type in unique_root_types):
            unique_root_types.append(root_type)
    return unique_root_types + other_types


class _LinkedFieldGroups(object):
    """Union-find over fields, linking each field to the fields of the same name in interfaces."""

    def __init__(self, schema: GraphQLSchema) -> None:
        """Link every field of an object or interface type to its interfaces' counterparts."""
        self._parents: Dict[FieldKey, FieldKey] = {}
        for named_type in schema.type_map.values():
            if not (is_object_type(named_type) or is_interface_type(named_type)):
                continue
            named_type = cast(Union[GraphQLObjectType, GraphQLInterfaceType], named_type)
            for interface in named_type.interfaces:
                for field_name in named_type.fields:
                    if field_name in interface.fields:
                        self._union((named_type.name, field_name), (interface.name, field_name))

    def find(self, field_key: FieldKey) -> FieldKey:
        """Return the representative of the group the field belongs to."""
        root = field_key
        while self._parents.get(root, root) != root:
            root = self._parents[root]
        # Path compression
        while field_key != root:
            next_key = self._parents[field_key]
            self._parents[field_key] = root
            field_key = next_key
        return root

    def _union(self, first_key: FieldKey, second_key: FieldKey) -> None:
        first_root = self.find(first_key)
        second_root = self.find(second_key)
        if first_root != second_root:
            self._parents[second_root] = first_root


class SchemaElementNamingVisitor(object):
    """Walk a schema once, giving every element that is not preserved a new name."""

    # Counters for every category of name given out while walking this one schema
    name_allocator: NameAllocator

    # The names given out so far, keyed by the identity of the original schema element
    element_names: ElementNameMap

    # Maps the representative of each linked field group to the name shared by the whole group
    group_field_names: Dict[FieldKey, str]

    # Maps (representative of a linked field group, argument name) to the name shared by that
    # argument across the whole group
    group_argument_names: Dict[Tuple[FieldKey, str], str]

    # Maps the identity of each renamed input field to its default value in the new schema
    input_field_default_values: Dict[int, Any]

    def __init__(self, schema: GraphQLSchema) -> None:
        """Create a visitor for naming the elements of the given schema.

        Args:
            schema: the schema whose elements will be named
        """
        self.schema = schema
        self.name_allocator = NameAllocator()
        self.element_names = ElementNameMap()
        self.linked_field_groups = _LinkedFieldGroups(schema)
        self.group_field_names = {}
        self.group_argument_names = {}
        self.input_field_default_values = {}

    def name_schema_elements(self) -> ElementNameMap:
        """Walk the whole schema, and return the resulting element names."""
        for named_type in _get_named_types_in_walk_order(self.schema):
            if is_preserved_type(named_type):
                continue
            self._name_type(named_type)
        for directive in self.schema.directives:
            if is_preserved_directive(directive):
                continue
            self._name_directive(directive)
        return self.element_names

    def _name_type(self, named_type: GraphQLNamedType) -> None:
        for type_check, prefix in _type_prefix_checks:
            if type_check(named_type):
                self.element_names[named_type] = self.name_allocator.allocate_name(prefix)
                break
        else:
            raise AssertionError(
                f"Unreachable code reached: type {named_type} is not of any known kind."
            )

        if is_object_type(named_type) or is_interface_type(named_type):
            for field_name, field in named_type.fields.items():
                self._name_field(named_type.name, field_name, field)
        elif is_enum_type(named_type):
            for enum_value in named_type.values.values():
                self.element_names[enum_value] = self.name_allocator.allocate_name(
                    ENUM_VALUE_PREFIX
                )
        elif is_input_object_type(named_type):
            for input_field in named_type.fields.values():
                self.element_names[input_field] = self.name_allocator.allocate_name(
                    INPUT_FIELD_PREFIX
                )
                self.input_field_default_values[
                    id(input_field)
                ] = self._anonymize_input_field_default_value(input_field)

    def _name_field(self, type_name: str, field_name: str, field: GraphQLField) -> None:
        group = self.linked_field_groups.find((type_name, field_name))
        new_field_name = self.group_field_names.get(group)
        if new_field_name is None:
            new_field_name = self.name_allocator.allocate_name(FIELD_PREFIX)
            self.group_field_names[group] = new_field_name
        self.element_names[field] = new_field_name

        for argument_name, argument in field.args.items():
            new_argument_name = self.group_argument_names.get((group, argument_name))
            if new_argument_name is None:
                new_argument_name = self.name_allocator.allocate_name(ARGUMENT_PREFIX)
                self.group_argument_names[(group, argument_name)] = new_argument_name
            self.element_names[argument] = new_argument_name

    def _name_directive(self, directive: GraphQLDirective) -> None:
        self.element_names[directive] = self.name_allocator.allocate_name(DIRECTIVE_PREFIX)
        for argument in directive.args.values():
            self.element_names[argument] = self.name_allocator.allocate_name(ARGUMENT_PREFIX)

    def _anonymize_input_field_default_value(self, input_field: GraphQLInputField) -> Any:
        """Return the default value the input field should have in the new schema.

        Only string and integer defaults of scalar-typed input fields are replaced. Enum defaults
        are kept as they are, since they print as the (renamed) enum value name.
        """
        default_value = input_field.default_value
        if not is_scalar_type(get_named_type(input_field.type)):
            return default_value
        if isinstance(default_value, str):
            return self.name_allocator.allocate_name(DEFAULT_STRING_VALUE_PREFIX)
        # bool is a subclass of int, but True is not an integer default.
        if isinstance(default_value, int) and not isinstance(default_value, bool):
            return self.name_allocator.allocate_number(DEFAULT_INT_VALUE_CATEGORY)
        return default_value


class AnonymizedSchemaBuilder(object):
    """Build the new schema out of the original schema and the names given to its elements."""

    # Maps original type name to the corresponding type of the new schema. Preserved types map
    # to themselves.
    type_map: Dict[str, GraphQLNamedType]

    # Maps the identity of each input field to its default value in the new schema
    default_values: Dict[int, Any]

    def __init__(
        self,
        schema: GraphQLSchema,
        element_names: ElementNameMap,
        default_values: Dict[int, Any],
    ) -> None:
        """Create a builder for the anonymized version of the given schema.

        Args:
            schema: the original schema
            element_names: the names given to the elements of the original schema. Must be
                           complete: every element that is not preserved must have a name
            default_values: maps the identity of each renamed input field to its default value
                            in the new schema
        """
        self.schema = schema
        self.element_names = element_names
        self.default_values = default_values
        self.type_map = {}

    def build(self) -> GraphQLSchema:
        """Return the new schema."""
        for type_name, named_type in self.schema.type_map.items():
            self.type_map[type_name] = self._anonymize_named_type(named_type)

        return GraphQLSchema(
            query=self._replace_maybe_type(self.schema.query_type),
            mutation=self._replace_maybe_type(self.schema.mutation_type),
            subscription=self._replace_maybe_type(self.schema.subscription_type),
            types=list(self.type_map.values()),
            directives=[
                self._anonymize_directive(directive) for directive in self.schema.directives
            ],
            description=None,
            extensions=self.schema.extensions,
            ast_node=None,
        )

    def _new_name(self, element: Any) -> str:
        new_name = self.element_names.get(element)
        if new_name is None:
            raise AssertionError(
                f"Schema element {element} was not given a name while walking the schema. "
                f"This is a bug."
            )
        return new_name

    def _replace_type(self, graphql_type: GraphQLType) -> GraphQLType:
        if is_list_type(graphql_type):
            return GraphQLList(self._replace_type(cast(GraphQLList, graphql_type).of_type))
        if is_non_null_type(graphql_type):
            return GraphQLNonNull(self._replace_type(cast(GraphQLNonNull, graphql_type).of_type))
        return self._replace_named_type(cast(GraphQLNamedType, graphql_type))

    def _replace_named_type(self, named_type: GraphQLNamedType) -> GraphQLNamedType:
        return self.type_map[named_type.name]

    def _replace_maybe_type(
        self, maybe_type: Optional[GraphQLObjectType]
    ) -> Optional[GraphQLObjectType]:
        if maybe_type is None:
            return None
        return cast(GraphQLObjectType, self._replace_named_type(maybe_type))

    def _replace_named_types(self, named_types: Any) -> List[Any]:
        return [self._replace_named_type(named_type) for named_type in named_types]

    def _anonymize_named_type(self, named_type: GraphQLNamedType) -> GraphQLNamedType:
        if is_preserved_type(named_type):
            return named_type

        type_kwargs = dict(
            named_type.to_kwargs(),
            name=self._new_name(named_type),
            description=None,
            ast_node=None,
            extension_ast_nodes=None,
        )
        if is_object_type(named_type):
            object_type = cast(GraphQLObjectType, named_type)
            return GraphQLObjectType(
                **dict(
                    type_kwargs,
                    fields=lambda: self._anonymize_fields(object_type.fields),
                    interfaces=lambda: self._replace_named_types(object_type.interfaces),
                )
            )
        if is_interface_type(named_type):
            interface_type = cast(GraphQLInterfaceType, named_type)
            return GraphQLInterfaceType(
                **dict(
                    type_kwargs,
                    fields=lambda: self._anonymize_fields(interface_type.fields),
                    interfaces=lambda: self._replace_named_types(interface_type.interfaces),
                )
            )
        if is_union_type(named_type):
            union_type = cast(GraphQLUnionType, named_type)
            return GraphQLUnionType(
                **dict(type_kwargs, types=lambda: self._replace_named_types(union_type.types))
            )
        if is_enum_type(named_type):
            enum_type = cast(GraphQLEnumType, named_type)
            return GraphQLEnumType(
                **dict(type_kwargs, values=self._anonymize_enum_values(enum_type.values))
            )
        if is_input_object_type(named_type):
            input_object_type = cast(GraphQLInputObjectType, named_type)
            return GraphQLInputObjectType(
                **dict(
                    type_kwargs,
                    fields=lambda: self._anonymize_input_fields(input_object_type.fields),
                )
            )
        if is_scalar_type(named_type):
            return GraphQLScalarType(**dict(type_kwargs, specified_by_url=None))

        raise AssertionError(
            f"Unreachable code reached: type {named_type} is not of any known kind."
        )

    def _anonymize_fields(self, fields: Dict[str, GraphQLField]) -> Dict[str, GraphQLField]:
        return {
            self._new_name(field): GraphQLField(
                **dict(
                    field.to_kwargs(),
                    type_=self._replace_type(field.type),
                    args=self._anonymize_arguments(field.args),
                    description=None,
                    deprecation_reason=_scrub_deprecation_reason(field.deprecation_reason),
                    ast_node=None,
                )
            )
            for field in fields.values()
        }

    def _anonymize_arguments(
        self, arguments: Dict[str, GraphQLArgument]
    ) -> Dict[str, GraphQLArgument]:
        return {
            self._new_name(argument): GraphQLArgument(
                **dict(
                    argument.to_kwargs(),
                    type_=self._replace_type(argument.type),
                    description=None,
                    deprecation_reason=_scrub_deprecation_reason(argument.deprecation_reason),
                    ast_node=None,
                )
            )
            for argument in arguments.values()
        }

    def _anonymize_enum_values(
        self, values: Dict[str, GraphQLEnumValue]
    ) -> Dict[str, GraphQLEnumValue]:
        # The internal value is kept, so that enum defaults keep pointing at the same enum value.
        return {
            self._new_name(enum_value): GraphQLEnumValue(
                **dict(
                    enum_value.to_kwargs(),
                    description=None,
                    deprecation_reason=_scrub_deprecation_reason(enum_value.deprecation_reason),
                    ast_node=None,
                )
            )
            for enum_value in values.values()
        }

    def _anonymize_input_fields(
        self, input_fields: Dict[str, GraphQLInputField]
    ) -> Dict[str, GraphQLInputField]:
        return {
            self._new_name(input_field): GraphQLInputField(
                **dict(
                    input_field.to_kwargs(),
                    type_=self._replace_type(input_field.type),
                    default_value=self.default_values[id(input_field)],
                    description=None,
                    deprecation_reason=_scrub_deprecation_reason(input_field.deprecation_reason),
                    ast_node=None,
                )
            )
            for input_field in input_fields.values()
        }

    def _anonymize_directive(self, directive: GraphQLDirective) -> GraphQLDirective:
        if is_preserved_directive(directive):
            return directive
        return GraphQLDirective(
            **dict(
                directive.to_kwargs(),
                name=self._new_name(directive),
                args=self._anonymize_arguments(directive.args),
                description=None,
                ast_node=None,
            )
        )


def _scrub_deprecation_reason(deprecation_reason: Optional[str]) -> Optional[str]:
    """Keep deprecation, but replace its free-text reason with the default one."""
    if deprecation_reason is None:
        return None
    return DEFAULT_DEPRECATION_REASON
