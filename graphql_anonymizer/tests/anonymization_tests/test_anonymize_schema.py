# Copyright 2021-present Kensho Technologies, LLC.
from textwrap import dedent
from typing import Any, Callable, Dict, List, Set, Tuple
import unittest

from graphql import (
    DEFAULT_DEPRECATION_REASON,
    GraphQLEnumType,
    GraphQLInputObjectType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    build_schema,
    is_enum_type,
    is_input_object_type,
    is_interface_type,
    is_object_type,
    is_scalar_type,
    is_union_type,
    print_schema,
    validate_schema,
)
from graphql.pyutils import Undefined

from ...anonymization.anonymize_schema import anonymize_schema
from ...anonymization.utils import ElementNameMap, is_preserved_directive, is_preserved_type
from ..test_helpers import compare_schema_texts_order_independently
from .input_schema_strings import InputSchemaStrings as ISS


def _count_types(schema: GraphQLSchema, type_check: Callable[[Any], bool]) -> int:
    """Return the number of named types in the schema that pass the check."""
    return len([named_type for named_type in schema.type_map.values() if type_check(named_type)])


def _get_field_counts(schema: GraphQLSchema) -> List[int]:
    """Return the sorted numbers of fields of the object and interface types of the schema."""
    return sorted(
        len(named_type.fields)
        for named_type in schema.type_map.values()
        if is_object_type(named_type) or is_interface_type(named_type)
    )


# Where an element of the original schema came from: its kind, followed by the names that locate
# it. Fields are ("field", type name, field name), and arguments of fields are
# ("argument", type name, field name, argument name).
ElementOrigin = Tuple[str, ...]


def _get_origins_by_new_name(
    schema: GraphQLSchema, element_names: ElementNameMap
) -> Dict[str, List[ElementOrigin]]:
    """Return the origins of all renamed elements of the schema, grouped by their new name."""
    origins_by_new_name: Dict[str, List[ElementOrigin]] = {}

    def record(element: Any, origin: ElementOrigin) -> None:
        origins_by_new_name.setdefault(element_names[element], []).append(origin)

    for type_name, named_type in schema.type_map.items():
        if is_preserved_type(named_type):
            continue
        record(named_type, ("type", type_name))
        if is_object_type(named_type) or is_interface_type(named_type):
            for field_name, field in named_type.fields.items():
                record(field, ("field", type_name, field_name))
                for argument_name, argument in field.args.items():
                    record(argument, ("argument", type_name, field_name, argument_name))
        elif is_enum_type(named_type):
            for value_name, enum_value in named_type.values.items():
                record(enum_value, ("enum value", type_name, value_name))
        elif is_input_object_type(named_type):
            for input_field_name, input_field in named_type.fields.items():
                record(input_field, ("input field", type_name, input_field_name))

    for directive in schema.directives:
        if is_preserved_directive(directive):
            continue
        record(directive, ("directive", directive.name))
        for argument_name, argument in directive.args.items():
            record(argument, ("directive argument", directive.name, argument_name))

    return origins_by_new_name


def _are_linked_through_interfaces(schema: GraphQLSchema, type_names: Set[str]) -> bool:
    """Return True iff the types are connected by "implements" edges among themselves."""
    unvisited_type_names = set(type_names)
    type_names_to_visit = [unvisited_type_names.pop()]
    while type_names_to_visit:
        current_type = schema.get_type(type_names_to_visit.pop())
        for other_type_name in list(unvisited_type_names):
            other_type = schema.get_type(other_type_name)
            if current_type in other_type.interfaces or other_type in current_type.interfaces:
                unvisited_type_names.remove(other_type_name)
                type_names_to_visit.append(other_type_name)
    return not unvisited_type_names


def _get_shared_names_checked(
    test_case: unittest.TestCase, schema: GraphQLSchema
) -> Dict[str, List[ElementOrigin]]:
    """Check that only interface-linked fields and their arguments share a new name.

    Returns:
        the origins of the elements of each new name that is shared by more than one element
    """
    element_names = anonymize_schema(schema).element_names
    origins_by_new_name = _get_origins_by_new_name(schema, element_names)
    test_case.assertEqual(
        len(element_names), sum(len(origins) for origins in origins_by_new_name.values())
    )

    shared_names = {
        new_name: origins
        for new_name, origins in origins_by_new_name.items()
        if len(origins) > 1
    }
    for new_name, origins in shared_names.items():
        kinds = {origin[0] for origin in origins}
        test_case.assertIn(kinds, ({"field"}, {"argument"}), new_name)
        # Same original field or argument name on every type of the group
        test_case.assertEqual(1, len({origin[2:] for origin in origins}), new_name)
        owner_type_names = {origin[1] for origin in origins}
        test_case.assertEqual(len(origins), len(owner_type_names), new_name)
        test_case.assertTrue(_are_linked_through_interfaces(schema, owner_type_names), new_name)
        if kinds == {"argument"}:
            # The fields these arguments belong to must themselves share one name
            parent_field_names = {
                element_names[schema.get_type(type_name).fields[field_name]]
                for _, type_name, field_name, _ in origins
            }
            test_case.assertEqual(1, len(parent_field_names), new_name)

    return shared_names


class TestAnonymizeSchema(unittest.TestCase):
    def test_basic_anonymization(self) -> None:
        anonymized_schema = anonymize_schema(build_schema(ISS.basic_schema))
        expected_schema_string = dedent(
            """\
            schema {
              query: Object1
            }

            type Object1 {
              field1: String
            }
        """
        )
        compare_schema_texts_order_independently(
            self, expected_schema_string, print_schema(anonymized_schema.schema)
        )

    def test_every_kind_of_element_anonymized(self) -> None:
        anonymized_schema = anonymize_schema(build_schema(ISS.star_wars_schema))
        expected_schema_string = dedent(
            """\
            schema {
              query: Object1
            }

            directive @Directive1(argument6: Int) on FIELD_DEFINITION | FIELD

            type Object1 {
              field1(argument1: Enum1): Interface1
              field2(argument2: ID!): Object3
              field3(argument3: String, argument4: InputObject1): [Union1]
            }

            enum Enum1 {
              EnumValue1
              EnumValue2
              EnumValue3
            }

            interface Interface1 {
              field4: ID!
              field5: String
              field6(argument5: Int): [Interface1]
            }

            type Object2 implements Interface1 {
              field4: ID!
              field5: String
              field6(argument5: Int): [Interface1]
              field7: String
            }

            type Object3 implements Interface1 {
              field4: ID!
              field5: String
              field6(argument5: Int): [Interface1]
              field8: String
            }

            union Union1 = Object2 | Object3

            input InputObject1 {
              inputField1: String = "defaultValue1"
              inputField2: Int = 1
              inputField3: Enum1 = EnumValue3
            }

            scalar Scalar1
        """
        )
        compare_schema_texts_order_independently(
            self, expected_schema_string, print_schema(anonymized_schema.schema)
        )

    def test_element_names(self) -> None:
        schema = build_schema(ISS.star_wars_schema)
        element_names = anonymize_schema(schema).element_names

        self.assertEqual("Object1", element_names[schema.get_type("Query")])
        self.assertEqual("Enum1", element_names[schema.get_type("Episode")])
        self.assertEqual("Interface1", element_names[schema.get_type("Character")])
        self.assertEqual("Object2", element_names[schema.get_type("Human")])
        self.assertEqual("Object3", element_names[schema.get_type("Droid")])
        self.assertEqual("Union1", element_names[schema.get_type("SearchResult")])
        self.assertEqual("InputObject1", element_names[schema.get_type("SearchFilter")])
        self.assertEqual("Scalar1", element_names[schema.get_type("DateTime")])
        self.assertEqual("Directive1", element_names[schema.get_directive("cached")])

        hero_field = schema.query_type.fields["hero"]
        self.assertEqual("field1", element_names[hero_field])
        self.assertEqual("argument1", element_names[hero_field.args["episode"]])
        episode_type = schema.get_type("Episode")
        self.assertEqual("EnumValue3", element_names[episode_type.values["JEDI"]])
        search_filter_type = schema.get_type("SearchFilter")
        self.assertEqual("inputField2", element_names[search_filter_type.fields["limit"]])

    def test_preserved_elements_are_not_named(self) -> None:
        schema = build_schema(ISS.star_wars_schema)
        element_names = anonymize_schema(schema).element_names

        for preserved_type_name in ("String", "Int", "ID", "__Schema", "__Type", "__TypeKind"):
            self.assertNotIn(schema.get_type(preserved_type_name), element_names)
        for preserved_directive_name in ("include", "skip", "deprecated", "specifiedBy"):
            self.assertNotIn(schema.get_directive(preserved_directive_name), element_names)

    def test_preserved_elements_are_kept_as_is(self) -> None:
        schema = build_schema(ISS.star_wars_schema)
        new_schema = anonymize_schema(schema).schema

        for preserved_type_name in ("String", "Int", "ID", "Boolean", "__Schema", "__Type"):
            self.assertIs(
                schema.get_type(preserved_type_name), new_schema.get_type(preserved_type_name)
            )
        for preserved_directive_name in ("include", "skip", "deprecated", "specifiedBy"):
            self.assertIs(
                schema.get_directive(preserved_directive_name),
                new_schema.get_directive(preserved_directive_name),
            )

    def test_element_names_frozen(self) -> None:
        schema = build_schema(ISS.basic_schema)
        element_names = anonymize_schema(schema).element_names

        self.assertTrue(element_names.frozen)
        with self.assertRaises(AssertionError):
            element_names[schema.get_type("String")] = "Scalar1"

    def test_original_unmodified(self) -> None:
        schema = build_schema(ISS.star_wars_schema)
        original_schema_string = print_schema(schema)
        anonymize_schema(schema)
        self.assertEqual(original_schema_string, print_schema(schema))
        self.assertIsNotNone(schema.get_type("Character"))

    def test_deterministic(self) -> None:
        first_schema_string = print_schema(
            anonymize_schema(build_schema(ISS.star_wars_schema)).schema
        )
        second_schema_string = print_schema(
            anonymize_schema(build_schema(ISS.star_wars_schema)).schema
        )
        self.assertEqual(first_schema_string, second_schema_string)

    def test_structure_preserved(self) -> None:
        schema = build_schema(ISS.star_wars_schema)
        new_schema = anonymize_schema(schema).schema

        self.assertEqual([], validate_schema(new_schema))
        self.assertEqual(len(schema.type_map), len(new_schema.type_map))
        self.assertEqual(len(schema.directives), len(new_schema.directives))
        for type_check in (
            is_object_type,
            is_interface_type,
            is_union_type,
            is_enum_type,
            is_input_object_type,
            is_scalar_type,
        ):
            self.assertEqual(
                _count_types(schema, type_check), _count_types(new_schema, type_check)
            )
        self.assertEqual(_get_field_counts(schema), _get_field_counts(new_schema))

    def test_root_types_named_first(self) -> None:
        anonymized_schema = anonymize_schema(build_schema(ISS.multiple_root_types_schema))
        expected_schema_string = dedent(
            """\
            schema {
              query: Object1
              mutation: Object2
            }

            type Object2 {
              field2(argument1: Int, argument2: String): Object3
            }

            type Object3 {
              field3: Int
              field4: String
            }

            type Object1 {
              field1: [Object3]
            }
        """
        )
        compare_schema_texts_order_independently(
            self, expected_schema_string, print_schema(anonymized_schema.schema)
        )

    def test_fields_linked_through_interfaces_share_names(self) -> None:
        anonymized_schema = anonymize_schema(build_schema(ISS.interface_chain_schema))
        expected_schema_string = dedent(
            """\
            schema {
              query: Object1
            }

            type Object1 {
              field1(argument1: ID!): Object2
              field2(argument2: ID!): Interface1
            }

            interface Interface1 {
              field3: ID!
              field4(argument3: Int): [Interface1]
            }

            interface Interface2 implements Interface1 {
              field3: ID!
              field4(argument3: Int): [Interface1]
              field5: String
            }

            type Object2 implements Interface2 & Interface1 {
              field3: ID!
              field4(argument3: Int, argument4: Int): [Interface1]
              field5: String
              field6: String
            }

            type Object3 implements Interface1 {
              field3: ID!
              field4(argument3: Int): [Interface1]
              field7: String
            }
        """
        )
        compare_schema_texts_order_independently(
            self, expected_schema_string, print_schema(anonymized_schema.schema)
        )
        self.assertEqual([], validate_schema(anonymized_schema.schema))

    def test_documentation_scrubbed(self) -> None:
        schema = build_schema(ISS.documented_schema)
        new_schema = anonymize_schema(schema).schema
        expected_schema_string = dedent(
            """\
            schema {
              query: Object1
            }

            type Object1 {
              field1(argument1: String): Object2
              field2: Object2 @deprecated
              field3: Enum1
              field4: Scalar1
            }

            type Object2 {
              field5: String
            }

            enum Enum1 {
              EnumValue1
              EnumValue2 @deprecated
            }

            scalar Scalar1
        """
        )
        new_schema_string = print_schema(new_schema)
        compare_schema_texts_order_independently(self, expected_schema_string, new_schema_string)
        self.assertNotIn("secret", new_schema_string)
        self.assertNotIn("Agent", new_schema_string)
        self.assertNotIn("cleared", new_schema_string)

        self.assertIsNone(new_schema.description)
        query_type = new_schema.query_type
        self.assertIsInstance(query_type, GraphQLObjectType)
        self.assertIsNone(query_type.description)
        self.assertIsNone(query_type.ast_node)
        self.assertIsNone(query_type.fields["field1"].description)
        self.assertIsNone(query_type.fields["field1"].args["argument1"].description)
        self.assertEqual(
            DEFAULT_DEPRECATION_REASON, query_type.fields["field2"].deprecation_reason
        )
        enum_type = new_schema.get_type("Enum1")
        self.assertIsInstance(enum_type, GraphQLEnumType)
        self.assertEqual(
            DEFAULT_DEPRECATION_REASON, enum_type.values["EnumValue2"].deprecation_reason
        )
        self.assertIsNone(enum_type.values["EnumValue1"].deprecation_reason)
        scalar_type = new_schema.get_type("Scalar1")
        self.assertIsInstance(scalar_type, GraphQLScalarType)
        self.assertIsNone(scalar_type.specified_by_url)

    def test_input_field_default_values(self) -> None:
        schema = build_schema(ISS.default_values_schema)
        new_schema = anonymize_schema(schema).schema

        input_object_type = new_schema.get_type("InputObject1")
        self.assertIsInstance(input_object_type, GraphQLInputObjectType)
        default_values = {
            input_field_name: input_field.default_value
            for input_field_name, input_field in input_object_type.fields.items()
        }
        expected_default_values = {
            "inputField1": "defaultValue1",
            "inputField2": 1,
            "inputField3": "defaultValue2",
            "inputField4": 2,
            "inputField5": 0.5,
            "inputField6": True,
            "inputField7": ["tag"],
            "inputField8": "DESCENDING",  # internal value, printed as the renamed enum value
            "inputField9": "defaultValue3",
            "inputField10": "defaultValue4",
            "inputField11": Undefined,
        }
        self.assertEqual(expected_default_values, default_values)
        self.assertIn("inputField8: Enum1 = EnumValue2", print_schema(new_schema))

    def test_argument_default_values_kept(self) -> None:
        schema = build_schema(ISS.default_values_schema)
        new_schema = anonymize_schema(schema).schema

        search_field = new_schema.query_type.fields["field1"]
        self.assertEqual("argument default", search_field.args["argument2"].default_value)

    def test_names_shared_only_within_linked_field_groups(self) -> None:
        shared_names = _get_shared_names_checked(self, build_schema(ISS.star_wars_schema))
        self.assertEqual({"field4", "field5", "field6", "argument5"}, set(shared_names))
        self.assertEqual(
            {("field", "Character", "id"), ("field", "Human", "id"), ("field", "Droid", "id")},
            set(shared_names["field4"]),
        )
        self.assertEqual(
            {"Character", "Human", "Droid"},
            {origin[1] for origin in shared_names["argument5"]},
        )

    def test_names_shared_only_within_linked_field_groups_of_nested_interfaces(self) -> None:
        shared_names = _get_shared_names_checked(self, build_schema(ISS.interface_chain_schema))
        self.assertEqual({"field3", "field4", "field5", "argument3"}, set(shared_names))
        self.assertEqual(
            {("field", "Named", "name"), ("field", "User", "name")}, set(shared_names["field5"])
        )
        self.assertEqual(
            {"Node", "Named", "User", "Group"},
            {origin[1] for origin in shared_names["argument3"]},
        )

    def test_unlinked_fields_of_the_same_name_do_not_share_names(self) -> None:
        schema = build_schema(ISS.interface_chain_schema)
        element_names = anonymize_schema(schema).element_names
        self.assertNotEqual(
            element_names[schema.get_type("User").fields["name"]],
            element_names[schema.get_type("Group").fields["name"]],
        )
