# Copyright 2021-present Kensho Technologies, LLC.
from copy import copy
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

from graphql import (
    GraphQLDirective,
    GraphQLField,
    GraphQLNamedType,
    SchemaMetaFieldDef,
    TypeMetaFieldDef,
    TypeNameMetaFieldDef,
    is_introspection_type,
    is_specified_directive,
    is_specified_scalar_type,
)
from graphql.language.ast import (
    ArgumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    NamedTypeNode,
    NameNode,
    ObjectFieldNode,
    OperationDefinitionNode,
    VariableNode,
)


# Field definitions that every type answers to without declaring them, such as __typename.
_meta_field_definitions: Tuple[GraphQLField, ...] = (
    SchemaMetaFieldDef,
    TypeMetaFieldDef,
    TypeNameMetaFieldDef,
)


# Nodes whose name may be replaced with get_copy_of_node_with_new_name.
RenameNodes = Union[
    ArgumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    NamedTypeNode,
    ObjectFieldNode,
    OperationDefinitionNode,
    VariableNode,
]
RenameNodesT = TypeVar("RenameNodesT", bound=RenameNodes)

KT = TypeVar("KT")
VT = TypeVar("VT")


class IdentityKeyedDict(Generic[KT, VT]):
    """Dict-like association keyed by object identity rather than by equality.

    GraphQL AST nodes compare by value and schema elements such as GraphQLField are not even
    hashable, yet two equal nodes at different places of a document (or two equal fields of
    different types) must be told apart. Keys are kept alive alongside their values so that
    their ids cannot be reused while the association exists.
    """

    def __init__(self) -> None:
        """Create an empty association."""
        self._entries: Dict[int, Tuple[KT, VT]] = {}

    def __contains__(self, key: Any) -> bool:
        """Return True iff this very object is a key."""
        return id(key) in self._entries

    def __getitem__(self, key: KT) -> VT:
        """Return the value associated with this very object, raising KeyError if none."""
        try:
            return self._entries[id(key)][1]
        except KeyError:
            raise KeyError(key)

    def __setitem__(self, key: KT, value: VT) -> None:
        """Associate the value with this very object."""
        self._entries[id(key)] = (key, value)

    def __len__(self) -> int:
        """Return the number of keys."""
        return len(self._entries)

    def get(self, key: KT, default: Optional[VT] = None) -> Optional[VT]:
        """Return the value associated with this very object, or the default."""
        entry = self._entries.get(id(key))
        if entry is None:
            return default
        return entry[1]


class ElementNameMap(IdentityKeyedDict[Any, str]):
    """Append-only association from schema element to its anonymized name.

    Each element may be named exactly once, and once the schema walk completes the map is frozen
    so that the per-query passes can only read from it.
    """

    def __init__(self) -> None:
        """Create an empty, writable map."""
        super().__init__()
        self.frozen = False

    def __setitem__(self, element: Any, new_name: str) -> None:
        """Record the new name of a schema element that has not been named before."""
        if self.frozen:
            raise AssertionError(
                f"Attempted to name schema element {element} {new_name} after the element name "
                f"map was frozen. This is a bug."
            )
        if element in self:
            raise AssertionError(
                f"Attempted to name schema element {element} {new_name}, but it was already "
                f"named {self[element]}. This is a bug."
            )
        super().__setitem__(element, new_name)

    def freeze(self) -> None:
        """Prevent any further writes."""
        self.frozen = True


def is_preserved_type(graphql_type: GraphQLNamedType) -> bool:
    """Return True iff the type keeps its name: introspection types and specified scalars."""
    return is_introspection_type(graphql_type) or is_specified_scalar_type(graphql_type)


def is_preserved_directive(directive: GraphQLDirective) -> bool:
    """Return True iff the directive keeps its name, e.g. @include, @skip or @deprecated."""
    return is_specified_directive(directive)


def is_preserved_field(field: GraphQLField, parent_type: Optional[GraphQLNamedType]) -> bool:
    """Return True iff the field keeps its name: meta fields and introspection type fields."""
    if any(field is meta_field for meta_field in _meta_field_definitions):
        return True
    return parent_type is not None and is_introspection_type(parent_type)


def get_copy_of_node_with_new_name(node: RenameNodesT, new_name: str) -> RenameNodesT:
    """Return a node with new_name as its name and otherwise identical to the input node.

    Args:
        node: node to make a copy of
        new_name: name to give to the output node

    Returns:
        node with new_name as its name and otherwise identical to the input node
    """
    node_type = type(node).__name__
    allowed_types = frozenset(
        (
            "ArgumentNode",
            "FieldNode",
            "FragmentDefinitionNode",
            "FragmentSpreadNode",
            "NamedTypeNode",
            "ObjectFieldNode",
            "OperationDefinitionNode",
            "VariableNode",
        )
    )
    if node_type not in allowed_types:
        raise AssertionError(
            "Input node {} of type {} is not allowed, only {} are allowed.".format(
                node, node_type, allowed_types
            )
        )
    node_with_new_name = copy(node)  # shallow copy is enough
    node_with_new_name.name = NameNode(value=new_name)
    return node_with_new_name
