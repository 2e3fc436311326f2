# Copyright 2021-present Kensho Technologies, LLC.
"""Sequentially numbered placeholder names, one counter per category of named thing."""
from typing import Dict


# Prefixes for schema elements. Each prefix doubles as the category of its own counter.
OBJECT_PREFIX = "Object"
INTERFACE_PREFIX = "Interface"
UNION_PREFIX = "Union"
ENUM_PREFIX = "Enum"
ENUM_VALUE_PREFIX = "EnumValue"
INPUT_OBJECT_PREFIX = "InputObject"
INPUT_FIELD_PREFIX = "inputField"
FIELD_PREFIX = "field"
ARGUMENT_PREFIX = "argument"
SCALAR_PREFIX = "Scalar"
DIRECTIVE_PREFIX = "Directive"
DEFAULT_STRING_VALUE_PREFIX = "defaultValue"

# Prefixes for names that only exist within a single query.
FRAGMENT_PREFIX = "Fragment"
VARIABLE_PREFIX = "var"
ALIAS_PREFIX = "alias"
STRING_VALUE_PREFIX = "stringValue"

# Categories of purely numeric placeholders, which have no prefix.
DEFAULT_INT_VALUE_CATEGORY = "defaultIntValue"
INT_VALUE_CATEGORY = "intValue"

# Every named operation is given this same name, since the name carries no structure.
OPERATION_NAME = "operation"


class NameAllocator(object):
    """Hand out numbered names, keeping an independent counter for each category.

    Counters start at 1 and only ever increase, so a single allocator never returns the same
    name twice. Allocators hold no other state: sharing one between anonymization runs, or
    between two queries, would leak numbering from one into the other.
    """

    def __init__(self) -> None:
        """Create an allocator whose counters have not handed out anything yet."""
        self._counters: Dict[str, int] = {}

    def allocate_number(self, category: str) -> int:
        """Return the next number of the given category, starting at 1."""
        number = self._counters.get(category, 0) + 1
        self._counters[category] = number
        return number

    def allocate_name(self, prefix: str) -> str:
        """Return the next name with the given prefix, e.g. "field1", then "field2"."""
        return prefix + str(self.allocate_number(prefix))
