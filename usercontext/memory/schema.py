"""
Memory record schema - the field tree that drives merging.

Every field of a memory document is statically one of three kinds:

- object : a nested record, merged key-by-key
- array  : an ordered list of strings, replaced wholesale
- scalar : a single value (timestamps), replaced

The merge in memory/merge.py walks this tree instead of inspecting the
stored values, so the document's shape decides merge behaviour and a
malformed patch is caught before anything is written.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from usercontext.core.exceptions import MalformedPatch

OBJECT = "object"
ARRAY = "array"
SCALAR = "scalar"


def dotted_path(path: Tuple[str, ...]) -> str:
    return ".".join(path) or "<root>"


@dataclass(frozen=True)
class ArrayField:
    """Ordered sequence of strings; duplicates allowed."""
    kind: str = field(default=ARRAY, init=False)

    def default(self) -> list:
        return []

    def coerce(self, value: Any, path: Tuple[str, ...]) -> list:
        if not isinstance(value, list):
            raise MalformedPatch(
                f"Expected a list of strings at '{dotted_path(path)}', got {type(value).__name__}",
                field=dotted_path(path)
            )
        for index, item in enumerate(value):
            if not isinstance(item, str):
                raise MalformedPatch(
                    f"Expected a string at '{dotted_path(path)}[{index}]', got {type(item).__name__}",
                    field=dotted_path(path)
                )
        return list(value)


@dataclass(frozen=True)
class TimestampField:
    """Epoch milliseconds."""
    kind: str = field(default=SCALAR, init=False)

    def default(self) -> int:
        return 0

    def coerce(self, value: Any, path: Tuple[str, ...]) -> int:
        # bool is an int subclass; true/false are never timestamps
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedPatch(
                f"Expected an integer timestamp at '{dotted_path(path)}', got {type(value).__name__}",
                field=dotted_path(path)
            )
        return value


@dataclass(frozen=True)
class ObjectField:
    """Nested record with a fixed set of named fields."""
    fields: Dict[str, "SchemaField"]
    kind: str = field(default=OBJECT, init=False)

    def default(self) -> Dict[str, Any]:
        return {name: child.default() for name, child in self.fields.items()}


SchemaField = Union[ObjectField, ArrayField, TimestampField]


MEMORY_SCHEMA = ObjectField({
    "profile": ObjectField({
        "riskFactors": ArrayField(),
        "conditions": ArrayField(),
        "interests": ArrayField(),
    }),
    "conversation": ObjectField({
        "recentQuestions": ArrayField(),
        "keyInsights": ArrayField(),
    }),
    "meta": ObjectField({
        "createdAt": TimestampField(),
        "lastActive": TimestampField(),
    }),
})


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_memory_record(timestamp: int) -> Dict[str, Any]:
    """
    Build a fresh default memory document.

    Called at creation time for each user, so no lists or timestamps
    are shared between records.
    """
    document = MEMORY_SCHEMA.default()
    document["meta"]["createdAt"] = timestamp
    document["meta"]["lastActive"] = timestamp
    return document
