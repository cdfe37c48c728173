"""
Deep merge of a partial memory document onto a stored one.

Rules, per key present in the patch:
- nested object in the schema: merge recursively
- array or scalar: replace wholesale
- explicit None (JSON null): reset the field to its schema default
Keys absent from the patch are left untouched, including keys the
stored document has but the schema does not know.

The merge is pure: inputs are never mutated and a MalformedPatch is
raised before any result is produced, so a rejected patch has no effect.
"""
import copy
from collections.abc import Mapping
from typing import Any, Dict, Tuple

from usercontext.core.exceptions import MalformedPatch
from usercontext.memory.schema import MEMORY_SCHEMA, OBJECT, ObjectField, dotted_path


def deep_merge(
    target: Mapping,
    source: Any,
    schema: ObjectField = MEMORY_SCHEMA,
) -> Dict[str, Any]:
    """
    Merge source onto a copy of target following schema.

    Args:
        target: Current document (not modified)
        source: Patch document
        schema: Field tree describing target

    Returns:
        New merged document

    Raises:
        MalformedPatch: If source does not fit the schema anywhere
    """
    return _merge_object(schema, target, source, ())


def _merge_object(
    schema: ObjectField,
    target: Any,
    source: Any,
    path: Tuple[str, ...],
) -> Dict[str, Any]:
    if not isinstance(source, Mapping):
        raise MalformedPatch(
            f"Expected an object at '{dotted_path(path)}', got {type(source).__name__}",
            field=dotted_path(path)
        )

    result = copy.deepcopy(dict(target)) if isinstance(target, Mapping) else schema.default()

    for key, value in source.items():
        child = schema.fields.get(key)
        child_path = path + (str(key),)
        if child is None:
            raise MalformedPatch(
                f"Unknown field '{dotted_path(child_path)}'",
                field=dotted_path(child_path)
            )

        if value is None:
            result[key] = child.default()
        elif child.kind == OBJECT:
            result[key] = _merge_object(child, result.get(key), value, child_path)
        else:
            result[key] = child.coerce(value, child_path)

    return result


def validate_patch(source: Any, schema: ObjectField = MEMORY_SCHEMA) -> None:
    """
    Check a patch against the schema without needing a stored document.

    Raises:
        MalformedPatch: On the first mismatch found
    """
    _merge_object(schema, schema.default(), source, ())
