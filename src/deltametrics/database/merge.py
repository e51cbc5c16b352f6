"""Field-level merge used by repository updates."""

from typing import Any, Dict

from .descriptor import EntityDescriptor

ZERO_VALUES = (0, "")


def is_unset(value: Any, skip_zero_values: bool = False) -> bool:
    """
    Decide whether a patch value counts as "not provided".

    None is always unset. With ``skip_zero_values`` the integer 0 and the
    empty string are unset too, which is how the legacy copy-merge behaved:
    it cannot tell "explicitly zero" from "absent".
    """
    if value is None:
        return True
    if skip_zero_values and not isinstance(value, bool) and value in ZERO_VALUES:
        return True
    return False


def merge_fields(
    descriptor: EntityDescriptor,
    existing: Dict[str, Any],
    patch: Dict[str, Any],
    skip_zero_values: bool = False,
) -> Dict[str, Any]:
    """
    Overlay the set fields of ``patch`` onto ``existing``.

    Walks the descriptor's field list rather than the patch, so keys that are
    not columns are ignored. The primary key is never taken from the patch.

    Args:
        descriptor: Entity descriptor for the record kind
        existing: Stored record keyed by column name
        patch: Provided fields keyed by column name
        skip_zero_values: Treat 0 and "" as unset

    Returns:
        New merged record; neither input is modified
    """
    merged = dict(existing)
    for f in descriptor.fields:
        if f.primary_key or f.name not in patch:
            continue
        value = patch[f.name]
        if is_unset(value, skip_zero_values):
            continue
        merged[f.name] = value
    return merged
