"""
Reset coordination helpers.

A field's ``resetOn`` list names the fields whose change clears its value. The
decision rule must stay exactly "reset when any resetOn entry is among the
changed fields" so documents behave the same in every host.
"""

from typing import Any, Iterable, List, Mapping, Optional

from formrules.utils.paths import get_path
from formrules.utils.values import strict_equals


def should_reset_field(
    reset_on: Optional[Iterable[str]],
    changed_fields: Optional[Iterable[str]],
) -> bool:
    """
    Decide whether a field must be reset.

    Args:
        reset_on: The field's ``resetOn`` list (None or empty means never)
        changed_fields: Keys changed by the current mutation

    Returns:
        True if any resetOn entry is one of the changed fields
    """
    if not reset_on or not changed_fields:
        return False
    changed = set(changed_fields)
    return any(field in changed for field in reset_on)


def changed_fields(
    previous: Optional[Mapping[str, Any]],
    current: Optional[Mapping[str, Any]],
    fields: Iterable[str],
) -> List[str]:
    """List the watched fields whose value differs between two snapshots."""
    previous = previous or {}
    current = current or {}
    return [
        field
        for field in fields
        if not strict_equals(get_path(previous, field), get_path(current, field))
    ]
