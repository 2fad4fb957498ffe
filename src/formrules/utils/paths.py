"""
Dot-path lookup and replacement over nested form data.

Paths use dot notation with optional bracket indices:
    "address.city"        -> data["address"]["city"]
    "items.0.name"        -> data["items"][0]["name"]
    "items[0].name"       -> data["items"][0]["name"]

Lookups never raise for missing paths; they return None ("absent").
Replacement is copy-on-write: the input mapping is never mutated.
"""

import copy
import re
from typing import Any, Dict, List, Mapping, Optional, Set, Union


_BRACKET_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])+)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

Segment = Union[str, int]


def parse_path(path: str) -> List[Segment]:
    """
    Parse a path into segments.

    Examples:
        "address.city" -> ["address", "city"]
        "items[2].name" -> ["items", 2, "name"]
        "items.2.name" -> ["items", "2", "name"]

    Numeric dot segments stay strings; they are interpreted as indices only
    when the value being walked is a sequence.

    Args:
        path: Dot-notation path with optional bracket indices

    Returns:
        List of segments (strings for keys, integers for bracket indices)
    """
    if not path:
        return []

    segments: List[Segment] = []
    for part in path.split("."):
        match = _BRACKET_RE.match(part)
        if match:
            if match.group(1):
                segments.append(match.group(1))
            segments.extend(int(i) for i in _INDEX_RE.findall(match.group(2)))
        else:
            segments.append(part)
    return segments


def _step(value: Any, segment: Segment) -> Any:
    if value is None:
        return None
    if isinstance(value, Mapping):
        if segment in value:
            return value[segment]
        return value.get(str(segment))
    if isinstance(value, (list, tuple)):
        if isinstance(segment, str):
            if not segment.isdigit():
                return None
            segment = int(segment)
        if 0 <= segment < len(value):
            return value[segment]
        return None
    return None


def get_path(obj: Any, path: str) -> Any:
    """
    Resolve a dot path against nested data.

    Returns None as soon as any intermediate segment is missing or the value
    being walked is not indexable. Never raises for missing paths.

    Args:
        obj: Root mapping (usually the form data snapshot)
        path: Dot-notation path

    Returns:
        Resolved value, or None when absent
    """
    if not path:
        return None

    value = obj
    for segment in parse_path(path):
        value = _step(value, segment)
        if value is None:
            return None
    return value


def set_path(obj: Optional[Mapping[str, Any]], path: str, value: Any) -> Dict[str, Any]:
    """
    Return a copy of ``obj`` with the value at ``path`` replaced.

    Intermediate containers are created as needed: a dict for key segments,
    a list when the following segment is a bracket index. Containers along the
    path are copied, everything else is shared with the input.

    Args:
        obj: Source mapping (not mutated)
        path: Dot-notation path
        value: Value to store

    Returns:
        New mapping with the replacement applied

    Raises:
        ValueError: If path is empty or a segment addresses a non-container
    """
    segments = parse_path(path)
    if not segments:
        raise ValueError("Cannot set an empty path")

    root: Dict[str, Any] = dict(obj or {})
    current: Any = root
    for i, segment in enumerate(segments[:-1]):
        next_segment = segments[i + 1]
        child = _step(current, segment)
        if isinstance(child, Mapping):
            child = dict(child)
        elif isinstance(child, (list, tuple)):
            child = list(child)
        elif child is None:
            child = [] if isinstance(next_segment, int) else {}
        else:
            raise ValueError(
                f"Cannot descend into {type(child).__name__} at segment {i} of path '{path}'"
            )
        _assign(current, segment, child, path)
        current = child

    _assign(current, segments[-1], value, path)
    return root


def _assign(container: Any, segment: Segment, value: Any, path: str) -> None:
    if isinstance(container, dict):
        container[segment if isinstance(segment, str) else str(segment)] = value
        return
    if isinstance(container, list):
        index = int(segment)
        while len(container) <= index:
            container.append(None)
        container[index] = value
        return
    raise ValueError(f"Expected a container while setting path '{path}', got {type(container)}")


def is_empty(value: Any) -> bool:
    """
    Check if a value counts as empty.

    True for None, whitespace-only strings and empty sequences. False for
    everything else, including 0, False and empty mappings.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def path_roots(path: str) -> Set[str]:
    """Return the root segment and the full path, e.g. {"address", "address.city"}."""
    segments = parse_path(path)
    if not segments:
        return set()
    return {str(segments[0]), path}


def deep_copy_data(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Detached copy of a data snapshot."""
    return copy.deepcopy(dict(data or {}))
