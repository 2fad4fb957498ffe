"""
Loading persisted form documents.

Accepted document shapes:
    {"form": {"children": [...]}}          builder document
    {"structure": [...], "metadata": ...}  export document
    {"components": [...]}                  builder store snapshot
    [...]                                  bare component list

Each component looks like:
    {"id": "...", "type": "...", "props": {"dataKey", "label", "placeholder",
     "disabled", "required", "dependencies"}, "children": [...]}

Props may be wrapped as ``{"value": x}``; they are unwrapped on load.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from formrules.schemas.dependencies import ComponentDependencies, parse_dependencies_by_slot

logger = logging.getLogger(__name__)


class FormDocumentError(Exception):
    """Raised when a form document cannot be loaded or has no component list."""
    pass


class FormField(BaseModel):
    """One component of a form, flattened out of the component tree."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str = "unknown"
    name: Optional[str] = None
    data_key: Optional[str] = Field(default=None, alias="dataKey")
    label: Optional[str] = None
    placeholder: Optional[str] = None
    disabled: bool = False
    required: bool = False
    dependencies: Optional[ComponentDependencies] = None
    # Bag as written in the document, kept when some of its slots were dropped
    raw_dependencies: Optional[Dict[str, Any]] = Field(default=None, alias="rawDependencies")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    props: Dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str:
        """Human-readable handle: name, else dataKey, else id."""
        return self.name or self.data_key or self.id

    @property
    def has_dependencies(self) -> bool:
        return self.dependencies is not None and not self.dependencies.is_empty()

    def static_defaults(self) -> Dict[str, Any]:
        """Static props a rule result falls back to."""
        return {
            "disabled": self.disabled,
            "required": self.required,
            "label": self.label,
            "placeholder": self.placeholder,
            "options": self.props.get("options"),
        }


class FormDocument(BaseModel):
    """A loaded form: flattened fields in document order plus metadata."""

    version: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    fields: List[FormField] = Field(default_factory=list)

    def get(self, field_id: str) -> Optional[FormField]:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def bound_fields(self) -> Set[str]:
        """Every dataKey bound by some component."""
        return {field.data_key for field in self.fields if field.data_key}

    def with_dependencies(self, include_invalid: bool = False) -> Iterator[FormField]:
        for field in self.fields:
            if field.has_dependencies or (include_invalid and field.raw_dependencies):
                yield field


def _unwrap(value: Any) -> Any:
    if isinstance(value, dict) and len(value) == 1 and "value" in value:
        inner = value["value"]
        # {"value": {"type": ...}} is a rule bag holding a computed value rule
        if isinstance(inner, dict) and "type" in inner:
            return value
        return inner
    return value


def _as_bool(value: Any) -> bool:
    return value is True


def _component_list(document: Any) -> List[Any]:
    if isinstance(document, list):
        return document
    if not isinstance(document, dict):
        raise FormDocumentError(
            f"Form document must be an object or a list, got {type(document).__name__}"
        )
    form = document.get("form")
    if isinstance(form, dict) and isinstance(form.get("children"), list):
        return form["children"]
    for key in ("structure", "components"):
        if isinstance(document.get(key), list):
            return document[key]
    raise FormDocumentError(
        "Form document must contain 'form.children', 'structure' or 'components' list"
    )


def _parse_dependencies(
    raw: Any, component_id: str
) -> Tuple[Optional[ComponentDependencies], Optional[Dict[str, Any]]]:
    """Return the valid slots of a bag, plus the raw bag when any slot was dropped."""
    raw = _unwrap(raw)
    if raw is None:
        return None, None
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring dependencies of '{component_id}': expected an object")
        return None, None

    deps, errors = parse_dependencies_by_slot(raw)
    for error in errors:
        logger.warning(
            f"Ignoring invalid rule '{error.slot}' of '{component_id}': {error.message}"
        )
    return deps, (raw if errors else None)


def _walk(components: List[Any], parent_id: Optional[str], out: List[FormField]) -> None:
    for position, component in enumerate(components):
        if not isinstance(component, dict):
            logger.warning(f"Skipping non-object component at position {position}")
            continue

        component_id = component.get("id") or component.get("key")
        if not component_id:
            component_id = f"{parent_id or 'root'}[{position}]"
            logger.debug(f"Component without id; using '{component_id}'")
        component_id = str(component_id)

        raw_props = component.get("props") or {}
        props = {key: _unwrap(value) for key, value in raw_props.items() if key != "dependencies"}
        dependencies, raw_dependencies = _parse_dependencies(
            raw_props.get("dependencies"), component_id
        )
        data_key = props.get("dataKey")

        out.append(
            FormField(
                id=component_id,
                type=str(component.get("type") or "unknown"),
                name=component.get("name"),
                data_key=data_key if isinstance(data_key, str) and data_key else None,
                label=props.get("label") if isinstance(props.get("label"), str) else None,
                placeholder=(
                    props.get("placeholder") if isinstance(props.get("placeholder"), str) else None
                ),
                disabled=_as_bool(props.get("disabled")),
                required=_as_bool(props.get("required")),
                dependencies=dependencies,
                raw_dependencies=raw_dependencies,
                parent_id=parent_id,
                props=props,
            )
        )

        children = component.get("children")
        if isinstance(children, list):
            _walk(children, component_id, out)


def parse_form(document: Any) -> FormDocument:
    """
    Build a FormDocument from already-decoded JSON.

    Args:
        document: Decoded form document in any accepted shape

    Returns:
        FormDocument with fields flattened depth-first in document order

    Raises:
        FormDocumentError: If no component list can be found
    """
    components = _component_list(document)

    fields: List[FormField] = []
    _walk(components, None, fields)

    version = None
    metadata: Dict[str, Any] = {}
    if isinstance(document, dict):
        version = document.get("version")
        if isinstance(document.get("metadata"), dict):
            metadata = document["metadata"]

    logger.debug(f"Parsed form with {len(fields)} component(s)")
    return FormDocument(
        version=str(version) if version is not None else None,
        metadata=metadata,
        fields=fields,
    )


def load_form(file_path: Union[str, Path]) -> FormDocument:
    """
    Load a form document from a JSON file.

    Args:
        file_path: Path to the form JSON file

    Returns:
        Parsed FormDocument

    Raises:
        FormDocumentError: If the file cannot be read, is not JSON, or has no
            component list
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except FileNotFoundError:
        raise FormDocumentError(f"Form file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise FormDocumentError(f"Invalid JSON in form file: {e}")

    return parse_form(document)


def load_data(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a form-data snapshot (a JSON object) from a file.

    Raises:
        FormDocumentError: If the file cannot be read or is not a JSON object
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FormDocumentError(f"Data file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise FormDocumentError(f"Invalid JSON in data file: {e}")

    if not isinstance(data, Mapping):
        raise FormDocumentError("Form data must be a JSON object")
    return dict(data)
