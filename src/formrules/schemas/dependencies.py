"""
Pydantic schema for component dependency rules.

Mirrors the rule bag the form designer persists on each field under
``props.dependencies``. Field names use the document's camelCase spelling as
aliases (``fnSource``, ``sourceField``, ``filterBy`` ...) while Python code uses
snake_case attributes.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    Iterator,
    List,
    Literal,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Rule bodies are expression text or a JSON Logic document.
RuleSource = Union[str, Dict[str, Any]]

CONDITION_SLOTS = ("disabled", "enabled", "visible", "required")
COMPUTED_SLOTS = ("label", "placeholder", "value", "options")


class Operator(str, Enum):
    """Comparison operators for fieldValue conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EMPTY = "empty"
    NOT_EMPTY = "notEmpty"
    IN = "in"
    NOT_IN = "notIn"


class _RuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the persisted document shape."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# ============================================
# Dependency conditions (gates)
# ============================================


class FieldValueCondition(_RuleModel):
    """Compare one field's value with a constant."""

    type: Literal["fieldValue"] = "fieldValue"
    field: Optional[str] = None
    operator: Optional[Operator] = None
    value: Any = None
    default: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def lenient_operator(cls, v: Any) -> Any:
        """Unknown operators fall back to the notEmpty default instead of rejecting the rule."""
        if v is None or isinstance(v, Operator):
            return v
        try:
            return Operator(v)
        except ValueError:
            logger.warning(f"Unknown condition operator {v!r}; treating as notEmpty")
            return None

    @property
    def effective_operator(self) -> Operator:
        return self.operator or Operator.NOT_EMPTY


class ExpressionCondition(_RuleModel):
    """Gate computed by an expression (or JSON Logic document)."""

    type: Literal["expression"] = "expression"
    expression: Optional[RuleSource] = None
    default: Any = None


class FunctionCondition(_RuleModel):
    """Gate computed by a registered function."""

    type: Literal["function"] = "function"
    fn_source: Optional[str] = Field(default=None, alias="fnSource")
    default: Any = None


DependencyCondition = Annotated[
    Union[FieldValueCondition, ExpressionCondition, FunctionCondition],
    Field(discriminator="type"),
]


# ============================================
# Computed properties
# ============================================


class TemplateProperty(_RuleModel):
    """Text built from ``{data.path}`` placeholders."""

    type: Literal["template"] = "template"
    template: Optional[str] = None
    default: Any = None


class ExpressionProperty(_RuleModel):
    """Value computed by an expression (or JSON Logic document)."""

    type: Literal["expression"] = "expression"
    expression: Optional[RuleSource] = None
    default: Any = None


class FunctionProperty(_RuleModel):
    """Value computed by a registered function."""

    type: Literal["function"] = "function"
    fn_source: Optional[str] = Field(default=None, alias="fnSource")
    default: Any = None


ComputedProperty = Annotated[
    Union[TemplateProperty, ExpressionProperty, FunctionProperty],
    Field(discriminator="type"),
]


# ============================================
# Filters and the aggregate rule bag
# ============================================


class FilterDependency(_RuleModel):
    """Map one field's value into a query parameter of a cascading list."""

    source_field: str = Field(..., alias="sourceField", min_length=1)
    target_param: str = Field(..., alias="targetParam", min_length=1)
    transform: Optional[RuleSource] = None


class ComponentDependencies(_RuleModel):
    """All dependency rules attached to one form field. Absent keys mean no rule."""

    disabled: Optional[DependencyCondition] = None
    enabled: Optional[DependencyCondition] = None
    visible: Optional[DependencyCondition] = None
    required: Optional[DependencyCondition] = None

    label: Optional[ComputedProperty] = None
    placeholder: Optional[ComputedProperty] = None
    value: Optional[ComputedProperty] = None
    options: Optional[ComputedProperty] = None

    filter_by: Optional[Union[FilterDependency, List[FilterDependency]]] = Field(
        default=None, alias="filterBy"
    )
    reset_on: Optional[List[str]] = Field(default=None, alias="resetOn")

    def filters(self) -> List[FilterDependency]:
        """Filter dependencies normalized to a list, in application order."""
        if self.filter_by is None:
            return []
        if isinstance(self.filter_by, list):
            return list(self.filter_by)
        return [self.filter_by]

    def conditions(self) -> Iterator[Tuple[str, Any]]:
        """Yield (slot, condition) for every gate rule present."""
        for slot in CONDITION_SLOTS:
            condition = getattr(self, slot)
            if condition is not None:
                yield slot, condition

    def computed(self) -> Iterator[Tuple[str, Any]]:
        """Yield (slot, property) for every computed property present."""
        for slot in COMPUTED_SLOTS:
            prop = getattr(self, slot)
            if prop is not None:
                yield slot, prop

    def is_empty(self) -> bool:
        return not self.model_fields_set or all(
            getattr(self, name) is None for name in self.model_fields_set
        )


# ============================================
# Evaluation input and output
# ============================================


class EvaluationContext(BaseModel):
    """Data snapshot a rule is evaluated against. The engine only reads it."""

    model_config = ConfigDict(populate_by_name=True)

    data: Dict[str, Any] = Field(default_factory=dict)
    parent_data: Optional[Dict[str, Any]] = Field(default=None, alias="parentData")
    root_data: Optional[Dict[str, Any]] = Field(default=None, alias="rootData")

    @field_validator("data", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def effective_root(self) -> Dict[str, Any]:
        return self.root_data if self.root_data is not None else self.data

    def bindings(self) -> Dict[str, Any]:
        """Names visible to expression and function rules."""
        return {
            "data": self.data,
            "parentData": self.parent_data if self.parent_data is not None else {},
            "rootData": self.effective_root,
        }


class EffectiveState(BaseModel):
    """
    Consolidated result of one evaluation pass for one component.

    Only slots that had a rule are set; ``to_dict()`` omits the rest so the
    renderer can fall back to static defaults. A set slot holding None means
    the rule ran but produced no value (failure without a declared default).
    """

    model_config = ConfigDict(populate_by_name=True)

    disabled: Optional[bool] = None
    enabled: Optional[bool] = None
    visible: Optional[bool] = None
    required: Optional[bool] = None
    label: Any = None
    placeholder: Any = None
    value: Any = None
    options: Any = None
    filter_params: Optional[Dict[str, Any]] = Field(default=None, alias="filterParams")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)

    def has(self, slot: str) -> bool:
        """True when the slot was produced by a rule in this pass."""
        return slot in self.model_fields_set


_condition_adapter: TypeAdapter = TypeAdapter(DependencyCondition)
_computed_adapter: TypeAdapter = TypeAdapter(ComputedProperty)
_filter_adapter: TypeAdapter = TypeAdapter(Union[FilterDependency, List[FilterDependency]])
_reset_adapter: TypeAdapter = TypeAdapter(List[str])


def parse_condition(condition: Union[Mapping[str, Any], BaseModel]) -> Any:
    """Validate a raw condition mapping into its variant model."""
    if isinstance(condition, BaseModel):
        return condition
    return _condition_adapter.validate_python(dict(condition))


def parse_computed(prop: Union[Mapping[str, Any], BaseModel]) -> Any:
    """Validate a raw computed-property mapping into its variant model."""
    if isinstance(prop, BaseModel):
        return prop
    return _computed_adapter.validate_python(dict(prop))


def parse_filters(filter_by: Any) -> List[FilterDependency]:
    """Validate one or many raw filter dependencies into a list."""
    if filter_by is None:
        return []
    if isinstance(filter_by, FilterDependency):
        return [filter_by]
    if isinstance(filter_by, list) and all(isinstance(f, FilterDependency) for f in filter_by):
        return list(filter_by)
    parsed = _filter_adapter.validate_python(filter_by)
    return parsed if isinstance(parsed, list) else [parsed]


class SlotError(NamedTuple):
    """A rule slot that failed validation and was left out of its bag."""

    slot: str  # e.g. "visible", "filterBy[1]", "resetOn"
    message: str
    raw: Any = None


def _describe_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    message = f"{location}: {first['msg']}" if location else first["msg"]
    if error.error_count() > 1:
        message = f"{message} (+{error.error_count() - 1} more)"
    return message


def _raw_slot(dependencies: Mapping[str, Any], alias: str, name: str) -> Any:
    value = dependencies.get(alias)
    return value if value is not None else dependencies.get(name)


def parse_dependencies_by_slot(
    dependencies: Union[Mapping[str, Any], ComponentDependencies, None],
) -> Tuple[Optional[ComponentDependencies], List[SlotError]]:
    """
    Validate a raw rule bag one slot at a time.

    A malformed slot (unknown ``type``, a filter without ``targetParam`` ...)
    is left out of the returned bag and reported as a SlotError; every other
    slot is kept. Filter lists are validated entry by entry.

    Args:
        dependencies: Raw rule bag, an already validated bag, or None

    Returns:
        (bag of the valid slots, errors); the bag is None only for None input
    """
    if dependencies is None or isinstance(dependencies, ComponentDependencies):
        return dependencies, []
    if not isinstance(dependencies, Mapping):
        return ComponentDependencies(), [
            SlotError(
                "dependencies",
                f"Expected an object, got {type(dependencies).__name__}",
                dependencies,
            )
        ]

    valid: Dict[str, Any] = {}
    errors: List[SlotError] = []

    slots = [(slot, _condition_adapter) for slot in CONDITION_SLOTS]
    slots += [(slot, _computed_adapter) for slot in COMPUTED_SLOTS]
    for slot, adapter in slots:
        raw = dependencies.get(slot)
        if raw is None:
            continue
        try:
            valid[slot] = adapter.validate_python(raw)
        except ValidationError as e:
            errors.append(SlotError(slot, _describe_error(e), raw))

    raw_filters = _raw_slot(dependencies, "filterBy", "filter_by")
    if raw_filters is not None:
        entries = raw_filters if isinstance(raw_filters, list) else [raw_filters]
        kept: List[FilterDependency] = []
        for position, entry in enumerate(entries):
            try:
                kept.append(FilterDependency.model_validate(entry))
            except ValidationError as e:
                slot = f"filterBy[{position}]" if isinstance(raw_filters, list) else "filterBy"
                errors.append(SlotError(slot, _describe_error(e), entry))
        if isinstance(raw_filters, list) or not kept:
            valid["filter_by"] = kept
        else:
            valid["filter_by"] = kept[0]

    raw_reset = _raw_slot(dependencies, "resetOn", "reset_on")
    if raw_reset is not None:
        try:
            valid["reset_on"] = _reset_adapter.validate_python(raw_reset)
        except ValidationError as e:
            errors.append(SlotError("resetOn", _describe_error(e), raw_reset))

    for error in errors:
        logger.debug(f"Dropping invalid rule '{error.slot}': {error.message}")

    return ComponentDependencies(**valid), errors


def parse_dependencies(
    dependencies: Union[Mapping[str, Any], ComponentDependencies, None],
) -> Optional[ComponentDependencies]:
    """Validate a raw rule bag, keeping its valid slots; None passes through."""
    return parse_dependencies_by_slot(dependencies)[0]


def parse_context(
    context: Union[Mapping[str, Any], EvaluationContext, None],
) -> EvaluationContext:
    """Accept an EvaluationContext or a plain ``{"data": ...}`` mapping."""
    if context is None:
        return EvaluationContext()
    if isinstance(context, EvaluationContext):
        return context
    return EvaluationContext.model_validate(dict(context))
