"""
Reference host for a loaded form.

FormRuntime owns the current data snapshot of one form and keeps every
component's EffectiveState in sync with it:

1. Dependent-field sets are extracted once, when the runtime is created.
2. A change re-evaluates only components whose dependent fields intersect the
   changed keys (or that depend on everything, "*").
3. Components whose ``resetOn`` matches a changed key have a non-empty value
   cleared to None.
4. Computed ``value`` results that differ from the stored value are written
   back, and those writes cascade like user changes, up to
   ``max_cascade_passes`` passes.

Snapshots are copy-on-write: every change produces a new data mapping and the
previous one is never mutated.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from formrules.config.settings import EngineConfig
from formrules.expressions.references import WILDCARD
from formrules.runtime.evaluator import DependencyEvaluator, IDependencyEvaluator
from formrules.runtime.form_loader import FormDocument, FormField
from formrules.runtime.reset import should_reset_field
from formrules.schemas.dependencies import EffectiveState, EvaluationContext
from formrules.utils.paths import deep_copy_data, get_path, is_empty, path_roots, set_path
from formrules.utils.values import strict_equals

logger = logging.getLogger(__name__)


@dataclass
class ResolvedFieldState:
    """Final render state of one field after folding rule results onto static props."""

    visible: bool = True
    disabled: bool = False
    required: bool = False
    label: Any = None
    placeholder: Any = None
    value: Any = None
    options: Any = None
    filter_params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _rule_value(state: EffectiveState, slot: str) -> Any:
    """Rule result for a slot, or None when there was no rule or it produced nothing."""
    if not state.has(slot):
        return None
    return getattr(state, slot)


def resolve_field_state(
    state: Optional[EffectiveState],
    defaults: Optional[Mapping[str, Any]] = None,
) -> ResolvedFieldState:
    """
    Fold an EffectiveState onto a field's static defaults.

    ``disabled`` is the explicit disabled result, else ``not enabled`` when an
    enabled rule produced a value, else the static default. ``visible``
    defaults to True. Every other slot falls back to its static default.

    Args:
        state: Rule results for the field (None when it has no rules)
        defaults: Static props (disabled, required, label, placeholder, value, options)

    Returns:
        ResolvedFieldState
    """
    state = state or EffectiveState()
    defaults = defaults or {}

    disabled = _rule_value(state, "disabled")
    if disabled is None:
        enabled = _rule_value(state, "enabled")
        disabled = (not enabled) if enabled is not None else bool(defaults.get("disabled", False))

    visible = _rule_value(state, "visible")
    required = _rule_value(state, "required")

    def pick(slot: str) -> Any:
        value = _rule_value(state, slot)
        return value if value is not None else defaults.get(slot)

    return ResolvedFieldState(
        visible=visible if visible is not None else bool(defaults.get("visible", True)),
        disabled=disabled,
        required=required if required is not None else bool(defaults.get("required", False)),
        label=pick("label"),
        placeholder=pick("placeholder"),
        value=pick("value"),
        options=pick("options"),
        filter_params=dict(state.filter_params or {}),
    )


@dataclass
class UpdateResult:
    """Outcome of one data change and its cascade."""

    data: Dict[str, Any]
    changed_fields: List[str] = field(default_factory=list)
    reset_fields: List[str] = field(default_factory=list)
    computed_fields: List[str] = field(default_factory=list)
    evaluated: List[str] = field(default_factory=list)
    passes: int = 0
    converged: bool = True


class FormRuntime:
    """
    Keeps a form's rule results in sync with its data.

    Args:
        form: Loaded form document
        data: Initial data snapshot (copied)
        evaluator: Dependency evaluator; a DependencyEvaluator is built when omitted
        config: Engine settings (cascade limit and evaluator limits)
        parent_data: Optional parent-form data exposed to rules as ``parentData``
        root_data: Optional root-form data exposed as ``rootData``
    """

    def __init__(
        self,
        form: FormDocument,
        data: Optional[Mapping[str, Any]] = None,
        evaluator: Optional[IDependencyEvaluator] = None,
        config: Optional[EngineConfig] = None,
        parent_data: Optional[Mapping[str, Any]] = None,
        root_data: Optional[Mapping[str, Any]] = None,
    ):
        self.form = form
        self.config = config or EngineConfig()
        self.evaluator = evaluator or DependencyEvaluator(config=self.config)
        self.parent_data = dict(parent_data) if parent_data is not None else None
        self.root_data = dict(root_data) if root_data is not None else None

        self._data: Dict[str, Any] = deep_copy_data(data)
        self._states: Dict[str, EffectiveState] = {}
        self._rule_fields: List[FormField] = list(form.with_dependencies())
        self._dependent_fields: Dict[str, Set[str]] = {
            f.id: self.evaluator.extract_dependent_fields(f.dependencies)
            for f in self._rule_fields
        }

        logger.debug(
            f"FormRuntime ready: {len(form.fields)} component(s), "
            f"{len(self._rule_fields)} with rules"
        )
        self.last_update = self._initialize()

    # Read access

    @property
    def data(self) -> Dict[str, Any]:
        """Current data snapshot. Treat as read-only; use set_value to change it."""
        return self._data

    @property
    def states(self) -> Dict[str, EffectiveState]:
        return dict(self._states)

    def state(self, field_id: str) -> EffectiveState:
        return self._states.get(field_id, EffectiveState())

    def dependent_fields(self, field_id: str) -> Set[str]:
        return set(self._dependent_fields.get(field_id, set()))

    def resolved_state(self, field_id: str) -> ResolvedFieldState:
        """Render state of one field, including its current stored value."""
        form_field = self.form.get(field_id)
        if form_field is None:
            raise KeyError(f"Unknown component '{field_id}'")
        resolved = resolve_field_state(self._states.get(field_id), form_field.static_defaults())
        if form_field.data_key:
            resolved.value = get_path(self._data, form_field.data_key)
        return resolved

    def context(self) -> EvaluationContext:
        return EvaluationContext(
            data=self._data,
            parent_data=self.parent_data,
            root_data=self.root_data,
        )

    # Evaluation

    def evaluate_all(self) -> Dict[str, EffectiveState]:
        """Re-evaluate every component with rules against the current snapshot."""
        ctx = self.context()
        for form_field in self._rule_fields:
            self._states[form_field.id] = self.evaluator.evaluate_all(
                form_field.dependencies, ctx, component_id=form_field.id
            )
        return self.states

    def affected_by(self, changed: Iterable[str]) -> List[FormField]:
        """Components whose dependent fields intersect the changed keys."""
        keys: Set[str] = set()
        for key in changed:
            keys |= path_roots(key)
        return [
            f
            for f in self._rule_fields
            if WILDCARD in self._dependent_fields[f.id] or self._dependent_fields[f.id] & keys
        ]

    def set_value(self, key: str, value: Any) -> UpdateResult:
        """
        Change one field and propagate the consequences.

        Args:
            key: Data path of the changed field
            value: New value

        Returns:
            UpdateResult describing resets, computed writes and re-evaluations
        """
        return self.update({key: value})

    def update(self, values: Mapping[str, Any]) -> UpdateResult:
        """Change several fields at once and propagate the consequences."""
        changed: List[str] = []
        for key, value in values.items():
            if strict_equals(get_path(self._data, key), value):
                continue
            self._data = set_path(self._data, key, value)
            changed.append(key)

        if not changed:
            return UpdateResult(data=self._data)

        self.last_update = self._propagate(changed)
        return self.last_update

    def _initialize(self) -> UpdateResult:
        self.evaluate_all()
        result = UpdateResult(data=self._data, evaluated=[f.id for f in self._rule_fields])
        written = self._write_computed_values(self._rule_fields, result)
        if not written:
            return result

        cascade = self._propagate(written)
        cascade.computed_fields = result.computed_fields + cascade.computed_fields
        cascade.evaluated = result.evaluated + [
            f for f in cascade.evaluated if f not in result.evaluated
        ]
        return cascade

    def _propagate(self, changed: List[str]) -> UpdateResult:
        result = UpdateResult(data=self._data, changed_fields=list(changed))
        pending = list(changed)

        while pending:
            if result.passes >= self.config.max_cascade_passes:
                result.converged = False
                logger.warning(
                    f"Cascade did not settle after {result.passes} pass(es); "
                    f"pending changes: {', '.join(pending)}"
                )
                break
            result.passes += 1

            keys: Set[str] = set()
            for key in pending:
                keys |= path_roots(key)

            # resetOn matches the changed keys exactly, not their parent paths
            follow_up = self._apply_resets(set(pending), result)

            ctx = self.context()
            affected = self.affected_by(keys)
            for form_field in affected:
                self._states[form_field.id] = self.evaluator.evaluate_all(
                    form_field.dependencies, ctx, component_id=form_field.id
                )
                if form_field.id not in result.evaluated:
                    result.evaluated.append(form_field.id)

            follow_up.extend(self._write_computed_values(affected, result))

            pending = list(dict.fromkeys(follow_up))
            for key in pending:
                if key not in result.changed_fields:
                    result.changed_fields.append(key)

        result.data = self._data
        logger.debug(
            f"Update settled in {result.passes} pass(es): "
            f"{len(result.evaluated)} evaluated, {len(result.reset_fields)} reset, "
            f"{len(result.computed_fields)} computed"
        )
        return result

    def _apply_resets(self, keys: Set[str], result: UpdateResult) -> List[str]:
        cleared: List[str] = []
        for form_field in self._rule_fields:
            if not form_field.data_key:
                continue
            if not should_reset_field(form_field.dependencies.reset_on, keys):
                continue
            if is_empty(get_path(self._data, form_field.data_key)):
                continue
            logger.info(f"Resetting '{form_field.data_key}' after change to {sorted(keys)}")
            self._data = set_path(self._data, form_field.data_key, None)
            cleared.append(form_field.data_key)
            result.reset_fields.append(form_field.id)
        return cleared

    def _write_computed_values(self, fields: Iterable[FormField], result: UpdateResult) -> List[str]:
        written: List[str] = []
        for form_field in fields:
            if not form_field.data_key:
                continue
            state = self._states.get(form_field.id)
            if state is None or not state.has("value") or state.value is None:
                continue
            if strict_equals(get_path(self._data, form_field.data_key), state.value):
                continue
            self._data = set_path(self._data, form_field.data_key, state.value)
            written.append(form_field.data_key)
            result.computed_fields.append(form_field.id)
        result.data = self._data
        return written
