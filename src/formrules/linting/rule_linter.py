"""
Rule Linter - design-time feedback on dependency rule definitions.

Checks every rule of a component (or of every component in a form) for:
- Schema: slots whose rule object is malformed (unknown type, missing
  targetParam); the runtime drops them
- Syntax: expressions and filter transforms that do not compile,
  fieldValue conditions without a field
- Functions: fnSource that is neither registered nor a compilable expression
- Operators: in/notIn whose value is not a list (always false / always true)
- Vocabulary: references to fields no component binds (when the bound
  fields are known)

The runtime never fails on any of these (broken rules fall back to their
defaults); the linter exists so authors find out before users do.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from formrules.expressions.errors import ExpressionSyntaxError
from formrules.expressions.functions import FunctionRegistry
from formrules.expressions.json_logic_adapter import is_json_logic
from formrules.expressions.references import WILDCARD
from formrules.runtime.extractor import DependentFieldExtractor
from formrules.runtime.form_loader import FormDocument
from formrules.runtime.sandbox import RuleSandbox
from formrules.schemas.dependencies import (
    ComponentDependencies,
    ExpressionCondition,
    ExpressionProperty,
    FieldValueCondition,
    FunctionCondition,
    FunctionProperty,
    Operator,
    parse_dependencies_by_slot,
)
from formrules.utils.paths import parse_path
from formrules.utils.values import is_sequence

logger = logging.getLogger(__name__)


class ViolationType(str, Enum):
    """Types of lint violations."""
    SCHEMA_ERROR = "SCHEMA_ERROR"
    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNKNOWN_FUNCTION = "UNKNOWN_FUNCTION"
    VOCAB_ERROR = "VOCAB_ERROR"
    OPERATOR_ERROR = "OPERATOR_ERROR"


class Severity(str, Enum):
    """Violation severity levels."""
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"


@dataclass
class LintViolation:
    """One problem found in a rule definition."""
    component_id: str
    slot: str  # e.g. "visible", "filterBy[1].transform"
    type: ViolationType
    severity: Severity
    message: str
    field: Optional[str] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data


@dataclass
class LintReport:
    """Lint result with summary counts and the individual violations."""
    summary: Dict[str, int]
    violations: List[LintViolation] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return any(v.severity == Severity.CRITICAL for v in self.violations)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "summary": self.summary,
            "violations": [v.to_dict() for v in self.violations],
        }


def _short(source: Any) -> Optional[str]:
    if source is None:
        return None
    text = source if isinstance(source, str) else repr(source)
    return text if len(text) <= 120 else f"{text[:117]}..."


class RuleLinter:
    """
    Lints ComponentDependencies.

    Args:
        registry: Function registry consulted for fnSource names
        sandbox: Sandbox whose compiler settings (max depth) are used
    """

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        sandbox: Optional[RuleSandbox] = None,
    ):
        self.sandbox = sandbox or RuleSandbox(registry=registry)
        self.extractor = DependentFieldExtractor(self.sandbox)

    def lint(
        self,
        dependencies: Union[ComponentDependencies, Mapping[str, Any], None],
        known_fields: Optional[Iterable[str]] = None,
        component_id: str = "component",
    ) -> List[LintViolation]:
        """
        Lint one component's rules.

        Args:
            dependencies: Rule bag (model or raw mapping)
            known_fields: Field paths bound by the form; None skips vocabulary checks
            component_id: Id used in violation records

        Returns:
            List of violations, in slot order
        """
        deps, invalid = parse_dependencies_by_slot(dependencies)
        if deps is None:
            return []

        violations: List[LintViolation] = [
            LintViolation(
                component_id=component_id,
                slot=error.slot,
                type=ViolationType.SCHEMA_ERROR,
                severity=Severity.CRITICAL,
                message=f"Invalid rule: {error.message}",
                source=_short(error.raw),
            )
            for error in invalid
        ]

        for slot, condition in deps.conditions():
            if isinstance(condition, FieldValueCondition):
                violations.extend(self._check_field_value(condition, slot, component_id))
            elif isinstance(condition, ExpressionCondition):
                violations.extend(self._check_source(condition.expression, slot, component_id))
            elif isinstance(condition, FunctionCondition):
                violations.extend(self._check_function(condition.fn_source, slot, component_id))

        for slot, prop in deps.computed():
            if isinstance(prop, ExpressionProperty):
                violations.extend(self._check_source(prop.expression, slot, component_id))
            elif isinstance(prop, FunctionProperty):
                violations.extend(self._check_function(prop.fn_source, slot, component_id))

        for position, filter_dep in enumerate(deps.filters()):
            if filter_dep.transform is not None:
                violations.extend(
                    self._check_source(
                        filter_dep.transform, f"filterBy[{position}].transform", component_id
                    )
                )

        if known_fields is not None:
            violations.extend(self._check_vocabulary(deps, set(known_fields), component_id))

        return violations

    def _check_field_value(
        self, condition: FieldValueCondition, slot: str, component_id: str
    ) -> List[LintViolation]:
        violations = []
        if not condition.field:
            violations.append(LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.SYNTAX_ERROR,
                severity=Severity.CRITICAL,
                message="fieldValue condition has no field",
            ))

        if condition.effective_operator in (Operator.IN, Operator.NOT_IN) and not is_sequence(
            condition.value
        ):
            outcome = "false" if condition.effective_operator == Operator.IN else "true"
            violations.append(LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.OPERATOR_ERROR,
                severity=Severity.WARNING,
                message=(
                    f"Operator '{condition.effective_operator.value}' needs a list value; "
                    f"the condition is always {outcome}"
                ),
                field=condition.field,
            ))
        return violations

    def _check_source(self, source: Any, slot: str, component_id: str) -> List[LintViolation]:
        if source is None or is_json_logic(source):
            return []

        if not isinstance(source, str):
            return [LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.SYNTAX_ERROR,
                severity=Severity.CRITICAL,
                message="Rule body must be expression text or a JSON Logic object",
                source=_short(source),
            )]

        if not source.strip():
            return [LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.SYNTAX_ERROR,
                severity=Severity.WARNING,
                message="Empty expression; the rule always yields its default",
            )]

        try:
            self.sandbox.compile(source)
        except ExpressionSyntaxError as e:
            return [LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.SYNTAX_ERROR,
                severity=Severity.CRITICAL,
                message=str(e),
                source=_short(source),
            )]
        return []

    def _check_function(
        self, fn_source: Optional[str], slot: str, component_id: str
    ) -> List[LintViolation]:
        if not fn_source or not fn_source.strip():
            return [LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.UNKNOWN_FUNCTION,
                severity=Severity.WARNING,
                message="Function rule without fnSource; the rule always yields its default",
            )]

        if fn_source in self.sandbox.registry:
            return []

        try:
            self.sandbox.compile(fn_source)
        except ExpressionSyntaxError as e:
            return [LintViolation(
                component_id=component_id,
                slot=slot,
                type=ViolationType.UNKNOWN_FUNCTION,
                severity=Severity.CRITICAL,
                message=f"Not a registered function and not a valid expression: {e}",
                source=_short(fn_source),
            )]
        return []

    def _check_vocabulary(
        self, deps: ComponentDependencies, known_fields: Set[str], component_id: str
    ) -> List[LintViolation]:
        known_roots = {str(parse_path(f)[0]) for f in known_fields if parse_path(f)}
        violations = []

        for slot, bag in _single_slot_bags(deps):
            for path in sorted(self.extractor.extract(bag)):
                if path == WILDCARD or path in known_fields:
                    continue
                segments = parse_path(path)
                if not segments or str(segments[0]) in known_roots:
                    continue
                violations.append(LintViolation(
                    component_id=component_id,
                    slot=slot,
                    type=ViolationType.VOCAB_ERROR,
                    severity=Severity.WARNING,
                    message=f"Field '{path}' is not bound by any component",
                    field=path,
                ))
        return violations


def _single_slot_bags(deps: ComponentDependencies) -> List[Tuple[str, ComponentDependencies]]:
    """Split a rule bag into one bag per slot so vocabulary findings name their slot."""
    bags = [(slot, ComponentDependencies(**{slot: rule})) for slot, rule in deps.conditions()]
    bags += [(slot, ComponentDependencies(**{slot: prop})) for slot, prop in deps.computed()]
    if deps.filter_by is not None:
        bags.append(("filterBy", ComponentDependencies(filter_by=deps.filter_by)))
    if deps.reset_on:
        bags.append(("resetOn", ComponentDependencies(reset_on=deps.reset_on)))
    return bags


def _build_report(violations: List[LintViolation], total_components: int) -> LintReport:
    summary = {
        "total_components": total_components,
        "violations": len(violations),
        "clean_components": total_components - len({v.component_id for v in violations}),
        "critical_violations": sum(1 for v in violations if v.severity == Severity.CRITICAL),
        "warnings": sum(1 for v in violations if v.severity == Severity.WARNING),
    }
    logger.info(
        f"Lint complete: {summary['violations']} violations found "
        f"({summary['critical_violations']} critical, {summary['warnings']} warnings)"
    )
    return LintReport(summary=summary, violations=violations)


def lint_dependencies(
    dependencies: Union[ComponentDependencies, Mapping[str, Any], None],
    known_fields: Optional[Iterable[str]] = None,
    registry: Optional[FunctionRegistry] = None,
    component_id: str = "component",
) -> LintReport:
    """
    Lint one component's rules.

    Example:
        >>> report = lint_dependencies({"visible": {"type": "expression", "expression": "data.a ==="}})
        >>> report.summary["critical_violations"]
        1
    """
    violations = RuleLinter(registry=registry).lint(dependencies, known_fields, component_id)
    return _build_report(violations, 1)


def lint_form(
    form: FormDocument,
    registry: Optional[FunctionRegistry] = None,
    check_vocabulary: bool = True,
) -> LintReport:
    """
    Lint every component of a form.

    Args:
        form: Loaded form document
        registry: Function registry consulted for fnSource names
        check_vocabulary: Report references to fields no component binds

    Returns:
        LintReport over the components that carry rules
    """
    linter = RuleLinter(registry=registry)
    known_fields = form.bound_fields() if check_vocabulary else None

    violations: List[LintViolation] = []
    rule_fields = list(form.with_dependencies(include_invalid=True))
    for form_field in rule_fields:
        # The raw bag still holds the slots the loader dropped
        dependencies = form_field.raw_dependencies or form_field.dependencies
        violations.extend(linter.lint(dependencies, known_fields, form_field.id))

    return _build_report(violations, len(rule_fields))
