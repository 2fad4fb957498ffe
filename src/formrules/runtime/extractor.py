"""
Static extraction of the data fields a component's rules depend on.

The host computes this set once per form load and re-evaluates a component
only when a changed key intersects it, so the result must be a conservative
superset: listing an unused field is acceptable, omitting a used one is not.

Sources are analysed by walking their compiled AST (full nested paths plus
their root segment). Text that does not compile falls back to a
``data.<segment>`` pattern scan.
"""

import logging
import re
from typing import Any, Mapping, Optional, Set, Union

from formrules.expressions.errors import ExpressionSyntaxError
from formrules.expressions.json_logic_adapter import iter_json_logic_vars
from formrules.expressions.references import DATA_ROOTS, WILDCARD, collect_references
from formrules.runtime.sandbox import RuleSandbox
from formrules.runtime.templates import iter_placeholder_paths
from formrules.schemas.dependencies import (
    ComponentDependencies,
    ExpressionCondition,
    ExpressionProperty,
    FieldValueCondition,
    FunctionCondition,
    FunctionProperty,
    TemplateProperty,
    parse_dependencies,
)
from formrules.utils.paths import path_roots

logger = logging.getLogger(__name__)

_SCAN_RE = re.compile(r"(?<![\w$])(?:data|rootData)((?:\.[A-Za-z_$][\w$]*)+)")


class DependentFieldExtractor:
    """Collects the field keys a component's behavior depends on."""

    def __init__(self, sandbox: Optional[RuleSandbox] = None):
        self.sandbox = sandbox or RuleSandbox()

    def extract(
        self,
        dependencies: Union[ComponentDependencies, Mapping[str, Any], None],
    ) -> Set[str]:
        """
        Extract dependent fields.

        Union of: ``field`` of every fieldValue condition; data paths read by
        every expression, function body and template; every ``resetOn`` entry;
        every filter ``sourceField`` (and paths read by its transform).

        Malformed slots are skipped; the remaining slots are still read.

        Args:
            dependencies: Rule bag (model or raw mapping)

        Returns:
            Set of field paths; may contain WILDCARD ("*") for rules that read
            the whole data map
        """
        deps = parse_dependencies(dependencies)
        if deps is None:
            return set()

        found: Set[str] = set()

        for _, condition in deps.conditions():
            if isinstance(condition, FieldValueCondition):
                if condition.field:
                    found |= path_roots(condition.field)
            elif isinstance(condition, ExpressionCondition):
                self._from_source(condition.expression, found)
            elif isinstance(condition, FunctionCondition):
                self._from_function(condition.fn_source, found)

        for _, prop in deps.computed():
            if isinstance(prop, TemplateProperty):
                for path in iter_placeholder_paths(prop.template or ""):
                    found |= path_roots(path)
            elif isinstance(prop, ExpressionProperty):
                self._from_source(prop.expression, found)
            elif isinstance(prop, FunctionProperty):
                self._from_function(prop.fn_source, found)

        for field in deps.reset_on or []:
            if field:
                found.add(field)

        for filter_dep in deps.filters():
            found |= path_roots(filter_dep.source_field)
            self._from_source(filter_dep.transform, found)

        return found

    def _from_function(self, fn_source: Optional[str], found: Set[str]) -> None:
        if not fn_source:
            return
        entry = self.sandbox.registry.get(fn_source)
        if entry is None:
            self._from_source(fn_source, found)
            return
        for path in entry.depends_on:
            found |= path_roots(path)

    def _from_source(self, source: Any, found: Set[str]) -> None:
        if source is None:
            return

        if isinstance(source, Mapping):
            for name in iter_json_logic_vars(source):
                self._from_var_name(name, found)
            return

        if not isinstance(source, str) or not source.strip():
            return

        try:
            node = self.sandbox.compile(source)
        except ExpressionSyntaxError:
            logger.debug(f"Falling back to pattern scan for uncompilable source: {source!r}")
            found |= scan_source(source)
            return
        found |= collect_references(node, DATA_ROOTS)

    @staticmethod
    def _from_var_name(name: str, found: Set[str]) -> None:
        if not name:
            found.add(WILDCARD)
            return
        root, _, rest = name.partition(".")
        if root not in DATA_ROOTS:
            return
        if not rest:
            found.add(WILDCARD)
            return
        found |= path_roots(rest)


def scan_source(source: str) -> Set[str]:
    """Pattern-scan source text for ``data.<path>`` / ``rootData.<path>`` references."""
    found: Set[str] = set()
    for match in _SCAN_RE.finditer(source):
        found |= path_roots(match.group(1).lstrip("."))
    return found


def extract_dependent_fields(
    dependencies: Union[ComponentDependencies, Mapping[str, Any], None],
    sandbox: Optional[RuleSandbox] = None,
) -> Set[str]:
    return DependentFieldExtractor(sandbox).extract(dependencies)
