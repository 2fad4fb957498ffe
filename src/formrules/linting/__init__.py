"""Design-time checks for dependency rule definitions."""

from formrules.linting.rule_linter import (
    LintReport,
    LintViolation,
    RuleLinter,
    Severity,
    ViolationType,
    lint_dependencies,
    lint_form,
)

__all__ = [
    "LintReport",
    "LintViolation",
    "RuleLinter",
    "Severity",
    "ViolationType",
    "lint_dependencies",
    "lint_form",
]
