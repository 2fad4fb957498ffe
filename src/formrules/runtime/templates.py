"""
Placeholder substitution for template-based computed properties.

Template format: "{data.fieldName}" or "{data.field.nestedField}"; the
``data.`` prefix is optional. Missing values render as an empty string, and
anything that is not a well-formed placeholder passes through verbatim.
"""

import re
from typing import Any, Iterator, Mapping, Union

from formrules.schemas.dependencies import EvaluationContext, parse_context
from formrules.utils.paths import get_path
from formrules.utils.values import stringify

PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
_DATA_PREFIX_RE = re.compile(r"^data\.")


def placeholder_path(raw: str) -> str:
    """Normalize a placeholder body into a data path ("data.a.b" -> "a.b")."""
    return _DATA_PREFIX_RE.sub("", raw.strip(), count=1)


def iter_placeholder_paths(template: str) -> Iterator[str]:
    """Yield the data path of every placeholder in a template."""
    for match in PLACEHOLDER_RE.finditer(template or ""):
        path = placeholder_path(match.group(1))
        if path:
            yield path


class TemplateEngine:
    """Renders ``{data.path}`` templates against a data snapshot."""

    def render(
        self,
        template: str,
        context: Union[EvaluationContext, Mapping[str, Any], None],
    ) -> str:
        """
        Substitute every placeholder with the string form of its value.

        Args:
            template: Template text
            context: Evaluation context (only ``data`` is consulted)

        Returns:
            Rendered text
        """
        if not template:
            return ""

        data = parse_context(context).data

        def substitute(match: "re.Match[str]") -> str:
            path = placeholder_path(match.group(1))
            if not path:
                return match.group(0)
            return stringify(get_path(data, path))

        return PLACEHOLDER_RE.sub(substitute, template)


def render_template(template: str, context: Union[EvaluationContext, Mapping[str, Any], None]) -> str:
    return TemplateEngine().render(template, context)
