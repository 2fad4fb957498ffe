"""
Filter parameters for cascading (dependent) list queries.

Each filter dependency maps the current value of ``sourceField`` into the
query parameter ``targetParam``. Empty source values omit the parameter
entirely: an absent key means "unconstrained", never "constrain to empty".
"""

import logging
from typing import Any, Dict, Mapping, Optional

from formrules.runtime.sandbox import RuleSandbox
from formrules.schemas.dependencies import parse_filters
from formrules.utils.paths import get_path, is_empty

logger = logging.getLogger(__name__)


class FilterParameterBuilder:
    """Builds the flat parameter map a remote list query needs."""

    def __init__(self, sandbox: Optional[RuleSandbox] = None):
        self.sandbox = sandbox or RuleSandbox()

    def build_params(self, filter_by: Any, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Build filter parameters.

        Filters apply in order; when two target the same parameter the later
        one wins. A failing transform keeps the untransformed source value.

        Args:
            filter_by: One filter dependency or a list of them (models or mappings)
            data: Current form data

        Returns:
            Mapping of targetParam -> value
        """
        params: Dict[str, Any] = {}
        data = data or {}

        for position, filter_dep in enumerate(parse_filters(filter_by)):
            source_value = get_path(data, filter_dep.source_field)
            if is_empty(source_value):
                logger.debug(
                    f"Filter '{filter_dep.target_param}' omitted: '{filter_dep.source_field}' is empty"
                )
                continue

            final_value = source_value
            if filter_dep.transform is not None:
                final_value = self.sandbox.run_expression(
                    filter_dep.transform,
                    {"value": source_value, "data": data},
                    slot=f"filterBy[{position}].transform",
                    fallback=source_value,
                )

            params[filter_dep.target_param] = final_value

        return params
