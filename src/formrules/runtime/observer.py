"""
Failure observer interface for contained rule failures.

Follows the Dependency Inversion Principle:
- The evaluators depend on this abstraction (FailureObserver)
- Hosts decide where failures go (log, UI panel, metrics, test assertions)
- The engine itself keeps no process-wide reporting channel
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from formrules.expressions.errors import FailureKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleFailure:
    """One contained failure of a rule body."""

    slot: str  # e.g. "disabled", "label", "filterBy[0].transform"
    kind: FailureKind
    message: str
    source: Optional[str] = None
    component_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


class FailureObserver(ABC):
    """Receives every rule failure the engine contains."""

    @abstractmethod
    def on_rule_failure(self, failure: RuleFailure) -> None:
        """
        Called once per contained failure.

        Implementations must not raise; a failing observer would defeat the
        containment guarantee of the evaluators.

        Args:
            failure: Description of the failed rule
        """
        pass


class LoggingFailureObserver(FailureObserver):
    """Reports failures through the standard logging module."""

    def __init__(self, level: int = logging.WARNING, log: Optional[logging.Logger] = None):
        self.level = level
        self.log = log or logger

    def on_rule_failure(self, failure: RuleFailure) -> None:
        where = f"{failure.component_id}.{failure.slot}" if failure.component_id else failure.slot
        self.log.log(
            self.level,
            f"Rule '{where}' failed ({failure.kind.value}): {failure.message}",
        )


class CollectingFailureObserver(FailureObserver):
    """Keeps failures in memory, optionally forwarding them to another observer."""

    def __init__(self, forward_to: Optional[FailureObserver] = None):
        self.failures: List[RuleFailure] = []
        self.forward_to = forward_to

    def on_rule_failure(self, failure: RuleFailure) -> None:
        self.failures.append(failure)
        if self.forward_to is not None:
            self.forward_to.on_rule_failure(failure)

    def clear(self) -> None:
        self.failures.clear()

    def __len__(self) -> int:
        return len(self.failures)


class ComponentScopedObserver(FailureObserver):
    """Tags failures with a component id before forwarding them."""

    def __init__(self, inner: FailureObserver, component_id: Optional[str]):
        self.inner = inner
        self.component_id = component_id

    def on_rule_failure(self, failure: RuleFailure) -> None:
        if self.component_id and failure.component_id is None:
            failure = RuleFailure(
                slot=failure.slot,
                kind=failure.kind,
                message=failure.message,
                source=failure.source,
                component_id=self.component_id,
            )
        self.inner.on_rule_failure(failure)
