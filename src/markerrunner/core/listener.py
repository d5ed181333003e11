"""Base listener interface for engine lifecycle notifications."""

from abc import ABC
from typing import Mapping

from markerrunner.core.models import ExecutionOutcome, TestNode, TestPlan


class TestExecutionListener(ABC):
    """Receives lifecycle notifications from a test engine.

    Every hook is a no-op by default so listeners only override what they
    need. Hooks may be called from several worker threads at once and must
    return promptly.
    """

    __test__ = False

    def test_plan_execution_started(self, plan: TestPlan) -> None:
        pass

    def test_plan_execution_finished(self, plan: TestPlan) -> None:
        pass

    def dynamic_test_registered(self, node: TestNode) -> None:
        pass

    def execution_started(self, node: TestNode) -> None:
        pass

    def execution_skipped(self, node: TestNode, reason: str) -> None:
        pass

    def execution_finished(self, node: TestNode, outcome: ExecutionOutcome) -> None:
        pass

    def reporting_entry_published(self, node: TestNode, entry: Mapping[str, str]) -> None:
        """Called when test code publishes ad-hoc key/value diagnostics.

        Args:
            node: The node that published the entry
            entry: Key/value pairs of a single published entry
        """
        pass
