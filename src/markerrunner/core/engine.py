"""pytest as the test execution engine.

pytest reports per-phase results for items and has no notion of a suite
starting or finishing, so ``PytestEventBridge`` rebuilds the container
lifecycle from each item's collector chain and folds the setup, call and
teardown reports of an item into a single outcome.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import pytest
import structlog
from _pytest.skipping import evaluate_skip_marks

from markerrunner.config import EngineConfig
from markerrunner.core.listener import TestExecutionListener
from markerrunner.core.models import (
    DiscoveryRequest,
    ExecutionOutcome,
    FailureCause,
    NodeKind,
    TestNode,
    TestPlan,
)

log = structlog.get_logger("markerrunner.core.engine")

ROOT_ID = "[engine:pytest]"
ROOT_NODE = TestNode(unique_id=ROOT_ID, display_name="pytest", kind=NodeKind.CONTAINER)

_SKIP_PREFIX = "Skipped: "


class Engine(ABC):
    """Abstract base class for test engines."""

    @abstractmethod
    def execute(self, request: DiscoveryRequest, listeners: Sequence[TestExecutionListener]) -> None:
        """Discover and run tests, notifying ``listeners`` of every lifecycle event.

        Returns once the run has finished and ``test_plan_execution_finished``
        has been delivered.
        """
        pass


def _is_container(node: Any) -> bool:
    return isinstance(node, (pytest.Module, pytest.Class))


def _parent_id(collector: Any) -> str:
    for ancestor in reversed(collector.listchain()[:-1]):
        if _is_container(ancestor):
            return ancestor.nodeid
    return ROOT_ID


def _container_node(collector: Any) -> TestNode:
    return TestNode(
        unique_id=collector.nodeid,
        display_name=collector.name,
        kind=NodeKind.CONTAINER,
        parent_id=_parent_id(collector),
    )


def _leaf_node(item: pytest.Item) -> TestNode:
    return TestNode(
        unique_id=item.nodeid,
        display_name=item.name,
        kind=NodeKind.LEAF,
        parent_id=_parent_id(item),
    )


def _container_chain(item: Optional[pytest.Item]) -> list[TestNode]:
    if item is None:
        return []
    return [_container_node(node) for node in item.listchain() if _is_container(node)]


def _longrepr_text(report: Any) -> str:
    longrepr = report.longrepr
    if isinstance(longrepr, tuple) and len(longrepr) == 3:
        path, lineno, message = longrepr
        return f"{path}:{lineno}: {message}"
    return report.longreprtext


def _skip_reason(report: Any) -> str:
    if hasattr(report, "wasxfail"):
        return report.wasxfail
    longrepr = report.longrepr
    if isinstance(longrepr, tuple) and len(longrepr) == 3:
        message = str(longrepr[2])
    else:
        message = str(longrepr or "")
    if message.startswith(_SKIP_PREFIX):
        message = message[len(_SKIP_PREFIX):]
    return message


def _crash_message(report: Any) -> Optional[str]:
    """Best single-line description of a collection failure."""
    crash = getattr(report.longrepr, "reprcrash", None)
    if crash is not None and crash.message:
        return crash.message
    lines = [line for line in report.longreprtext.splitlines() if line.strip()]
    for line in reversed(lines):
        if line.startswith("E "):
            return line[1:].strip()
    return lines[0] if lines else None


def _is_declared_skip(item: pytest.Item, report: Any) -> bool:
    """A skip decided by the item's marks (skip, skipif, xfail run=False).

    A skipif mark whose condition is false does not make a skip raised by a
    fixture a declared one, so the marks are evaluated the way pytest does.
    """
    if not report.skipped:
        return False
    if hasattr(report, "wasxfail"):
        return True
    return evaluate_skip_marks(item) is not None


@dataclass
class _LeafState:
    """What is known about an item while its phases are reported."""

    item: pytest.Item
    node: TestNode
    messages: dict[str, str] = field(default_factory=dict)
    outcome: Optional[ExecutionOutcome] = None
    skipped: bool = False


class PytestEventBridge:
    """pytest plugin forwarding the run's lifecycle to listeners."""

    def __init__(self, listeners: Sequence[TestExecutionListener], plan: TestPlan):
        self.listeners = list(listeners)
        self.plan = plan
        self._open: list[TestNode] = []
        self._leaves: dict[str, _LeafState] = {}

    def _notify(self, hook: str, *args: Any) -> None:
        for listener in self.listeners:
            getattr(listener, hook)(*args)

    def start_plan(self) -> None:
        self._notify("test_plan_execution_started", self.plan)
        self._notify("execution_started", self.plan.root)

    def finish_plan(self) -> None:
        self._sync_open([])
        self._notify("execution_finished", self.plan.root, ExecutionOutcome.successful())
        self._notify("test_plan_execution_finished", self.plan)

    def _sync_open(self, chain: list[TestNode]) -> int:
        """Finish open containers that are not part of ``chain``, innermost first."""
        keep = 0
        while keep < min(len(self._open), len(chain)) and self._open[keep] == chain[keep]:
            keep += 1
        while len(self._open) > keep:
            self._notify("execution_finished", self._open.pop(), ExecutionOutcome.successful())
        return keep

    def _enter(self, chain: list[TestNode]) -> None:
        keep = self._sync_open(chain)
        for node in chain[keep:]:
            self._open.append(node)
            self._notify("execution_started", node)

    def _cause(self, state: _LeafState, report: Any) -> FailureCause:
        return FailureCause(
            message=state.messages.get(report.when) or None,
            stack_trace=_longrepr_text(report) or None,
        )

    def _phase_outcome(self, state: _LeafState, report: Any) -> Optional[ExecutionOutcome]:
        if report.failed:
            return ExecutionOutcome.failed(self._cause(state, report))
        if report.skipped:
            if hasattr(report, "wasxfail"):
                # failed as expected
                return None
            return ExecutionOutcome.aborted(self._cause(state, report))
        return None

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.start_plan()

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        self.finish_plan()

    @pytest.hookimpl(wrapper=True)
    def pytest_make_collect_report(self, collector: pytest.Collector):
        report = yield
        if isinstance(collector, pytest.Session):
            return report
        if report.failed:
            node = _container_node(collector)
            cause = FailureCause(message=_crash_message(report), stack_trace=report.longreprtext or None)
            self._notify("execution_started", node)
            self._notify("execution_finished", node, ExecutionOutcome.failed(cause))
        elif report.skipped:
            self._notify("execution_skipped", _container_node(collector), _skip_reason(report))
        return report

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: Optional[pytest.Item]):
        self._enter(_container_chain(item))
        self._leaves[item.nodeid] = _LeafState(item=item, node=_leaf_node(item))
        try:
            return (yield)
        finally:
            self._leaves.pop(item.nodeid, None)
            self._sync_open(_container_chain(nextitem))

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo):
        report = yield
        state = self._leaves.get(item.nodeid)
        if state is not None and call.excinfo is not None:
            state.messages[call.when] = str(call.excinfo.value)
        return report

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        state = self._leaves.get(report.nodeid)
        if state is None or state.skipped:
            return

        if report.when == "setup":
            if _is_declared_skip(state.item, report):
                state.skipped = True
                self._notify("execution_skipped", state.node, _skip_reason(report))
                return
            self._notify("execution_started", state.node)

        if state.outcome is None:
            state.outcome = self._phase_outcome(state, report)

        if report.when == "teardown":
            for key, value in report.user_properties:
                self._notify("reporting_entry_published", state.node, {str(key): str(value)})
            self._notify("execution_finished", state.node, state.outcome or ExecutionOutcome.successful())


class PytestEngine(Engine):
    """Runs pytest in-process over the discovery roots."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def build_args(self, request: DiscoveryRequest) -> list[str]:
        """Build the pytest command line for ``request``."""
        args = [str(root) for root in request.roots]
        # pytest's own reporter would write into the protocol stream
        args.extend(["-p", "no:terminal", "-p", "no:cacheprovider"])
        args.append(f"--capture={self.config.capture}")
        if self.config.continue_on_collection_errors:
            args.append("--continue-on-collection-errors")
        args.extend(self.config.extra_args)
        return args

    def execute(self, request: DiscoveryRequest, listeners: Sequence[TestExecutionListener]) -> None:
        bridge = PytestEventBridge(listeners, TestPlan(root=ROOT_NODE, roots=list(request.roots)))
        if not request.roots:
            log.debug("No discovery roots, nothing to run")
            bridge.start_plan()
            bridge.finish_plan()
            return

        args = self.build_args(request)
        log.debug("Invoking pytest", args=args)
        exit_code = pytest.main(args, plugins=[bridge])
        log.debug("pytest finished", exit_code=int(exit_code))
        if exit_code in (pytest.ExitCode.INTERNAL_ERROR, pytest.ExitCode.USAGE_ERROR):
            log.warning("pytest did not complete normally", exit_code=int(exit_code))
