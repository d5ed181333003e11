"""Translation of engine lifecycle events into protocol markers."""

import sys
import threading
import time
from typing import Callable, Mapping, Optional, TextIO

from markerrunner.core import protocol
from markerrunner.core.listener import TestExecutionListener
from markerrunner.core.models import (
    ExecutionOutcome,
    ExecutionStatus,
    FailureCause,
    TestNode,
)
from markerrunner.core.protocol import MarkerWriter


class UnsupportedStatusError(RuntimeError):
    """Raised when the engine reports a status the translator does not know."""

    pass


class _Counter:
    """Thread-safe monotonically increasing counter."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> int:
        return self._value


class ResultTranslator(TestExecutionListener):
    """Listener that writes the marker protocol and counts results.

    The translator owns all per-node timing and report state for one run.
    ``failures()`` and ``test_count()`` are meaningful once the engine has
    signalled that the run finished.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        clock: Callable[[], int] = time.monotonic_ns,
        line_feed_token: str = protocol.LINE_FEED_TOKEN,
    ):
        """Initialize the translator.

        Args:
            stream: Where protocol lines are written (default: stdout)
            clock: Returns the current time in nanoseconds
            line_feed_token: Replacement for line separators inside payloads
        """
        self.writer = MarkerWriter(stream if stream is not None else sys.stdout, line_feed_token)
        self.clock = clock

        self._failures = _Counter()
        self._test_count = _Counter()
        self._lock = threading.Lock()
        self._start_times: dict[TestNode, int] = {}
        self._end_times: dict[TestNode, int] = {}
        self._report_entries: dict[TestNode, set[str]] = {}

    def failures(self) -> int:
        return self._failures.value

    def test_count(self) -> int:
        return self._test_count.value

    def execution_started(self, node: TestNode) -> None:
        if node.is_root:
            return
        self._mark_started(node)
        if node.is_container:
            self.writer.write(protocol.DESCRIBE, node.display_name)
        elif node.is_leaf:
            self._test_count.increment()
            self.writer.write(protocol.IT, node.display_name)

    def execution_skipped(self, node: TestNode, reason: str) -> None:
        marker = protocol.DESCRIBE if node.is_container else protocol.IT
        self.writer.write(marker, f"[SKIPPED] {node.display_name}")
        if reason:
            self.writer.write(protocol.LOG, reason, label="Skipped Reason")
        self.writer.write(protocol.COMPLETEDIN)

    def execution_finished(self, node: TestNode, outcome: ExecutionOutcome) -> None:
        if node.is_root:
            return
        self._mark_finished(node)
        self._output_report_entries(node)

        status = outcome.status
        if status == ExecutionStatus.SUCCESSFUL:
            if node.is_leaf:
                self.writer.write(protocol.PASSED, "Test Passed")
        elif status == ExecutionStatus.ABORTED:
            # Assumption not met; only tests count as failures
            if node.is_leaf:
                self._failures.increment()
                self._output_failure("Aborted", outcome.cause)
        elif status == ExecutionStatus.FAILED:
            self._failures.increment()
            if node.is_leaf:
                self._output_failure("Failed", outcome.cause)
            else:
                self._output_error(outcome.cause)
        else:
            raise UnsupportedStatusError(f"Unsupported execution status: {status}")

        self.writer.write(protocol.COMPLETEDIN, str(self.duration_ms(node)))

    def reporting_entry_published(self, node: TestNode, entry: Mapping[str, str]) -> None:
        text = "\n".join(f"{key} = {value}" for key, value in entry.items())
        with self._lock:
            self._report_entries.setdefault(node, set()).add(text)

    def duration_ms(self, node: TestNode) -> int:
        """Elapsed whole milliseconds between start and end of ``node``.

        Missing timestamps collapse to a zero-length interval.
        """
        start = self._start_times.get(node)
        if start is None:
            return 0
        end = self._end_times.get(node, start)
        return max(end - start, 0) // 1_000_000

    def _mark_started(self, node: TestNode) -> None:
        self._start_times[node] = self.clock()

    def _mark_finished(self, node: TestNode) -> None:
        self._end_times[node] = self.clock()

    def _output_failure(self, kind: str, cause: Optional[FailureCause]) -> None:
        if cause is None:
            self.writer.write(protocol.FAILED, f"{kind} for unknown cause")
            return
        self.writer.write(protocol.FAILED, cause.message or f"Test {kind}")
        self.writer.write(protocol.LOG, cause.stack_trace, mode=protocol.ESC, label="-Stack Trace")

    def _output_error(self, cause: Optional[FailureCause]) -> None:
        if cause is None:
            self.writer.write(protocol.ERROR, "Unexpected error occurred")
            return
        if cause.message:
            self.writer.write(protocol.ERROR, cause.message)
            self.writer.write(protocol.LOG, cause.stack_trace, mode=protocol.ESC, label="Stack Trace")
        else:
            self.writer.write(protocol.ERROR, "Test Crashed")
            self.writer.write(protocol.LOG, cause.stack_trace, mode=protocol.ESC, label="-Stack Trace")

    def _output_report_entries(self, node: TestNode) -> None:
        with self._lock:
            entries = self._report_entries.pop(node, None)
        if not entries:
            return
        self.writer.write(protocol.LOG, "\n\n".join(sorted(entries)), label="-Reports")
