"""Test run orchestration."""

import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

from markerrunner.config import RunnerConfig
from markerrunner.core.discovery import ambient_directories, discovery_roots, expand_path_list
from markerrunner.core.engine import Engine, PytestEngine
from markerrunner.core.loader import loading_context
from markerrunner.core.models import DiscoveryRequest, ExitStatus
from markerrunner.core.translator import ResultTranslator

log = structlog.get_logger("markerrunner.core.runner")


def classify(test_count: int, failures: int) -> ExitStatus:
    """Derive the exit status of a finished run from its counters."""
    if test_count == 0:
        return ExitStatus.NO_TESTS
    if failures > 0:
        return ExitStatus.FAILURE
    return ExitStatus.SUCCESS


class TestRunner:
    """Runs every test found on an import-path list.

    Example path list: ``./wheels/*:./src:./tests``. The runner produces no
    output of its own; the protocol is written by the translator it
    registers with the engine.
    """

    __test__ = False

    def __init__(
        self,
        path_list: str,
        config: Optional[RunnerConfig] = None,
        engine: Optional[Engine] = None,
        stream: Optional[TextIO] = None,
    ):
        """Initialize the test runner.

        Args:
            path_list: ``os.pathsep`` joined entries, wildcard entries allowed
            config: Runner configuration (default: built-in defaults)
            engine: Engine to drive (default: pytest)
            stream: Where the protocol is written (default: stdout)
        """
        self.config = config or RunnerConfig()
        self.engine = engine or PytestEngine(self.config.engine)
        self.stream = stream
        self.entries = expand_path_list(path_list, self.config.paths)

    def execute(self) -> ExitStatus:
        """Run the tests inside a loading context scoped to this call."""
        with loading_context(self.entries):
            return self._execute_tests()

    def _execute_tests(self) -> ExitStatus:
        translator = ResultTranslator(
            stream=self.stream if self.stream is not None else sys.stdout,
            line_feed_token=self.config.protocol.line_feed_token,
        )
        request = DiscoveryRequest(roots=self.roots())
        self.engine.execute(request, [translator])

        status = classify(translator.test_count(), translator.failures())
        log.debug(
            "Run finished",
            tests=translator.test_count(),
            failures=translator.failures(),
            status=status.name,
        )
        return status

    def roots(self) -> list[Path]:
        """Directories the engine searches: ambient ones first, then ours."""
        ambient = ambient_directories(self.config.paths.ambient_env)
        return discovery_roots(self.entries, ambient)
