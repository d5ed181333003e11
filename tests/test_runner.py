"""Tests for the execution driver."""

import io
import os
import sys
from unittest.mock import MagicMock

import pytest

from conftest import ROOT, container, leaf, parse_markers
from markerrunner.config import PathConfig, RunnerConfig
from markerrunner.core.engine import Engine
from markerrunner.core.loader import InvalidPathEntryError
from markerrunner.core.models import ExecutionOutcome, ExitStatus, FailureCause, TestPlan
from markerrunner.core.runner import TestRunner, classify


class ScriptedEngine(Engine):
    """Engine replaying a fixed list of (hook, *args) events."""

    def __init__(self, events=()):
        self.events = list(events)
        self.requests = []
        self.sys_path_during_run = None

    def execute(self, request, listeners):
        self.requests.append(request)
        self.sys_path_during_run = list(sys.path)
        plan = TestPlan(root=ROOT, roots=list(request.roots))
        for listener in listeners:
            listener.test_plan_execution_started(plan)
        for hook, *args in self.events:
            for listener in listeners:
                getattr(listener, hook)(*args)
        for listener in listeners:
            listener.test_plan_execution_finished(plan)


class CrashingEngine(Engine):
    def execute(self, request, listeners):
        raise RuntimeError("engine exploded")


def _config(**paths) -> RunnerConfig:
    return RunnerConfig(paths=PathConfig(ambient_env=None, **paths))


class TestClassify:
    """Tests for classify()."""

    def test_no_tests(self):
        """Test zero tests wins over failures."""
        assert classify(0, 0) == ExitStatus.NO_TESTS
        assert classify(0, 3) == ExitStatus.NO_TESTS

    def test_failures(self):
        """Test any failure fails the run."""
        assert classify(5, 1) == ExitStatus.FAILURE

    def test_success(self):
        """Test all passing is success."""
        assert classify(5, 0) == ExitStatus.SUCCESS

    def test_exit_codes(self):
        """Test the process exit codes of each status."""
        assert [int(s) for s in (ExitStatus.SUCCESS, ExitStatus.FAILURE, ExitStatus.NO_TESTS)] == [0, 1, 2]


class TestTestRunner:
    """Tests for TestRunner."""

    def test_passing_suite(self, tmp_path):
        """Test a suite with one passing test exits with success."""
        suite = container("Suite")
        test = leaf("testAdd", suite)
        engine = ScriptedEngine(
            [
                ("execution_started", ROOT),
                ("execution_started", suite),
                ("execution_started", test),
                ("execution_finished", test, ExecutionOutcome.successful()),
                ("execution_finished", suite, ExecutionOutcome.successful()),
                ("execution_finished", ROOT, ExecutionOutcome.successful()),
            ]
        )
        stream = io.StringIO()

        status = TestRunner(str(tmp_path), config=_config(), engine=engine, stream=stream).execute()

        assert status == ExitStatus.SUCCESS
        assert [m[0] for m in parse_markers(stream.getvalue())] == [
            "DESCRIBE",
            "IT",
            "PASSED",
            "COMPLETEDIN",
            "COMPLETEDIN",
        ]

    def test_no_tests(self, tmp_path):
        """Test an empty run exits with the no-tests status and prints nothing."""
        stream = io.StringIO()

        status = TestRunner(str(tmp_path), config=_config(), engine=ScriptedEngine(), stream=stream).execute()

        assert status == ExitStatus.NO_TESTS
        assert stream.getvalue() == ""

    def test_failing_test(self, tmp_path):
        """Test one failing leaf fails the run."""
        test = leaf("testAdd")
        engine = ScriptedEngine(
            [
                ("execution_started", test),
                ("execution_finished", test, ExecutionOutcome.failed(FailureCause("expected 2 got 3", "tb"))),
            ]
        )
        stream = io.StringIO()

        status = TestRunner(str(tmp_path), config=_config(), engine=engine, stream=stream).execute()

        assert status == ExitStatus.FAILURE
        assert ("FAILED", "", "", "expected 2 got 3") in parse_markers(stream.getvalue())

    def test_only_skipped_tests_is_no_tests(self, tmp_path):
        """Test skipped tests do not count as discovered tests."""
        engine = ScriptedEngine([("execution_skipped", leaf("t"), "later")])

        status = TestRunner(str(tmp_path), config=_config(), engine=engine, stream=io.StringIO()).execute()

        assert status == ExitStatus.NO_TESTS

    def test_discovery_roots(self, tmp_path):
        """Test only directory entries become discovery roots."""
        wheels = tmp_path / "wheels"
        wheels.mkdir()
        (wheels / "dep.whl").write_bytes(b"")
        src = tmp_path / "src"
        src.mkdir()
        engine = ScriptedEngine()
        path_list = os.pathsep.join([f"{wheels}{os.sep}*", str(src), str(tmp_path / "missing")])

        TestRunner(path_list, config=_config(), engine=engine, stream=io.StringIO()).execute()

        assert engine.requests[0].roots == [src]

    def test_ambient_directories_come_first(self, tmp_path, monkeypatch):
        """Test directories from the ambient variable are searched too."""
        ambient = tmp_path / "ambient"
        ambient.mkdir()
        src = tmp_path / "src"
        src.mkdir()
        monkeypatch.setenv("MARKERRUNNER_TEST_PATH", str(ambient))
        engine = ScriptedEngine()
        config = RunnerConfig(paths=PathConfig(ambient_env="MARKERRUNNER_TEST_PATH"))

        TestRunner(str(src), config=config, engine=engine, stream=io.StringIO()).execute()

        assert engine.requests[0].roots == [ambient, src]

    def test_entries_importable_only_during_run(self, tmp_path):
        """Test the loading context spans exactly the engine call."""
        archive = tmp_path / "dep.whl"
        archive.write_bytes(b"")
        engine = ScriptedEngine()
        before = list(sys.path)

        TestRunner(str(archive), config=_config(), engine=engine, stream=io.StringIO()).execute()

        assert str(archive.resolve()) in engine.sys_path_during_run
        assert sys.path == before

    def test_loading_context_released_on_engine_failure(self, tmp_path):
        """Test sys.path is restored when the engine raises."""
        before = list(sys.path)

        with pytest.raises(RuntimeError):
            TestRunner(str(tmp_path), config=_config(), engine=CrashingEngine(), stream=io.StringIO()).execute()

        assert sys.path == before

    def test_invalid_entry_stops_before_engine(self, tmp_path, monkeypatch):
        """Test an unusable entry is fatal and the engine never runs."""
        engine = MagicMock(spec=Engine)
        runner = TestRunner(str(tmp_path), config=_config(), engine=engine, stream=io.StringIO())

        def boom(self, strict=False):
            raise OSError("loop")

        monkeypatch.setattr(type(tmp_path), "resolve", boom)

        with pytest.raises(InvalidPathEntryError):
            runner.execute()
        engine.execute.assert_not_called()

    def test_line_feed_token_from_config(self, tmp_path):
        """Test the configured token reaches the translator."""
        test = leaf("t")
        engine = ScriptedEngine(
            [
                ("execution_started", test),
                ("execution_finished", test, ExecutionOutcome.failed(FailureCause("a\nb"))),
            ]
        )
        config = RunnerConfig(paths=PathConfig(ambient_env=None))
        config.protocol.line_feed_token = "\\n"
        stream = io.StringIO()

        TestRunner(str(tmp_path), config=config, engine=engine, stream=stream).execute()

        assert "<FAILED::>a\\nb\n" in stream.getvalue()
