import io
import re

import pytest

from markerrunner.core.models import NodeKind, TestNode
from markerrunner.core.translator import ResultTranslator
from markerrunner.telemetry import setup_logging

pytest_plugins = ["pytester"]

MARKER_LINE = re.compile(r"^<([A-Z]+):([^:>]*):([^>]*)>(.*)$")

ROOT = TestNode(unique_id="[engine:fake]", display_name="fake", kind=NodeKind.CONTAINER)


class FakeClock:
    """Manually advanced nanosecond clock."""

    def __init__(self, start: int = 1_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance_ms(self, ms: int) -> None:
        self.now += ms * 1_000_000


def container(name: str, parent: TestNode = ROOT) -> TestNode:
    return TestNode(
        unique_id=f"{parent.unique_id}/{name}",
        display_name=name,
        kind=NodeKind.CONTAINER,
        parent_id=parent.unique_id,
    )


def leaf(name: str, parent: TestNode = ROOT) -> TestNode:
    return TestNode(
        unique_id=f"{parent.unique_id}/{name}",
        display_name=name,
        kind=NodeKind.LEAF,
        parent_id=parent.unique_id,
    )


def parse_markers(output: str) -> list[tuple[str, str, str, str]]:
    """Split protocol output into (marker, mode, label, payload) tuples."""
    markers = []
    for line in output.split("\n"):
        if not line:
            continue
        match = MARKER_LINE.match(line)
        assert match, f"Not a marker line: {line!r}"
        markers.append(match.groups())
    return markers


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def translator(stream, clock) -> ResultTranslator:
    return ResultTranslator(stream=stream, clock=clock)


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    # structlog's unconfigured default prints every level to stdout
    setup_logging(verbose=False)
