"""Data models for the test plan tree and execution outcomes."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Optional


class NodeKind(str, Enum):
    """Kind of a node in the test plan tree."""

    CONTAINER = "container"
    LEAF = "leaf"


class ExecutionStatus(str, Enum):
    """Terminal status reported by the engine for a node."""

    SUCCESSFUL = "successful"
    ABORTED = "aborted"
    FAILED = "failed"


class ExitStatus(IntEnum):
    """Process exit status derived from a finished run."""

    SUCCESS = 0
    FAILURE = 1
    NO_TESTS = 2


@dataclass(frozen=True)
class TestNode:
    """Stable identity of one position in the test plan tree.

    Nodes are hashable and compare by value, so the engine may hand out fresh
    instances for the same position and they still address the same state.
    """

    __test__ = False

    unique_id: str
    display_name: str
    kind: NodeKind = NodeKind.LEAF
    parent_id: Optional[str] = None

    @property
    def is_root(self) -> bool:
        """Check if this is the synthetic engine root."""
        return self.parent_id is None

    @property
    def is_container(self) -> bool:
        return self.kind == NodeKind.CONTAINER

    @property
    def is_leaf(self) -> bool:
        return self.kind == NodeKind.LEAF


@dataclass(frozen=True)
class FailureCause:
    """Why a node did not succeed. Both parts may be missing independently."""

    message: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass(frozen=True)
class ExecutionOutcome:
    """Terminal outcome of a node."""

    status: ExecutionStatus
    cause: Optional[FailureCause] = None

    @classmethod
    def successful(cls) -> "ExecutionOutcome":
        return cls(ExecutionStatus.SUCCESSFUL)

    @classmethod
    def aborted(cls, cause: Optional[FailureCause] = None) -> "ExecutionOutcome":
        return cls(ExecutionStatus.ABORTED, cause)

    @classmethod
    def failed(cls, cause: Optional[FailureCause] = None) -> "ExecutionOutcome":
        return cls(ExecutionStatus.FAILED, cause)


@dataclass
class DiscoveryRequest:
    """Root directories the engine should discover tests in."""

    roots: list[Path] = field(default_factory=list)


@dataclass
class TestPlan:
    """A single engine run: its synthetic root and where it looked for tests."""

    __test__ = False

    root: TestNode
    roots: list[Path] = field(default_factory=list)
