"""Messages exchanged between background tasks and the interactive layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class TaskKind(str, Enum):
    """Kinds of background work; at most one of each runs at a time."""

    SCAN = "scan"
    IMPORT = "import"
    SEARCH = "search"
    CLEAR = "clear"


class TaskStatus(str, Enum):
    """Lifecycle of one invocation."""

    REQUESTED = "requested"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TaskTicket:
    """Handle returned when a task is accepted."""

    task_id: int
    kind: TaskKind


@dataclass(frozen=True, slots=True)
class ClearReport:
    """Record counts removed by a cache clear."""

    files_removed: int
    references_removed: int


@dataclass(frozen=True, slots=True)
class TaskProgress:
    """Intermediate progress for a running task.

    Attributes:
        task_id: Ticket identifier.
        kind: Task kind.
        completed: Units processed so far.
        total: Units expected overall (``0`` when unknown).
    """

    task_id: int
    kind: TaskKind
    completed: int
    total: int


@dataclass(frozen=True, slots=True)
class TaskCompleted:
    """Terminal success; ``payload`` is the operation's report or outcome."""

    task_id: int
    kind: TaskKind
    payload: Any


@dataclass(frozen=True, slots=True)
class TaskFailed:
    """Terminal failure.

    Attributes:
        task_id: Ticket identifier.
        kind: Task kind.
        error_type: Exception class name (``StorageError``, ``ScanError``, ...).
        message: Human-readable cause.
    """

    task_id: int
    kind: TaskKind
    error_type: str
    message: str


TaskMessage = Union[TaskProgress, TaskCompleted, TaskFailed]


def is_terminal(message: TaskMessage) -> bool:
    """Return True for completion and failure messages."""
    return isinstance(message, (TaskCompleted, TaskFailed))


__all__ = [
    "TaskKind",
    "TaskStatus",
    "TaskTicket",
    "ClearReport",
    "TaskProgress",
    "TaskCompleted",
    "TaskFailed",
    "TaskMessage",
    "is_terminal",
]
