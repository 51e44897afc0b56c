"""Background task orchestration and message types."""

from .messages import (
    ClearReport,
    TaskCompleted,
    TaskFailed,
    TaskKind,
    TaskMessage,
    TaskProgress,
    TaskStatus,
    TaskTicket,
    is_terminal,
)
from .service import TaskOrchestrator

__all__ = [
    "TaskOrchestrator",
    "TaskKind",
    "TaskStatus",
    "TaskTicket",
    "TaskMessage",
    "TaskProgress",
    "TaskCompleted",
    "TaskFailed",
    "ClearReport",
    "is_terminal",
]
