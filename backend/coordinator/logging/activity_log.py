"""
Workflow Activity Log: a bounded, per-workflow activity feed.

The canvas shows a running feed of what happened to a workflow
(nodes created, executions started, agents answering, failures).
Each entry is also mirrored to the standard module logger so the
same events land in the process log.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from logging import getLogger
from typing import Deque, Dict, List, Optional

from pydantic import BaseModel, Field

logger = getLogger(__name__)

DEFAULT_MAX_ENTRIES = 200


class ActivityType(str, Enum):
    """Kind of activity shown in the feed."""
    CREATION = "creation"          # Workflow / node / connection created
    COORDINATION = "coordination"  # Execution lifecycle
    TASK = "task"                  # Per-node agent results
    ERROR = "error"


class ActivityEntry(BaseModel):
    """A single line in the activity feed."""

    type: ActivityType
    message: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class WorkflowActivityLog:
    """Activity feed for one workflow.

    Oldest entries are dropped once ``max_entries`` is reached.
    """

    def __init__(self, workflow_id: str, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._workflow_id = workflow_id
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)

    @property
    def workflow_id(self) -> str:
        return self._workflow_id

    def add(self, activity_type: ActivityType, message: str) -> ActivityEntry:
        entry = ActivityEntry(type=activity_type, message=message)
        self._entries.append(entry)

        line = f"[{self._workflow_id}] {activity_type.value}: {message}"
        if activity_type is ActivityType.ERROR:
            logger.error(line)
        else:
            logger.info(line)
        return entry

    def creation(self, message: str) -> ActivityEntry:
        return self.add(ActivityType.CREATION, message)

    def coordination(self, message: str) -> ActivityEntry:
        return self.add(ActivityType.COORDINATION, message)

    def task(self, message: str) -> ActivityEntry:
        return self.add(ActivityType.TASK, message)

    def error(self, message: str) -> ActivityEntry:
        return self.add(ActivityType.ERROR, message)

    def entries(self, activity_type: Optional[ActivityType] = None) -> List[ActivityEntry]:
        """Return entries oldest-first, optionally filtered by type."""
        if activity_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.type is activity_type]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# ── Registry ──

_logs: Dict[str, WorkflowActivityLog] = {}


def get_activity_log(workflow_id: str) -> WorkflowActivityLog:
    """Return the shared activity log for a workflow, creating it on first use."""
    log = _logs.get(workflow_id)
    if log is None:
        log = WorkflowActivityLog(workflow_id)
        _logs[workflow_id] = log
    return log


def reset_activity_logs() -> None:
    """Drop every registered activity log."""
    _logs.clear()
