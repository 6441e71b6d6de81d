"""
Workflow Store: JSON-file persistence for canvas workflows.

The canvas itself is purely in-memory and hands saving/loading to a
``WorkflowRepository``. ``WorkflowStore`` is the file-backed
implementation: one JSON document per workflow under a directory.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import List, Optional, Protocol

from pydantic import ValidationError

from coordinator.workflow.workflow_model import Workflow

logger = getLogger(__name__)


class WorkflowRepository(Protocol):
    def save(self, workflow: Workflow) -> None: ...

    def load(self, workflow_id: str) -> Optional[Workflow]: ...

    def delete(self, workflow_id: str) -> bool: ...

    def list_all(self) -> List[Workflow]: ...


class WorkflowStore:
    """Persist and load Workflow objects as JSON files."""

    def __init__(self, storage_dir: Path) -> None:
        self._dir = Path(storage_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"WorkflowStore initialized at {self._dir}")

    # ── CRUD ──

    def save(self, workflow: Workflow) -> None:
        """Save (create or update) a workflow.

        ``updated_at`` is left alone: it tracks edits, not saves.
        """
        path = self._path_for(workflow.id)
        path.write_text(workflow.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Workflow saved: {workflow.name} ({workflow.id})")

    def load(self, workflow_id: str) -> Optional[Workflow]:
        """Load a single workflow by ID."""
        path = self._path_for(workflow_id)
        if not path.exists():
            return None
        try:
            return Workflow.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, UnicodeDecodeError) as e:
            logger.error(f"Failed to load workflow {workflow_id}: {e}")
            return None

    def delete(self, workflow_id: str) -> bool:
        path = self._path_for(workflow_id)
        if path.exists():
            path.unlink()
            logger.info(f"Workflow deleted: {workflow_id}")
            return True
        return False

    def list_all(self) -> List[Workflow]:
        """List all saved workflows, skipping malformed or undecodable files."""
        workflows: List[Workflow] = []
        for path in sorted(self._dir.glob("*.json")):
            try:
                workflows.append(
                    Workflow.model_validate_json(path.read_text(encoding="utf-8"))
                )
            except (ValidationError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping malformed workflow file {path.name}: {e}")
        return workflows

    def exists(self, workflow_id: str) -> bool:
        return self._path_for(workflow_id).exists()

    # ── Internals ──

    def _path_for(self, workflow_id: str) -> Path:
        # Sanitize ID for filesystem
        safe_id = "".join(c for c in workflow_id if c.isalnum() or c in "-_")
        return self._dir / f"{safe_id}.json"
