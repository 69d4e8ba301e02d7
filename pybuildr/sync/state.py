"""Workspace persistence and synced-baseline tracking.

Workspaces and per-user settings are stored as JSON documents, one file
per workspace, under a directory keyed by a hash of the user id. The
synced baseline (the path to blob SHA map from the last publish or clone)
is owned by sync operations: ordinary saves keep the stored baseline, and
replacing it is a compare-and-swap on the workspace's ``sync_revision`` so
two racing publishes cannot silently overwrite each other.
"""

import hashlib
import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..exceptions import RevisionConflictError
from ..models import SyncJournal, TemplateStatus, UserSettings, Workspace
from ..utils import content_digest

logger = logging.getLogger(__name__)


class WorkspaceStore:
    """Stores workspaces and settings as JSON files.

    Layout::

        <state_dir>/<user key>/settings.json
        <state_dir>/<user key>/template.json
        <state_dir>/<user key>/workspaces/<workspace id>.json
    """

    def __init__(self, state_dir: Optional[Path] = None):
        """Initialize workspace store.

        Args:
            state_dir: Directory to store documents in. Defaults to
                ~/.config/pybuildr/state
        """
        if state_dir is None:
            state_dir = Path.home() / ".config" / "pybuildr" / "state"
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _get_user_key(self, user_id: str) -> str:
        """Generate a filesystem-safe key for a user id."""
        return hashlib.sha256(user_id.encode()).hexdigest()[:16]

    def _user_dir(self, user_id: str) -> Path:
        return self.state_dir / self._get_user_key(user_id)

    def _workspace_file(self, user_id: str, workspace_id: str) -> Path:
        if not workspace_id or "/" in workspace_id or workspace_id.startswith("."):
            raise ValueError(f"Invalid workspace id: {workspace_id!r}")
        return self._user_dir(user_id) / "workspaces" / f"{workspace_id}.json"

    def _settings_file(self, user_id: str) -> Path:
        return self._user_dir(user_id) / "settings.json"

    def _template_file(self, user_id: str) -> Path:
        return self._user_dir(user_id) / "template.json"

    def _read(self, path: Path) -> Optional[dict[str, Any]]:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed document {path}")
            return None
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)

    # =========================
    # Workspaces
    # =========================

    def get(self, user_id: str, workspace_id: str) -> Optional[Workspace]:
        """Load a workspace.

        Returns:
            A fresh Workspace object, or None if it does not exist
        """
        data = self._read(self._workspace_file(user_id, workspace_id))
        if data is None:
            return None
        data["id"] = workspace_id
        return Workspace.from_dict(data)

    def list_workspaces(self, user_id: str) -> list[Workspace]:
        """Load all workspaces of a user, ordered by id."""
        directory = self._user_dir(user_id) / "workspaces"
        if not directory.exists():
            return []
        workspaces = []
        for path in sorted(directory.glob("*.json")):
            workspace = self.get(user_id, path.stem)
            if workspace is not None:
                workspaces.append(workspace)
        return workspaces

    def save(
        self, user_id: str, workspace: Workspace, replace: bool = False
    ) -> Workspace:
        """Save a workspace.

        Without ``replace`` the stored synced baseline, revision and journal
        are kept, so edits cannot roll back a baseline written by a publish.
        With ``replace`` the whole document is overwritten and the revision
        advanced (used by clone and force-clone).

        Args:
            user_id: Owner of the workspace
            workspace: Workspace to store
            replace: Overwrite the baseline as well

        Returns:
            The workspace as stored
        """
        path = self._workspace_file(user_id, workspace.id)
        with self._lock:
            existing = self._read(path)
            data = workspace.to_dict()
            now = datetime.now().isoformat()

            if existing is not None:
                data["createdAt"] = existing.get("createdAt") or data["createdAt"]
                if replace:
                    data["syncRevision"] = int(existing.get("syncRevision", 0)) + 1
                    data["journal"] = None
                else:
                    data["syncedFileState"] = existing.get("syncedFileState", {})
                    data["syncRevision"] = existing.get("syncRevision", 0)
                    data["journal"] = existing.get("journal")
            data["createdAt"] = data["createdAt"] or now
            data["savedAt"] = now

            self._write(path, data)
            logger.debug(
                f"Saved workspace {workspace.id} with {len(data['fileContents'])} "
                f"file(s) (revision {data['syncRevision']})"
            )
        return Workspace.from_dict(data)

    def delete(self, user_id: str, workspace_id: str) -> bool:
        """Delete a workspace.

        Returns:
            True if it was deleted, False if it did not exist
        """
        path = self._workspace_file(user_id, workspace_id)
        with self._lock:
            if path.exists():
                path.unlink()
                logger.debug(f"Deleted workspace {workspace_id}")
                return True
        return False

    def replace_synced_state(
        self,
        user_id: str,
        workspace_id: str,
        synced_file_state: dict[str, str],
        expected_revision: int,
    ) -> int:
        """Replace a workspace's synced baseline wholesale.

        Args:
            user_id: Owner of the workspace
            workspace_id: Workspace id
            synced_file_state: New path to blob SHA map
            expected_revision: Revision the caller started from

        Returns:
            The new revision

        Raises:
            RevisionConflictError: If the stored revision moved on, or the
                workspace was deleted in the meantime
        """
        path = self._workspace_file(user_id, workspace_id)
        with self._lock:
            data = self._read(path)
            if data is None:
                raise RevisionConflictError(
                    f"Workspace {workspace_id} no longer exists"
                )
            current = int(data.get("syncRevision", 0))
            if current != expected_revision:
                raise RevisionConflictError(
                    f"Workspace {workspace_id} was synced by another publish "
                    f"(revision {current}, expected {expected_revision}). "
                    "Reload the workspace and publish again."
                )
            data["syncedFileState"] = dict(synced_file_state)
            data["syncRevision"] = current + 1
            data["journal"] = None
            self._write(path, data)
        logger.debug(
            f"Replaced synced state of {workspace_id} with "
            f"{len(synced_file_state)} file(s) (revision {current + 1})"
        )
        return current + 1

    def save_journal(
        self, user_id: str, workspace_id: str, journal: Optional[SyncJournal]
    ) -> None:
        """Persist (or clear, with None) the publish journal of a workspace."""
        path = self._workspace_file(user_id, workspace_id)
        with self._lock:
            data = self._read(path)
            if data is None:
                return
            data["journal"] = journal.to_dict() if journal else None
            self._write(path, data)

    # =========================
    # Settings
    # =========================

    def get_settings(self, user_id: str) -> UserSettings:
        """Load a user's settings (empty settings when none are stored)."""
        data = self._read(self._settings_file(user_id))
        return UserSettings.from_dict(data or {})

    def save_settings(self, user_id: str, settings: UserSettings) -> None:
        """Store a user's settings, replacing the previous ones."""
        with self._lock:
            self._write(self._settings_file(user_id), settings.to_dict())

    def get_template_status(self, user_id: str) -> TemplateStatus:
        """Load a user's template status (unpublished when none is stored)."""
        data = self._read(self._template_file(user_id))
        return TemplateStatus.from_dict(data or {})

    def save_template_status(self, user_id: str, status: TemplateStatus) -> None:
        with self._lock:
            self._write(self._template_file(user_id), status.to_dict())


class SyncCheckpoint:
    """Ties one publish run to the stored workspace it started from.

    Records every applied item in the workspace's journal so an
    interrupted publish can be retried without repeating work, and
    replaces the synced baseline at the end with a compare-and-swap.
    """

    def __init__(
        self,
        store: WorkspaceStore,
        user_id: str,
        workspace_id: str,
        baseline_revision: int,
        journal: Optional[SyncJournal] = None,
    ):
        """Initialize checkpoint.

        Args:
            store: Workspace store
            user_id: Owner of the workspace
            workspace_id: Workspace being published
            baseline_revision: sync_revision of the workspace when the diff
                was computed
            journal: Journal left by an earlier interrupted run. Ignored
                unless it belongs to the same baseline revision.
        """
        self.store = store
        self.user_id = user_id
        self.workspace_id = workspace_id
        self.baseline_revision = baseline_revision
        if journal is not None and journal.baseline_revision == baseline_revision:
            self.journal = journal
            if journal.completed:
                logger.info(
                    f"Resuming publish of {workspace_id}: "
                    f"{len(journal.completed)} item(s) already applied"
                )
        else:
            self.journal = SyncJournal(baseline_revision=baseline_revision)

    @staticmethod
    def delete_key(path: str, sha: str) -> str:
        return f"delete:{path}:{sha}"

    @staticmethod
    def upsert_key(path: str, content: str) -> str:
        return f"upsert:{path}:{content_digest(content)}"

    def is_done(self, key: str) -> bool:
        return key in self.journal.completed

    def mark_done(self, key: str) -> None:
        self.journal.completed.add(key)
        self.store.save_journal(self.user_id, self.workspace_id, self.journal)

    def commit(self, synced_file_state: dict[str, str]) -> int:
        """Replace the baseline and clear the journal.

        Raises:
            RevisionConflictError: If another publish got there first
        """
        return self.store.replace_synced_state(
            self.user_id,
            self.workspace_id,
            synced_file_state,
            expected_revision=self.baseline_revision,
        )
