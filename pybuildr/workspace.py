"""Workspace service: the operations the CLI exposes, with results instead of
exceptions.

Every public method returns an :class:`~pybuildr.models.OperationResult`.
Errors raised by the sync layer, the API client or the store are logged and
turned into a failed result whose ``error`` is the exception message.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .api import GitHubClient
from .exceptions import BuildrConfigError, BuildrError
from .images import is_image_path
from .models import OperationResult, SyncTarget, TemplateStatus, UserSettings, Workspace
from .output import OutputFormatter
from .sync.comparator import diff_snapshot, prune_unchanged
from .sync.engine import SyncEngine
from .sync.ignore import compile_rules
from .sync.importer import WorkspaceImporter
from .sync.state import SyncCheckpoint, WorkspaceStore
from .sync.tree import add_file, find_node
from .utils import IGNORE_FILE_NAME

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_FILE = "index.html"


class WorkspaceService:
    """Manages a user's workspaces and their link to GitHub."""

    def __init__(
        self,
        client: Optional[GitHubClient],
        store: WorkspaceStore,
        user_id: str,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize workspace service.

        Args:
            client: GitHub API client. May be None for purely local
                operations (listing, reading and saving workspaces).
            store: Workspace store
            user_id: User the workspaces belong to
            output: Output formatter passed on to the sync engine
        """
        self.client = client
        self.store = store
        self.user_id = user_id
        self.output = output

    def _require_client(self) -> GitHubClient:
        if self.client is None:
            raise BuildrConfigError(
                "GitHub token not configured. "
                "Run 'pybuildr init' or set GITHUB_TOKEN."
            )
        return self.client

    def _run(self, action: str, func: Callable[[], Any]) -> OperationResult:
        """Run an operation and convert errors into a failed result."""
        try:
            return OperationResult.ok(func())
        except (BuildrError, ValueError, OSError) as e:
            logger.error(f"Error {action}: {e}")
            return OperationResult.fail(str(e))

    def _load(self, workspace_id: str) -> Workspace:
        workspace = self.store.get(self.user_id, workspace_id)
        if workspace is None:
            raise BuildrConfigError(f"Workspace not found: {workspace_id}")
        return workspace

    def _activate(self, workspace: Workspace) -> UserSettings:
        settings = self.store.get_settings(self.user_id)
        settings.active_workspace_id = workspace.id
        if workspace.github_repo:
            settings.github_repo = workspace.github_repo
        if workspace.github_branch:
            settings.github_branch = workspace.github_branch
        self.store.save_settings(self.user_id, settings)
        logger.debug(f"Active workspace is now {workspace.id}")
        return settings

    def _import_workspace(
        self, workspace_id: str, target: SyncTarget, existing: Optional[Workspace]
    ) -> Workspace:
        snapshot = WorkspaceImporter(self._require_client()).import_all(target)
        workspace = Workspace(
            id=workspace_id,
            name=target.repo_name or "New Workspace",
            github_repo=target.repo,
            github_branch=target.branch,
            file_structure=snapshot.file_structure,
            file_contents=snapshot.file_contents,
            synced_file_state=snapshot.synced_file_state,
            active_file=DEFAULT_ACTIVE_FILE,
            expanded_folders=existing.expanded_folders if existing else [],
        )
        return self.store.save(self.user_id, workspace, replace=True)

    # =========================
    # Remote operations
    # =========================

    def create_workspace(self, repo: str, branch: str) -> OperationResult:
        """Clone a repository into a new workspace and make it active.

        Returns:
            OperationResult with the new Workspace as data
        """

        def create() -> Workspace:
            target = SyncTarget(repo=repo, branch=branch)
            workspace = self._import_workspace(uuid.uuid4().hex, target, None)
            self._activate(workspace)
            logger.info(f"Created workspace {workspace.id} from {target}")
            return workspace

        return self._run("creating workspace", create)

    def clone_repository(self, target: Optional[SyncTarget] = None) -> OperationResult:
        """Clone a repository without storing anything.

        Args:
            target: Repository and branch. Defaults to the ones in the user's
                settings.

        Returns:
            OperationResult with an ImportedSnapshot as data
        """

        def clone():
            resolved = target or self.store.get_settings(self.user_id).require_target()
            return WorkspaceImporter(self._require_client()).import_all(resolved)

        return self._run("cloning repository", clone)

    def force_clone(self, workspace_id: str, repo: str, branch: str) -> OperationResult:
        """Re-clone a workspace, discarding its local edits and baseline.

        Returns:
            OperationResult with the refreshed Workspace as data
        """

        def reclone() -> Workspace:
            existing = self.store.get(self.user_id, workspace_id)
            target = SyncTarget(repo=repo, branch=branch)
            workspace = self._import_workspace(workspace_id, target, existing)
            self._activate(workspace)
            logger.info(f"Re-cloned workspace {workspace_id} from {target}")
            return workspace

        return self._run("during force clone", reclone)

    def diff_workspace(self, workspace_id: str) -> OperationResult:
        """Compute what publishing a workspace would change.

        Returns:
            OperationResult with a SyncDiff as data
        """
        return self._run(
            "comparing workspace", lambda: self._diff(self._load(workspace_id))
        )

    def _diff(self, workspace: Workspace):
        rules = compile_rules(workspace.file_contents.get(IGNORE_FILE_NAME))
        diff = diff_snapshot(
            workspace.synced_file_state,
            workspace.file_structure,
            ignore_rules=rules,
            file_contents=workspace.file_contents,
        )
        return prune_unchanged(diff, workspace.synced_file_state)

    def publish_workspace(
        self, workspace_id: str, dry_run: bool = False
    ) -> OperationResult:
        """Publish a workspace to its repository and branch.

        The workspace's own ``.gitignore`` decides which paths are left
        alone. Per-file failures do not stop the publish; they make the
        result unsuccessful and are listed in ``data.failed``.

        Returns:
            OperationResult with a PublishResult as data
        """

        def publish():
            workspace = self._load(workspace_id)
            target = workspace.target
            diff = self._diff(workspace)
            checkpoint = None
            if not dry_run:
                checkpoint = SyncCheckpoint(
                    self.store,
                    self.user_id,
                    workspace.id,
                    workspace.sync_revision,
                    workspace.journal,
                )
            engine = SyncEngine(self._require_client(), output=self.output)
            published = engine.publish(
                target, diff, checkpoint=checkpoint, dry_run=dry_run
            )
            if published.created:
                self._add_placeholders(workspace.id, published.created)
            return published

        result = self._run("publishing workspace", publish)
        if result.success and result.data.failed:
            result.success = False
            result.error = (
                f"{len(result.data.failed)} file(s) could not be published: "
                + ", ".join(sorted(result.data.failed))
            )
        return result

    def _add_placeholders(self, workspace_id: str, paths: list[str]) -> None:
        """Add keep-files committed by a publish to the stored tree.

        The refreshed baseline already lists them, so without a matching
        leaf the next diff would delete them again.
        """
        workspace = self._load(workspace_id)
        for path in paths:
            if find_node(workspace.file_structure, path) is None:
                try:
                    add_file(workspace.file_structure, path)
                except ValueError as e:
                    logger.warning(f"Cannot add {path} to workspace: {e}")
                    continue
            workspace.file_contents.setdefault(path, "")
        self.store.save(self.user_id, workspace)
        logger.debug(f"Added {len(paths)} keep-file(s) to workspace {workspace_id}")

    # =========================
    # Local state
    # =========================

    def get_workspace_state(self, workspace_id: str) -> OperationResult:
        """Load a workspace.

        Returns:
            OperationResult with the Workspace, or None if it does not exist
        """
        return self._run(
            "getting workspace state",
            lambda: self.store.get(self.user_id, workspace_id),
        )

    def save_workspace_state(
        self, workspace_id: str, state: dict[str, Any]
    ) -> OperationResult:
        """Merge editor state into a workspace.

        Args:
            workspace_id: Workspace id
            state: Document fields to update (camelCase keys, as in
                :meth:`Workspace.to_dict`). Image paths are dropped from
                ``fileContents``; the synced baseline is never changed here.

        Returns:
            OperationResult with the stored Workspace as data
        """

        def save() -> Workspace:
            existing = self.store.get(self.user_id, workspace_id)
            data = existing.to_dict() if existing else {}
            data.update(state)
            data["id"] = workspace_id
            data["fileContents"] = {
                path: content
                for path, content in (data.get("fileContents") or {}).items()
                if not is_image_path(path)
            }
            data["expandedFolders"] = list(data.get("expandedFolders") or [])
            return self.store.save(self.user_id, Workspace.from_dict(data))

        return self._run("saving workspace state", save)

    def delete_workspace(self, workspace_id: str) -> OperationResult:
        """Delete a workspace (deactivating it if it was active)."""

        def delete() -> bool:
            deleted = self.store.delete(self.user_id, workspace_id)
            settings = self.store.get_settings(self.user_id)
            if settings.active_workspace_id == workspace_id:
                settings.active_workspace_id = None
                self.store.save_settings(self.user_id, settings)
            return deleted

        return self._run("deleting workspace", delete)

    def list_workspaces(self) -> OperationResult:
        """List the user's workspaces.

        Returns:
            OperationResult with a list of summary dicts (id, name,
            githubRepo, githubBranch)
        """
        return self._run(
            "listing workspaces",
            lambda: [
                {
                    "id": workspace.id,
                    "name": workspace.name,
                    "githubRepo": workspace.github_repo,
                    "githubBranch": workspace.github_branch,
                }
                for workspace in self.store.list_workspaces(self.user_id)
            ],
        )

    def set_active_workspace(self, workspace_id: str) -> OperationResult:
        """Make a workspace active and point the settings at its repository.

        Returns:
            OperationResult with the updated UserSettings as data
        """
        return self._run(
            "setting active workspace",
            lambda: self._activate(self._load(workspace_id)),
        )

    # =========================
    # Settings
    # =========================

    def get_settings(self) -> OperationResult:
        return self._run(
            "getting settings", lambda: self.store.get_settings(self.user_id)
        )

    def save_settings(
        self,
        github_repo: Optional[str] = None,
        github_branch: Optional[str] = None,
        github_username: Optional[str] = None,
        active_workspace_id: Optional[str] = None,
    ) -> OperationResult:
        """Merge new values into the user's settings.

        Fields left as None keep their stored value. The result must name
        the GitHub user.

        Returns:
            OperationResult with the stored UserSettings as data
        """

        def save() -> UserSettings:
            settings = self.store.get_settings(self.user_id)
            if github_repo is not None:
                settings.github_repo = github_repo
            if github_branch is not None:
                settings.github_branch = github_branch
            if github_username is not None:
                settings.github_username = github_username
            if active_workspace_id is not None:
                settings.active_workspace_id = active_workspace_id
            if not settings.github_username:
                raise BuildrConfigError(
                    "Cannot save settings without GitHub user information."
                )
            self.store.save_settings(self.user_id, settings)
            return settings

        return self._run("saving settings", save)

    def get_template_status(self) -> OperationResult:
        """Whether the site skeleton was scaffolded.

        Returns:
            OperationResult with a TemplateStatus as data
        """
        return self._run(
            "getting template status",
            lambda: self.store.get_template_status(self.user_id),
        )

    def mark_template_published(self) -> OperationResult:
        """Record that the site skeleton was scaffolded just now."""

        def mark() -> TemplateStatus:
            status = TemplateStatus(
                is_published=True,
                published_at=datetime.now(timezone.utc).isoformat(),
            )
            self.store.save_template_status(self.user_id, status)
            return status

        return self._run("saving template status", mark)

    def disconnect_github(self) -> OperationResult:
        """Forget the user's GitHub account, repository and branch."""

        def disconnect() -> UserSettings:
            settings = self.store.get_settings(self.user_id)
            settings.github_repo = None
            settings.github_branch = None
            settings.github_username = None
            self.store.save_settings(self.user_id, settings)
            return settings

        return self._run("disconnecting GitHub", disconnect)
