"""Core sync engine for publishing a workspace diff."""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from rich.progress import Progress

from ..api import GitHubClient
from ..exceptions import FingerprintMismatchError
from ..models import FileEntry, SyncDiff, SyncTarget
from ..output import OutputFormatter
from ..utils import KEEP_FILE_NAME, git_blob_sha
from .importer import WorkspaceImporter
from .operations import SyncOperations
from .state import SyncCheckpoint

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_DIRS = ("_posts", "assets/images")


@dataclass
class PublishResult:
    """Outcome of one publish run."""

    deleted: list[str] = field(default_factory=list)
    """Paths deleted remotely (or found already absent)"""

    uploaded: list[str] = field(default_factory=list)
    """Paths created or updated remotely"""

    failed: dict[str, str] = field(default_factory=dict)
    """Paths that failed, mapped to the error message"""

    skipped: list[str] = field(default_factory=list)
    """Paths skipped because they had no content, or were already applied
    by an interrupted earlier run"""

    created: list[str] = field(default_factory=list)
    """Keep-files committed to create missing required directories"""

    synced_file_state: dict[str, str] = field(default_factory=dict)
    """Baseline re-imported from the remote after the run"""

    revision: Optional[int] = None
    """New sync revision of the workspace, if a checkpoint was used"""

    dry_run: bool = False

    @property
    def stats(self) -> dict:
        return {
            "deleted": len(self.deleted),
            "uploaded": len(self.uploaded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    @property
    def success(self) -> bool:
        return not self.failed


class SyncEngine:
    """Applies a diff to the remote branch.

    The steps run strictly in order: ensure the required directories,
    apply deletes, apply upserts, then re-import the remote baseline. A
    fingerprint mismatch fails only the item it belongs to. Any other error
    aborts the run; when a checkpoint is used the items applied so far are
    journaled, so publishing again against the same baseline resumes.
    """

    def __init__(
        self,
        client: GitHubClient,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: GitHub API client
            output: Output formatter for displaying progress/status
        """
        self.client = client
        self.output = output or OutputFormatter(quiet=True)
        self.operations = SyncOperations(client)
        self.importer = WorkspaceImporter(client)

    def publish(
        self,
        target: SyncTarget,
        diff: SyncDiff,
        checkpoint: Optional[SyncCheckpoint] = None,
        ensure_dirs: tuple[str, ...] = DEFAULT_REQUIRED_DIRS,
        dry_run: bool = False,
    ) -> PublishResult:
        """Publish a diff to the remote branch.

        Args:
            target: Repository and branch to publish to
            diff: Deletes and upserts to apply
            checkpoint: Journal and baseline of the stored workspace. When
                given, applied items are journaled and the refreshed
                baseline is stored with a compare-and-swap.
            ensure_dirs: Directories that must exist before any file change
            dry_run: Only report the plan

        Returns:
            PublishResult

        Raises:
            RevisionConflictError: If another publish replaced the baseline
            BuildrAPIError: On any remote error other than a per-item
                fingerprint mismatch
        """
        result = PublishResult(skipped=list(diff.skipped), dry_run=dry_run)
        self._display_plan(target, diff, dry_run)

        if dry_run:
            result.deleted = [path for path, _ in diff.to_delete]
            result.uploaded = [entry.path for entry in diff.to_upsert]
            self._display_summary(result)
            return result

        for path in ensure_dirs:
            if self.operations.ensure_directory(target, path):
                logger.info(f"Created directory {path} on {target}")
                result.created.append(f"{path}/{KEEP_FILE_NAME}")

        total = len(diff.to_delete) + len(diff.to_upsert)
        if self.output.quiet or self.output.json_output or total == 0:
            self._apply_deletes(target, diff, result, checkpoint)
            self._apply_upserts(target, diff, result, checkpoint)
        else:
            with Progress() as progress:
                task = progress.add_task("Publishing files...", total=total)
                self._apply_deletes(target, diff, result, checkpoint, progress, task)
                self._apply_upserts(target, diff, result, checkpoint, progress, task)

        result.synced_file_state = self.importer.fingerprints_only(target)
        if checkpoint is not None:
            result.revision = checkpoint.commit(result.synced_file_state)

        if result.failed:
            logger.warning(
                f"Publish to {target} finished with {len(result.failed)} "
                "failed item(s)"
            )
        self._display_summary(result)
        return result

    def _apply_deletes(
        self,
        target: SyncTarget,
        diff: SyncDiff,
        result: PublishResult,
        checkpoint: Optional[SyncCheckpoint],
        progress: Optional[Progress] = None,
        task=None,
    ) -> None:
        for path, sha in diff.to_delete:
            key = SyncCheckpoint.delete_key(path, sha)
            if checkpoint is not None and checkpoint.is_done(key):
                logger.debug(f"Already deleted in an earlier run: {path}")
                result.skipped.append(path)
            else:
                try:
                    self.operations.delete_remote(target, path, sha)
                except FingerprintMismatchError as e:
                    logger.warning(f"Not deleting {path}: {e}")
                    result.failed[path] = str(e)
                else:
                    result.deleted.append(path)
                    if checkpoint is not None:
                        checkpoint.mark_done(key)
            if progress is not None:
                progress.update(task, advance=1)

    def _apply_upserts(
        self,
        target: SyncTarget,
        diff: SyncDiff,
        result: PublishResult,
        checkpoint: Optional[SyncCheckpoint],
        progress: Optional[Progress] = None,
        task=None,
    ) -> None:
        for entry in diff.to_upsert:
            key = SyncCheckpoint.upsert_key(entry.path, entry.content)
            if checkpoint is not None and checkpoint.is_done(key):
                logger.debug(f"Already uploaded in an earlier run: {entry.path}")
                result.skipped.append(entry.path)
            else:
                try:
                    self._upload(target, entry, result.created)
                except FingerprintMismatchError as e:
                    logger.warning(f"Not updating {entry.path}: {e}")
                    result.failed[entry.path] = str(e)
                else:
                    result.uploaded.append(entry.path)
                    if checkpoint is not None:
                        checkpoint.mark_done(key)
            if progress is not None:
                progress.update(task, advance=1)

    def _upload(
        self, target: SyncTarget, entry: FileEntry, created: list[str]
    ) -> None:
        if entry.path in created:
            # Committed empty by the directory step of this run
            entry = replace(entry, expected_sha=git_blob_sha(""))
        sha = self.operations.upload(target, entry)
        logger.debug(f"Committed {entry.path} ({sha})")

    def _display_plan(
        self, target: SyncTarget, diff: SyncDiff, dry_run: bool
    ) -> None:
        """Display publish plan to user."""
        if self.output.quiet or self.output.json_output:
            return

        prefix = "[DRY RUN] " if dry_run else ""
        self.output.info(f"{prefix}Publish plan for {target}:")
        if diff.to_delete:
            self.output.info(f"  ✗ Delete remote: {len(diff.to_delete)} file(s)")
        if diff.to_upsert:
            self.output.info(f"  ↑ Upload: {len(diff.to_upsert)} file(s)")
        if diff.skipped:
            self.output.warning(f"  ⚠ No content: {len(diff.skipped)} file(s)")
        if diff.is_empty:
            self.output.info("  = Nothing to publish")
        self.output.print("")

    def _display_summary(self, result: PublishResult) -> None:
        """Display publish summary."""
        if self.output.quiet or self.output.json_output:
            return

        if result.dry_run:
            self.output.success("Dry run complete!")
        elif result.failed:
            self.output.warning("Publish finished with errors")
            for path, message in result.failed.items():
                self.output.warning(f"  {path}: {message}")
        else:
            self.output.success("Publish complete!")

        if result.deleted:
            self.output.info(f"  Deleted remotely: {len(result.deleted)}")
        if result.uploaded:
            self.output.info(f"  Uploaded: {len(result.uploaded)}")
