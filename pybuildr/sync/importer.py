"""Import a remote branch into a workspace snapshot."""

import logging
from dataclasses import dataclass, field

from ..api import GitHubClient
from ..images import is_image_path
from ..models import FileNode, RemoteTreeItem, SyncTarget
from .tree import build_file_tree

logger = logging.getLogger(__name__)


@dataclass
class ImportedSnapshot:
    """Tree, contents and baseline derived from one remote listing."""

    file_structure: list[FileNode] = field(default_factory=list)
    """Workspace tree (root-level nodes)"""

    file_contents: dict[str, str] = field(default_factory=dict)
    """Decoded text of every non-image file"""

    synced_file_state: dict[str, str] = field(default_factory=dict)
    """Path to blob SHA for every non-image file"""


class WorkspaceImporter:
    """Builds workspace snapshots from the remote repository.

    This is the only producer of a trustworthy synced baseline. It is used
    for creating a workspace, for re-cloning one, and for refreshing the
    baseline after a publish.
    """

    def __init__(self, client: GitHubClient):
        """Initialize importer.

        Args:
            client: GitHub API client
        """
        self.client = client

    def _list_items(self, target: SyncTarget) -> list[RemoteTreeItem]:
        """List the branch without image assets."""
        items = self.client.list_tree(target.repo, target.branch)
        kept = [item for item in items if not is_image_path(item.path)]
        if len(kept) != len(items):
            logger.debug(f"Skipped {len(items) - len(kept)} image asset(s)")
        return kept

    def import_all(self, target: SyncTarget) -> ImportedSnapshot:
        """Fetch the full branch and build a snapshot.

        Blobs that are not valid UTF-8 stay in the tree and the baseline but
        get no entry in the contents map.

        Args:
            target: Repository and branch to import

        Returns:
            ImportedSnapshot
        """
        items = self._list_items(target)
        snapshot = ImportedSnapshot(file_structure=build_file_tree(items))

        for item in items:
            if not item.is_blob:
                continue
            snapshot.synced_file_state[item.path] = item.sha
            data = self.client.get_blob(target.repo, item.sha)
            try:
                snapshot.file_contents[item.path] = data.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Not importing content of binary file {item.path}")

        logger.debug(
            f"Imported {len(snapshot.synced_file_state)} file(s) from {target}"
        )
        return snapshot

    def fingerprints_only(self, target: SyncTarget) -> dict[str, str]:
        """Get the current baseline of a branch without downloading blobs.

        Returns:
            Path to blob SHA for every non-image file
        """
        return {
            item.path: item.sha for item in self._list_items(target) if item.is_blob
        }
