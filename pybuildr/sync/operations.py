"""Sync operations wrapper for per-item remote changes."""

import logging
from typing import Optional

from ..api import GitHubClient
from ..exceptions import BuildrNotFoundError
from ..models import FileEntry, SyncTarget

logger = logging.getLogger(__name__)


class SyncOperations:
    """Single-file remote operations with the commit messages a publish uses."""

    def __init__(self, client: GitHubClient):
        """Initialize sync operations.

        Args:
            client: GitHub API client
        """
        self.client = client

    def ensure_directory(self, target: SyncTarget, path: str) -> bool:
        """Create a directory on the remote if it is missing.

        Returns:
            True if the directory was created
        """
        return self.client.ensure_directory(target.repo, target.branch, path)

    def delete_remote(self, target: SyncTarget, path: str, sha: str) -> bool:
        """Delete a remote file if it still has the expected SHA.

        Args:
            target: Repository and branch
            path: File path
            sha: Last known blob SHA of the file

        Returns:
            True if the file was deleted, False if it was already gone

        Raises:
            FingerprintMismatchError: If the file changed remotely
        """
        try:
            self.client.delete_file(
                target.repo,
                target.branch,
                path,
                sha=sha,
                message=f"buildr: delete {path}",
            )
        except BuildrNotFoundError:
            logger.debug(f"{path} is already absent on {target}")
            return False
        return True

    def upload(
        self,
        target: SyncTarget,
        entry: FileEntry,
        message: Optional[str] = None,
    ) -> str:
        """Create or update one remote file in its own commit.

        Data URL content is decoded and sent as binary, anything else as
        text. The entry's ``expected_sha`` is sent along, so a file that
        moved remotely is not overwritten.

        Returns:
            Blob SHA of the committed file

        Raises:
            FingerprintMismatchError: If the file changed remotely
        """
        if entry.is_base64:
            logger.debug(f"Uploading {entry.path} as binary payload")
        return self.client.put_file(
            target.repo,
            target.branch,
            entry.path,
            entry.payload(),
            message=message or f"buildr: update {entry.name}",
            sha=entry.expected_sha,
        )
