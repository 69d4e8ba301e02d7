"""Snapshot comparison: compute what a publish has to change remotely."""

import logging
from collections.abc import Mapping
from typing import Optional

from ..images import is_image_path
from ..models import FileEntry, FileNode, SyncDiff
from ..utils import git_blob_sha
from .ignore import EMPTY_RULES, IgnoreRuleSet
from .tree import flatten_files

logger = logging.getLogger(__name__)


class SnapshotComparator:
    """Compares a synced baseline with the current workspace tree.

    Ignore rules are authoritative in both directions: an ignored path is
    never uploaded and never deleted, even when it is missing locally.
    Image assets are likewise never part of a diff.
    """

    def __init__(self, ignore_rules: Optional[IgnoreRuleSet] = None):
        """Initialize snapshot comparator.

        Args:
            ignore_rules: Compiled ignore rules (defaults to ignoring nothing)
        """
        self.ignore_rules = ignore_rules if ignore_rules is not None else EMPTY_RULES

    def _is_excluded(self, path: str) -> bool:
        return is_image_path(path) or self.ignore_rules.is_ignored(path)

    def diff(
        self,
        previous: Mapping[str, str],
        tree: list[FileNode],
        file_contents: Optional[Mapping[str, str]] = None,
    ) -> SyncDiff:
        """Compute the delete and upsert sets.

        Args:
            previous: Synced baseline mapping path to remote blob SHA
            tree: Current workspace tree (root-level nodes)
            file_contents: Workspace contents mapping path to text

        Returns:
            SyncDiff with deletes (path, sha) and upserts (FileEntry). Each
            upsert expects the remote file to still have its baseline SHA,
            or not to exist when the path is new.
        """
        contents = file_contents or {}
        leaves = list(flatten_files(tree))
        current_paths = {node.path for node in leaves}

        result = SyncDiff()

        for path, sha in previous.items():
            if path in current_paths:
                continue
            if self._is_excluded(path):
                logger.debug(f"Keeping excluded path on remote: {path}")
                continue
            result.to_delete.append((path, sha))

        for node in leaves:
            if self._is_excluded(node.path):
                continue

            content = contents.get(node.path)
            if content is None:
                content = node.content
            if content is None:
                logger.warning(
                    f"Skipping commit for {node.path} due to undefined content."
                )
                result.skipped.append(node.path)
                continue

            result.to_upsert.append(
                FileEntry(
                    path=node.path,
                    name=node.name,
                    content=content,
                    expected_sha=previous.get(node.path, ""),
                )
            )

        logger.debug(
            f"Diff: {len(result.to_delete)} delete(s), "
            f"{len(result.to_upsert)} upsert(s), {len(result.skipped)} skipped"
        )
        return result


def diff_snapshot(
    previous: Mapping[str, str],
    tree: list[FileNode],
    ignore_rules: Optional[IgnoreRuleSet] = None,
    file_contents: Optional[Mapping[str, str]] = None,
) -> SyncDiff:
    """Compute the changes between a baseline and a workspace tree.

    See :meth:`SnapshotComparator.diff`.
    """
    return SnapshotComparator(ignore_rules).diff(previous, tree, file_contents)


def prune_unchanged(diff: SyncDiff, previous: Mapping[str, str]) -> SyncDiff:
    """Drop upserts whose content already matches the baseline.

    The git blob SHA of each upsert's payload is compared with the SHA
    recorded in the baseline, so a diff computed right after a publish
    (with nothing edited since) is empty.

    Args:
        diff: Diff to prune
        previous: Synced baseline mapping path to remote blob SHA

    Returns:
        New SyncDiff with the same deletes and only changed upserts
    """
    changed = [
        entry
        for entry in diff.to_upsert
        if previous.get(entry.path) != git_blob_sha(entry.content)
    ]
    unchanged = len(diff.to_upsert) - len(changed)
    if unchanged:
        logger.debug(f"{unchanged} file(s) unchanged since last sync")
    return SyncDiff(
        to_delete=list(diff.to_delete),
        to_upsert=changed,
        skipped=list(diff.skipped),
    )
