"""Sync engine for pybuildr - diff a workspace against its last sync and publish."""

from .comparator import SnapshotComparator, diff_snapshot, prune_unchanged
from .engine import DEFAULT_REQUIRED_DIRS, PublishResult, SyncEngine
from .ignore import IgnoreRule, IgnoreRuleSet, compile_rules, matches
from .importer import ImportedSnapshot, WorkspaceImporter
from .operations import SyncOperations
from .state import SyncCheckpoint, WorkspaceStore
from .tree import build_file_tree, flatten_files, leaf_paths, tree_from_paths

__all__ = [
    "SyncEngine",
    "PublishResult",
    "DEFAULT_REQUIRED_DIRS",
    "SyncOperations",
    "SnapshotComparator",
    "diff_snapshot",
    "prune_unchanged",
    "IgnoreRule",
    "IgnoreRuleSet",
    "compile_rules",
    "matches",
    "ImportedSnapshot",
    "WorkspaceImporter",
    "SyncCheckpoint",
    "WorkspaceStore",
    "build_file_tree",
    "flatten_files",
    "leaf_paths",
    "tree_from_paths",
]
