"""Conversion between flat path listings and the hierarchical file tree.

The remote reports a branch as a flat list of ``(path, kind)`` entries.
The workspace keeps a nested tree of :class:`FileNode` objects whose child
order is the order in which paths were first seen (not sorted), so the
tree mirrors the remote listing.
"""

import logging
from collections.abc import Iterable, Iterator
from typing import Optional, Union

from ..images import is_image_path
from ..models import FileNode, RemoteTreeItem
from ..utils import KEEP_FILE_NAME, normalize_path

logger = logging.getLogger(__name__)

TreeEntry = Union[tuple[str, str], RemoteTreeItem]


def _entry_path_kind(entry: TreeEntry) -> tuple[str, str]:
    if isinstance(entry, RemoteTreeItem):
        return entry.path, entry.type
    path, kind = entry
    return path, kind


def _set_type(node: FileNode, node_type: str, index: dict[str, FileNode]) -> None:
    """Change a node's kind in place, keeping its position in the tree."""
    if node.type == node_type:
        return
    logger.debug(f"Path {node.path} changed from {node.type} to {node_type}")
    if node_type == "folder":
        node.type = "folder"
        node.children = []
    else:
        # Descendants of a folder that became a file are dropped
        prefix = node.path + "/"
        for path in [p for p in index if p.startswith(prefix)]:
            del index[path]
        node.type = "file"
        node.children = None


def build_file_tree(
    entries: Iterable[TreeEntry],
    exclude_images: bool = True,
) -> list[FileNode]:
    """Build a nested file tree from a flat list of entries.

    Entries are processed in input order. Every proper prefix of a path
    becomes a folder node, created once and found again through a
    path-to-node index. The last segment is a file only when the entry
    kind is ``"blob"``. When a path shows up again with another kind, the
    later entry wins.

    Args:
        entries: ``(path, kind)`` tuples or RemoteTreeItem objects, kind
            being "blob" or "tree"
        exclude_images: Leave image assets out of the tree

    Returns:
        List of root-level nodes

    Examples:
        >>> tree = build_file_tree([("docs/index.md", "blob"), ("README.md", "blob")])
        >>> [(n.path, n.type) for n in tree]
        [('docs', 'folder'), ('README.md', 'file')]
    """
    roots: list[FileNode] = []
    index: dict[str, FileNode] = {}

    for entry in entries:
        raw_path, kind = _entry_path_kind(entry)
        path = normalize_path(raw_path)
        if not path:
            continue
        if exclude_images and is_image_path(path):
            logger.debug(f"Excluding image asset from tree: {path}")
            continue

        parts = path.split("/")
        level = roots
        for i, part in enumerate(parts):
            current_path = "/".join(parts[: i + 1])
            is_last = i == len(parts) - 1
            node_type = "file" if is_last and kind == "blob" else "folder"

            node = index.get(current_path)
            if node is None:
                node = FileNode(name=part, path=current_path, type=node_type)
                index[current_path] = node
                level.append(node)
            elif is_last or node_type == "folder":
                _set_type(node, node_type, index)

            if node.children is not None:
                level = node.children

    return roots


def tree_from_paths(paths: Iterable[str]) -> list[FileNode]:
    """Build a tree in which every given path is a file."""
    return build_file_tree([(path, "blob") for path in paths])


def iter_nodes(nodes: list[FileNode]) -> Iterator[FileNode]:
    """Iterate over every node depth-first, parents before children."""
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(reversed(node.children))


def flatten_files(nodes: list[FileNode]) -> Iterator[FileNode]:
    """Iterate over the leaf files of a tree in depth-first order.

    An empty folder yields a placeholder ``<folder>/.gitkeep`` node with
    empty content so the folder survives on a remote that only stores
    files.

    Args:
        nodes: Root-level nodes

    Yields:
        File nodes (real or placeholder)
    """
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if node.is_file:
            yield node
        elif not node.children:
            yield FileNode(
                name=KEEP_FILE_NAME,
                path=f"{node.path}/{KEEP_FILE_NAME}",
                type="file",
                content="",
            )
        else:
            stack.extend(reversed(node.children))


def leaf_paths(nodes: list[FileNode]) -> list[str]:
    """Paths of all leaf files, including empty-folder placeholders."""
    return [node.path for node in flatten_files(nodes)]


def find_node(nodes: list[FileNode], path: str) -> Optional[FileNode]:
    """Find the node at a path, or None."""
    path = normalize_path(path)
    level = nodes
    node: Optional[FileNode] = None
    for part in path.split("/"):
        node = next((n for n in level if n.name == part), None)
        if node is None:
            return None
        level = node.children or []
    return node


def add_file(nodes: list[FileNode], path: str) -> FileNode:
    """Add a file (and any missing parent folders) to a tree in place.

    Args:
        nodes: Root-level nodes, modified in place
        path: Path of the new file

    Returns:
        The file node (an existing one if the path is already a file)

    Raises:
        ValueError: If the path or one of its parents is taken by a node
            of the other kind
    """
    path = normalize_path(path)
    if not path:
        raise ValueError("Cannot add a file with an empty path")

    parts = path.split("/")
    level = nodes
    for i, part in enumerate(parts):
        current_path = "/".join(parts[: i + 1])
        is_last = i == len(parts) - 1
        node = next((n for n in level if n.name == part), None)
        if node is None:
            node = FileNode(
                name=part,
                path=current_path,
                type="file" if is_last else "folder",
            )
            level.append(node)
        elif is_last and node.is_folder:
            raise ValueError(f"A folder already exists at {current_path}")
        elif not is_last and node.is_file:
            raise ValueError(f"A file already exists at {current_path}")
        level = node.children if node.children is not None else []
    return node


def remove_path(nodes: list[FileNode], path: str) -> bool:
    """Remove a file or folder (with its subtree) from a tree in place.

    Returns:
        True if a node was removed, False if nothing exists at the path
    """
    path = normalize_path(path)
    parent_path, _, name = path.rpartition("/")
    if parent_path:
        parent = find_node(nodes, parent_path)
        if parent is None or parent.children is None:
            return False
        level = parent.children
    else:
        level = nodes

    for i, node in enumerate(level):
        if node.name == name:
            del level[i]
            return True
    return False
