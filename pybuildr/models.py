"""Data models for workspaces, file trees and sync plans."""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from .exceptions import BuildrConfigError
from .utils import content_to_bytes, is_data_url, normalize_path, path_name

NodeType = Literal["file", "folder"]
TreeItemType = Literal["blob", "tree"]


@dataclass
class FileNode:
    """A node in the hierarchical workspace tree."""

    name: str
    """Leaf segment of the path"""

    path: str
    """Full slash-delimited path from the workspace root"""

    type: NodeType
    """Node kind: file or folder"""

    children: Optional[list["FileNode"]] = None
    """Child nodes in insertion order (folders only)"""

    content: Optional[str] = None
    """Inline content, only set on synthetic entries such as keep-files"""

    def __post_init__(self) -> None:
        if self.type == "folder" and self.children is None:
            self.children = []

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    def to_dict(self) -> dict[str, Any]:
        """Convert node (and its subtree) to a JSON-serializable dict."""
        data: dict[str, Any] = {"name": self.name, "path": self.path, "type": self.type}
        if self.is_folder:
            data["children"] = [child.to_dict() for child in self.children or []]
        if self.content is not None:
            data["content"] = self.content
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileNode":
        """Create a node (and its subtree) from a dict.

        Raises:
            ValueError: If the node is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid tree node: {data!r}")
        for key in ("name", "path"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"Tree node is missing a valid {key!r}: {data!r}")
        node_type = data.get("type", "file")
        if node_type not in ("file", "folder"):
            raise ValueError(f"Unknown node type {node_type!r} at {data['path']}")
        children = data.get("children")
        if children is not None and not isinstance(children, list):
            raise ValueError(f"Children of {data['path']} must be a list")
        return cls(
            name=data["name"],
            path=data["path"],
            type=node_type,
            children=[cls.from_dict(c) for c in children]
            if children is not None
            else None,
            content=data.get("content"),
        )


@dataclass
class RemoteTreeItem:
    """One entry of a remote branch listing."""

    path: str
    type: TreeItemType
    sha: str
    size: Optional[int] = None

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteTreeItem":
        """Create an item from an element of GitHub's ``tree`` array."""
        return cls(
            path=data["path"],
            type="blob" if data.get("type") == "blob" else "tree",
            sha=data.get("sha", ""),
            size=data.get("size"),
        )


@dataclass
class FileEntry:
    """A file to create or update on the remote."""

    path: str
    content: str
    name: str = ""
    expected_sha: Optional[str] = None
    """Blob SHA the remote file must still have. An empty string means the
    file must not exist yet; None skips the check."""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = path_name(self.path)

    @property
    def is_base64(self) -> bool:
        """Whether the content is a data URL carrying a binary payload."""
        return is_data_url(self.content)

    def payload(self) -> bytes:
        """Bytes that are committed for this entry."""
        return content_to_bytes(self.content)


@dataclass
class SyncDiff:
    """Changes needed to bring the remote in line with a workspace."""

    to_delete: list[tuple[str, str]] = field(default_factory=list)
    """(path, last known sha) pairs to delete remotely"""

    to_upsert: list[FileEntry] = field(default_factory=list)
    """Files to create or update remotely"""

    skipped: list[str] = field(default_factory=list)
    """Paths left out because their content could not be resolved"""

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_upsert


@dataclass
class SyncTarget:
    """Remote repository and branch a sync runs against."""

    repo: str
    branch: str

    def __post_init__(self) -> None:
        self.repo = normalize_path(self.repo or "")
        self.branch = (self.branch or "").strip()
        if not self.repo or "/" not in self.repo:
            raise BuildrConfigError(
                "GitHub repository details are incomplete. "
                "Expected a repository in the form owner/name."
            )
        if not self.branch:
            raise BuildrConfigError(
                "GitHub repository details are incomplete. No branch configured."
            )

    @property
    def repo_name(self) -> str:
        return self.repo.split("/", 1)[1]

    def __str__(self) -> str:
        return f"{self.repo}@{self.branch}"


@dataclass
class SyncJournal:
    """Items already applied by an interrupted publish."""

    baseline_revision: int
    completed: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "baselineRevision": self.baseline_revision,
            "completed": sorted(self.completed),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncJournal":
        return cls(
            baseline_revision=int(data.get("baselineRevision", 0)),
            completed=set(data.get("completed", [])),
        )


@dataclass
class Workspace:
    """A user's editable copy of a site repository."""

    id: str
    name: str
    github_repo: str
    github_branch: str
    file_structure: list[FileNode] = field(default_factory=list)
    file_contents: dict[str, str] = field(default_factory=dict)
    synced_file_state: dict[str, str] = field(default_factory=dict)
    active_file: Optional[str] = "index.html"
    expanded_folders: list[str] = field(default_factory=list)
    created_at: Optional[str] = None
    saved_at: Optional[str] = None
    sync_revision: int = 0
    journal: Optional[SyncJournal] = None

    @property
    def target(self) -> SyncTarget:
        """Sync target for this workspace."""
        return SyncTarget(repo=self.github_repo, branch=self.github_branch)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored document layout."""
        return {
            "id": self.id,
            "name": self.name,
            "githubRepo": self.github_repo,
            "githubBranch": self.github_branch,
            "fileStructure": [node.to_dict() for node in self.file_structure],
            "fileContents": dict(self.file_contents),
            "syncedFileState": dict(self.synced_file_state),
            "activeFile": self.active_file,
            "expandedFolders": list(self.expanded_folders),
            "createdAt": self.created_at,
            "savedAt": self.saved_at,
            "syncRevision": self.sync_revision,
            "journal": self.journal.to_dict() if self.journal else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workspace":
        """Create a workspace from a stored document.

        Raises:
            ValueError: If a field has the wrong type
        """
        for key, expected in (
            ("fileStructure", list),
            ("fileContents", dict),
            ("syncedFileState", dict),
            ("expandedFolders", list),
        ):
            if key in data and not isinstance(data[key], expected):
                raise ValueError(
                    f"Workspace field {key!r} must be a {expected.__name__}"
                )
        journal = data.get("journal")
        return cls(
            id=data.get("id", ""),
            name=data.get("name") or data.get("githubRepo", ""),
            github_repo=data.get("githubRepo", ""),
            github_branch=data.get("githubBranch", ""),
            file_structure=[
                FileNode.from_dict(node) for node in data.get("fileStructure", [])
            ],
            file_contents=dict(data.get("fileContents", {})),
            synced_file_state=dict(data.get("syncedFileState", {})),
            active_file=data.get("activeFile"),
            expanded_folders=list(data.get("expandedFolders", [])),
            created_at=data.get("createdAt"),
            saved_at=data.get("savedAt"),
            sync_revision=int(data.get("syncRevision", 0)),
            journal=SyncJournal.from_dict(journal) if journal else None,
        )


@dataclass
class UserSettings:
    """Per-user GitHub linkage."""

    github_repo: Optional[str] = None
    github_branch: Optional[str] = None
    github_username: Optional[str] = None
    active_workspace_id: Optional[str] = None

    def require_target(self) -> SyncTarget:
        """Get the configured sync target.

        Raises:
            BuildrConfigError: If repository or branch is not configured
        """
        if not self.github_repo or not self.github_branch:
            raise BuildrConfigError(
                "GitHub repository details are incomplete. Please check your settings."
            )
        return SyncTarget(repo=self.github_repo, branch=self.github_branch)

    def to_dict(self) -> dict[str, Any]:
        return {
            "githubRepo": self.github_repo,
            "githubBranch": self.github_branch,
            "githubUsername": self.github_username,
            "activeWorkspaceId": self.active_workspace_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserSettings":
        return cls(
            github_repo=data.get("githubRepo"),
            github_branch=data.get("githubBranch"),
            github_username=data.get("githubUsername"),
            active_workspace_id=data.get("activeWorkspaceId"),
        )


@dataclass
class TemplateStatus:
    """Whether the site skeleton was scaffolded, and when."""

    is_published: bool = False
    published_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"isPublished": self.is_published, "publishedAt": self.published_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateStatus":
        return cls(
            is_published=bool(data.get("isPublished", False)),
            published_at=data.get("publishedAt"),
        )


@dataclass
class OperationResult:
    """Outcome of a service-level operation."""

    success: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)
