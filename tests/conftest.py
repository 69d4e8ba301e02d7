"""Shared fixtures: an in-memory GitHub repository and a temporary store."""

import tempfile
from pathlib import Path
from typing import Optional

import pytest

from pybuildr.exceptions import BuildrNotFoundError, FingerprintMismatchError
from pybuildr.models import RemoteTreeItem
from pybuildr.sync.state import WorkspaceStore
from pybuildr.utils import KEEP_FILE_NAME, content_to_bytes, git_blob_sha, parent_paths


class FakeGitHub:
    """Stands in for GitHubClient, keeping branches as path -> bytes maps.

    Every mutating call is recorded in ``calls`` as (method, path, message)
    so tests can check ordering and commit messages.
    """

    def __init__(self, files: Optional[dict] = None, branch: str = "main"):
        self.branches: dict[str, dict[str, bytes]] = {branch: {}}
        for path, content in (files or {}).items():
            self.branches[branch][path] = content_to_bytes(content)
        self.calls: list[tuple[str, str, str]] = []
        self.pull_requests: list[dict] = []
        self.fail_put: set[str] = set()

    def _files(self, branch: str) -> dict[str, bytes]:
        if branch not in self.branches:
            raise BuildrNotFoundError("Resource not found", 404)
        return self.branches[branch]

    def list_tree(self, repo, branch):
        files = self._files(branch)
        paths = {}
        for path, data in files.items():
            for parent in parent_paths(path):
                paths.setdefault(parent, RemoteTreeItem(parent, "tree", "t-" + parent))
            paths[path] = RemoteTreeItem(path, "blob", git_blob_sha(data), len(data))
        return [paths[path] for path in sorted(paths)]

    def get_blob(self, repo, sha):
        for files in self.branches.values():
            for data in files.values():
                if git_blob_sha(data) == sha:
                    return data
        raise BuildrNotFoundError("Resource not found", 404)

    def get_file_sha(self, repo, branch, path):
        data = self._files(branch).get(path)
        return git_blob_sha(data) if data is not None else None

    def path_exists(self, repo, branch, path):
        files = self._files(branch)
        return path in files or any(p.startswith(path + "/") for p in files)

    def put_file(self, repo, branch, path, content, message, sha=None):
        if path in self.fail_put:
            raise FingerprintMismatchError("sha does not match", path=path)
        current = self.get_file_sha(repo, branch, path)
        if sha is None:
            sha = current
        if current is not None and sha != current:
            raise FingerprintMismatchError("sha does not match", path=path)
        data = content_to_bytes(content)
        self._files(branch)[path] = data
        self.calls.append(("put", path, message))
        return git_blob_sha(data)

    def delete_file(self, repo, branch, path, sha, message):
        current = self.get_file_sha(repo, branch, path)
        if current is None:
            raise BuildrNotFoundError("Resource not found", 404)
        if current != sha:
            raise FingerprintMismatchError(
                f"{path} does not match {sha}", path=path, status_code=409
            )
        del self._files(branch)[path]
        self.calls.append(("delete", path, message))

    def ensure_directory(self, repo, branch, path):
        if self.path_exists(repo, branch, path):
            return False
        self.put_file(
            repo,
            branch,
            f"{path}/{KEEP_FILE_NAME}",
            "",
            message=f"buildr: create directory {path}",
            sha="",
        )
        return True

    def get_branch_sha(self, repo, branch):
        self._files(branch)
        return f"commit-{branch}"

    def create_branch(self, repo, branch, sha):
        base = sha[len("commit-") :]
        self.branches[branch] = dict(self._files(base))
        self.calls.append(("branch", branch, sha))
        return {"ref": f"refs/heads/{branch}"}

    def create_pull_request(self, repo, title, body, head, base):
        number = len(self.pull_requests) + 1
        self.pull_requests.append(
            {"title": title, "body": body, "head": head, "base": base}
        )
        return {"html_url": f"https://github.com/{repo}/pull/{number}"}

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def fake_github():
    """Provide a remote repository with a small Jekyll site."""
    return FakeGitHub(
        {
            "index.html": "<h1>Home</h1>",
            "_config.yml": "title: Blog\n",
            "_posts/2024-01-01-hello.md": "Hello",
            "assets/images/logo.png": b"\x89PNG\r\n",
            ".gitignore": "drafts/\n",
        }
    )


@pytest.fixture
def temp_dir():
    """Provide a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    """Provide a workspace store in a temporary directory."""
    return WorkspaceStore(temp_dir / "state")


@pytest.fixture
def make_github():
    """Provide a factory for in-memory remotes."""
    return FakeGitHub
