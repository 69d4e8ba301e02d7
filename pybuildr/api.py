"""API client for the GitHub REST API."""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    BuildrAPIError,
    BuildrAuthenticationError,
    BuildrConfigError,
    BuildrInvalidResponseError,
    BuildrNetworkError,
    BuildrNotFoundError,
    BuildrPermissionError,
    BuildrRateLimitError,
    FingerprintMismatchError,
)
from .models import RemoteTreeItem
from .utils import KEEP_FILE_NAME, content_to_bytes, normalize_path

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Client for the parts of the GitHub API a site repository needs.

    Every call is attempted exactly once; failures surface as exceptions
    from :mod:`pybuildr.exceptions`.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize GitHub API client.

        Args:
            token: Optional GitHub token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.token = token or config.token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.timeout = timeout

        if not self.token:
            raise BuildrConfigError(
                "GitHub token not configured. Please set GITHUB_TOKEN environment "
                "variable or run `pybuildr init`."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        """Extract GitHub's error message from a response body."""
        try:
            if response.content:
                data = response.json()
                if isinstance(data, dict):
                    return data.get("message") or data.get("error")
        except ValueError:
            pass
        return None

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> BuildrAPIError:
        """Map an HTTP error response to the exception to raise.

        Args:
            e: The HTTP error exception

        Returns:
            The exception matching the status code
        """
        response = e.response
        status_code = response.status_code
        detail = self._error_message(response)

        if status_code == 401:
            return BuildrAuthenticationError(
                "Invalid GitHub token or unauthorized access", status_code
            )
        if status_code == 429 or (
            status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
        ):
            return BuildrRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )
        if status_code == 403:
            message = "Access forbidden - check the repository permissions"
            if detail:
                message = f"{message}: {detail}"
            return BuildrPermissionError(message, status_code)
        if status_code == 404:
            return BuildrNotFoundError("Resource not found", status_code)
        if status_code == 409 or (
            status_code == 422 and detail is not None and "sha" in detail.lower()
        ):
            return FingerprintMismatchError(
                detail or "File changed on the remote since the last sync",
                status_code=status_code,
            )

        message = f"API request failed with status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        return BuildrAPIError(message, status_code)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty responses)

        Raises:
            BuildrAPIError: If the request fails
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()

        try:
            logger.debug(f"{method} {url}")
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise BuildrNetworkError(f"Network error: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if response.content and "json" not in content_type:
            raise BuildrInvalidResponseError(
                f"Unexpected response type: {content_type}"
            )

        if response.content:
            try:
                return response.json()
            except ValueError as e:
                raise BuildrInvalidResponseError(
                    "Invalid JSON response from GitHub"
                ) from e
        return {}

    @staticmethod
    def _contents_endpoint(repo: str, path: str) -> str:
        return f"/repos/{repo}/contents/{quote(normalize_path(path), safe='/')}"

    # =========================
    # Tree and Blob Operations
    # =========================

    def list_tree(self, repo: str, branch: str) -> list[RemoteTreeItem]:
        """List every file and folder on a branch.

        Args:
            repo: Repository in the form owner/name
            branch: Branch name

        Returns:
            RemoteTreeItem list in GitHub's listing order
        """
        result = self._request(
            "GET",
            f"/repos/{repo}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )
        if not isinstance(result, dict) or "tree" not in result:
            raise BuildrInvalidResponseError("Tree response has no 'tree' field")
        if result.get("truncated"):
            logger.warning(
                f"Tree listing for {repo}@{branch} was truncated by GitHub; "
                "some files are missing"
            )
        return [RemoteTreeItem.from_api_response(item) for item in result["tree"]]

    def get_blob(self, repo: str, sha: str) -> bytes:
        """Fetch the raw bytes of a blob.

        Args:
            repo: Repository in the form owner/name
            sha: Blob SHA

        Returns:
            Blob content
        """
        result = self._request("GET", f"/repos/{repo}/git/blobs/{sha}")
        content = result.get("content", "")
        encoding = result.get("encoding", "base64")
        if encoding == "base64":
            return base64.b64decode(content)
        if encoding in ("utf-8", "utf8"):
            return str(content).encode("utf-8")
        raise BuildrInvalidResponseError(f"Unsupported blob encoding: {encoding}")

    # =========================
    # Contents Operations
    # =========================

    def get_file_sha(self, repo: str, branch: str, path: str) -> str | None:
        """Get the blob SHA of a file on a branch.

        Returns:
            The SHA, or None if no file exists at the path
        """
        try:
            result = self._request(
                "GET", self._contents_endpoint(repo, path), params={"ref": branch}
            )
        except BuildrNotFoundError:
            return None
        if isinstance(result, dict) and result.get("type") == "file":
            return result.get("sha")
        return None

    def path_exists(self, repo: str, branch: str, path: str) -> bool:
        """Check whether a file or directory exists on a branch."""
        try:
            self._request(
                "GET", self._contents_endpoint(repo, path), params={"ref": branch}
            )
        except BuildrNotFoundError:
            return False
        return True

    def put_file(
        self,
        repo: str,
        branch: str,
        path: str,
        content: str | bytes,
        message: str,
        sha: str | None = None,
    ) -> str:
        """Create or update a file in one commit.

        Text is committed as UTF-8, bytes as is. A data URL string is
        decoded and committed as binary.

        Args:
            repo: Repository in the form owner/name
            branch: Branch to commit to
            path: File path in the repository
            content: File content
            message: Commit message
            sha: Expected SHA of the file being replaced. Looked up when not
                given.

        Returns:
            Blob SHA of the new file version
        """
        if sha is None:
            sha = self.get_file_sha(repo, branch, path)

        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content_to_bytes(content)).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha

        try:
            result = self._request(
                "PUT", self._contents_endpoint(repo, path), json=payload
            )
        except FingerprintMismatchError as e:
            e.path = path
            raise
        return str(result.get("content", {}).get("sha", ""))

    def delete_file(
        self, repo: str, branch: str, path: str, sha: str, message: str
    ) -> None:
        """Delete a file, provided it still has the expected SHA.

        Raises:
            FingerprintMismatchError: If the file changed remotely
            BuildrNotFoundError: If the file does not exist
        """
        payload = {"message": message, "sha": sha, "branch": branch}
        try:
            self._request("DELETE", self._contents_endpoint(repo, path), json=payload)
        except FingerprintMismatchError as e:
            e.path = path
            raise

    def ensure_directory(self, repo: str, branch: str, path: str) -> bool:
        """Make sure a directory exists, committing a keep-file if needed.

        Returns:
            True if the directory had to be created
        """
        path = normalize_path(path)
        if self.path_exists(repo, branch, path):
            return False
        logger.debug(f"Creating directory {path} on {repo}@{branch}")
        self.put_file(
            repo,
            branch,
            f"{path}/{KEEP_FILE_NAME}",
            "",
            message=f"buildr: create directory {path}",
            sha="",
        )
        return True

    # =========================
    # Branch and Pull Request Operations
    # =========================

    def get_branch_sha(self, repo: str, branch: str) -> str:
        """Get the commit SHA a branch points to."""
        result = self._request("GET", f"/repos/{repo}/git/ref/heads/{branch}")
        try:
            return str(result["object"]["sha"])
        except (KeyError, TypeError) as e:
            raise BuildrInvalidResponseError("Ref response has no commit SHA") from e

    def create_branch(self, repo: str, branch: str, sha: str) -> Any:
        """Create a branch pointing at a commit."""
        return self._request(
            "POST",
            f"/repos/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> Any:
        """Open a pull request from head into base."""
        return self._request(
            "POST",
            f"/repos/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )

    # =========================
    # User Operations
    # =========================

    def get_authenticated_user(self) -> Any:
        """Get the user the token belongs to."""
        return self._request("GET", "/user")
