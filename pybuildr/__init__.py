"""pybuildr - edit Jekyll sites in workspaces and publish them to GitHub."""

from .api import GitHubClient
from .content import ContentPublisher, Post, PostPublishResult
from .exceptions import (
    BuildrAPIError,
    BuildrAuthenticationError,
    BuildrConfigError,
    BuildrError,
    BuildrInvalidResponseError,
    BuildrNetworkError,
    BuildrNotFoundError,
    BuildrPermissionError,
    BuildrRateLimitError,
    FingerprintMismatchError,
    ImageTooLargeError,
    RevisionConflictError,
)
from .models import FileNode, OperationResult, SyncTarget, Workspace
from .workspace import WorkspaceService

__all__ = [
    "GitHubClient",
    "ContentPublisher",
    "Post",
    "PostPublishResult",
    "WorkspaceService",
    "FileNode",
    "OperationResult",
    "SyncTarget",
    "Workspace",
    "BuildrError",
    "BuildrAPIError",
    "BuildrAuthenticationError",
    "BuildrConfigError",
    "BuildrInvalidResponseError",
    "BuildrNetworkError",
    "BuildrNotFoundError",
    "BuildrPermissionError",
    "BuildrRateLimitError",
    "FingerprintMismatchError",
    "ImageTooLargeError",
    "RevisionConflictError",
]
