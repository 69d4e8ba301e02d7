"""Custom exceptions for pybuildr."""

from typing import Optional


class BuildrError(Exception):
    """Base exception for all pybuildr errors."""


class BuildrConfigError(BuildrError):
    """Required configuration (token, repository, branch) is missing."""


class BuildrAPIError(BuildrError):
    """A request to the GitHub API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BuildrAuthenticationError(BuildrAPIError):
    """The token is missing, expired or invalid."""


class BuildrPermissionError(BuildrAPIError):
    """The token is valid but lacks access to the resource."""


class BuildrNotFoundError(BuildrAPIError):
    """The repository, branch or path does not exist."""


class BuildrRateLimitError(BuildrAPIError):
    """GitHub rejected the request because of rate limiting."""


class BuildrNetworkError(BuildrAPIError):
    """The API could not be reached."""


class BuildrInvalidResponseError(BuildrAPIError):
    """The API answered with something that is not the expected JSON."""


class FingerprintMismatchError(BuildrAPIError):
    """The remote file changed since the last sync.

    Raised when a delete or update carries a blob SHA that no longer
    matches the file on the branch.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.path = path


class ImageTooLargeError(BuildrError):
    """An image is still above the size ceiling after compression."""


class RevisionConflictError(BuildrError):
    """Another publish replaced the synced baseline first."""
