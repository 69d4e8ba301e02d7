"""Utility functions for pybuildr."""

import base64
import hashlib
from typing import Optional, Union

# =============================================================================
# Constants
# =============================================================================

# Name of the empty marker file committed to keep empty folders
KEEP_FILE_NAME: str = ".gitkeep"

# Workspace file holding the ignore rules
IGNORE_FILE_NAME: str = ".gitignore"

# Prefix for content that carries a binary payload as a data URL
DATA_URL_PREFIX: str = "data:"


# =============================================================================
# Path utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a repository path to forward slashes without outer slashes.

    Args:
        path: Path as given by a user or an API

    Returns:
        Normalized path (e.g., "docs/index.md")

    Examples:
        >>> normalize_path("/docs//index.md")
        'docs/index.md'
        >>> normalize_path("assets\\\\images\\\\")
        'assets/images'
    """
    parts = [part for part in path.replace("\\", "/").split("/") if part]
    return "/".join(parts)


def path_name(path: str) -> str:
    """Return the last segment of a slash-delimited path."""
    return path.rsplit("/", 1)[-1]


def parent_paths(path: str) -> list[str]:
    """Return all proper prefixes of a path, shortest first.

    Examples:
        >>> parent_paths("a/b/c.md")
        ['a', 'a/b']
    """
    parts = path.split("/")
    return ["/".join(parts[: i + 1]) for i in range(len(parts) - 1)]


# =============================================================================
# Content utilities
# =============================================================================


def is_data_url(content: Optional[str]) -> bool:
    """Check whether content is a data URL carrying a binary payload."""
    return content is not None and content.startswith(DATA_URL_PREFIX)


def split_data_url(content: str) -> tuple[str, str]:
    """Split a data URL into its media type and base64 payload.

    Args:
        content: Data URL such as "data:image/webp;base64,AAAA"

    Returns:
        Tuple of (media_type, base64_payload)

    Raises:
        ValueError: If the content is not a data URL
    """
    if not is_data_url(content) or "," not in content:
        raise ValueError("Content is not a data URL")
    header, payload = content.split(",", 1)
    media_type = header[len(DATA_URL_PREFIX) :].split(";", 1)[0]
    return media_type, payload


def decode_data_url(content: str) -> bytes:
    """Decode the payload of a base64 data URL."""
    _, payload = split_data_url(content)
    return base64.b64decode(payload)


def to_data_url(data: bytes, media_type: str = "application/octet-stream") -> str:
    """Encode bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"{DATA_URL_PREFIX}{media_type};base64,{encoded}"


def content_to_bytes(content: Union[str, bytes]) -> bytes:
    """Convert workspace content to the bytes that are committed.

    Data URLs are decoded to their binary payload, any other string is
    encoded as UTF-8.
    """
    if isinstance(content, bytes):
        return content
    if is_data_url(content):
        return decode_data_url(content)
    return content.encode("utf-8")


# =============================================================================
# Hash utilities
# =============================================================================


def git_blob_sha(content: Union[str, bytes]) -> str:
    """Calculate the git blob SHA-1 of file content.

    This is the fingerprint GitHub reports for a file in a tree listing,
    so it can be compared directly with a synced baseline.

    Args:
        content: File content (text, data URL or raw bytes)

    Returns:
        Hex encoded SHA-1

    Examples:
        >>> git_blob_sha("")
        'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
    """
    data = content_to_bytes(content)
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


def content_digest(content: str) -> str:
    """Short digest of workspace content, used for journal keys."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
