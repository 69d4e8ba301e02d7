"""Unit tests for utility functions."""

import pytest

from pybuildr.utils import (
    content_digest,
    content_to_bytes,
    decode_data_url,
    format_size,
    git_blob_sha,
    is_data_url,
    normalize_path,
    parent_paths,
    path_name,
    split_data_url,
    to_data_url,
)


class TestPaths:
    """Tests for path helpers."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("/docs//index.md", "docs/index.md"),
            ("assets\\images\\", "assets/images"),
            ("", ""),
            ("a.md", "a.md"),
        ],
    )
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_path_name(self):
        assert path_name("a/b/c.md") == "c.md"
        assert path_name("c.md") == "c.md"

    def test_parent_paths(self):
        assert parent_paths("a/b/c.md") == ["a", "a/b"]
        assert parent_paths("c.md") == []


class TestDataUrls:
    """Tests for data URL helpers."""

    def test_to_data_url(self):
        assert to_data_url(b"hi", "text/plain") == "data:text/plain;base64,aGk="

    def test_split_and_decode(self):
        url = to_data_url(b"\x00\xff", "image/webp")

        assert split_data_url(url) == ("image/webp", "AP8=")
        assert decode_data_url(url) == b"\x00\xff"

    def test_split_rejects_plain_text(self):
        with pytest.raises(ValueError, match="not a data URL"):
            split_data_url("hello")

    def test_is_data_url(self):
        assert is_data_url("data:image/png;base64,AA==")
        assert not is_data_url("plain text")
        assert not is_data_url(None)


class TestContentToBytes:
    """Tests for content_to_bytes."""

    def test_text_is_utf8(self):
        assert content_to_bytes("é") == "é".encode("utf-8")

    def test_bytes_pass_through(self):
        assert content_to_bytes(b"\x01") == b"\x01"

    def test_data_url_is_decoded(self):
        assert content_to_bytes(to_data_url(b"\x01\x02")) == b"\x01\x02"


class TestGitBlobSha:
    """Tests for git_blob_sha."""

    def test_known_values(self):
        """Values match `git hash-object`."""
        assert git_blob_sha("") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
        assert git_blob_sha("hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"

    def test_text_and_bytes_agree(self):
        assert git_blob_sha("abc") == git_blob_sha(b"abc")

    def test_data_url_hashes_payload(self):
        assert git_blob_sha(to_data_url(b"abc")) == git_blob_sha(b"abc")


class TestContentDigest:
    """Tests for content_digest."""

    def test_length_and_stability(self):
        digest = content_digest("post")

        assert len(digest) == 16
        assert digest == content_digest("post")
        assert digest != content_digest("post!")


class TestFormatSize:
    """Tests for format_size function."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (1024 * 1024, "1.0 MB"),
            (3 * 1024 * 1024 * 1024, "3.0 GB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected
