"""Tests for post publishing, template scaffolding and pull requests."""

import io
from datetime import datetime, timezone

import pytest
from PIL import Image

from pybuildr.content import (
    ContentPublisher,
    Post,
    pull_request_branch_name,
    render_post,
)
from pybuildr.exceptions import ImageTooLargeError
from pybuildr.models import SyncTarget
from pybuildr.sync.tree import tree_from_paths
from pybuildr.utils import to_data_url

TARGET = SyncTarget(repo="octocat/blog", branch="main")
NOW = datetime(2024, 5, 1, 12, 30, 5, 123000, tzinfo=timezone.utc)


def _image_data_url() -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (800, 400), color=(200, 10, 10)).save(buffer, format="PNG")
    return to_data_url(buffer.getvalue(), "image/png")


class TestRenderPost:
    """Tests for front matter rendering."""

    def test_front_matter(self):
        post = Post(
            title='Say "hi"', slug="hi", content="Body", author="Ann", categories="x y"
        )

        text = render_post(post, "/assets/images/hi.webp", NOW)

        assert text.startswith("---\n")
        assert 'title: "Say \\"hi\\""' in text
        assert 'author: "Ann"' in text
        assert f"date: {NOW.isoformat()}" in text
        assert "categories: x y" in text
        assert 'image: "/assets/images/hi.webp"' in text
        assert text.endswith("---\n\nBody")

    def test_missing_image(self):
        text = render_post(Post(title="T", slug="t", content=""), None, NOW)

        assert 'image: ""' in text


class TestPublishPost:
    """Tests for ContentPublisher.publish_post."""

    def test_commits_post(self, make_github):
        remote = make_github({})

        result = ContentPublisher(remote, TARGET).publish_post(
            Post(title="Hello", slug="hello", content="Hi there"), now=NOW
        )

        assert result.filename == "2024-05-01-hello.md"
        stored = remote.branches["main"]["_posts/2024-05-01-hello.md"]
        assert stored.decode("utf-8") == result.content
        assert remote.calls[-1][2] == 'buildr: publish post "Hello"'

    def test_required_directories_exist_first(self, make_github):
        remote = make_github({})

        ContentPublisher(remote, TARGET).publish_post(
            Post(title="Hello", slug="hello", content=""), now=NOW
        )

        assert [call[1] for call in remote.calls] == [
            "_posts/.gitkeep",
            "assets/images/.gitkeep",
            "_posts/2024-05-01-hello.md",
        ]

    def test_data_url_image_is_compressed_and_committed(self, make_github):
        remote = make_github({})
        post = Post(title="Pic", slug="pic", content="", main_image=_image_data_url())

        result = ContentPublisher(remote, TARGET).publish_post(post, now=NOW)

        assert result.main_image == "/assets/images/pic.webp"
        data = remote.branches["main"]["assets/images/pic.webp"]
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == "WEBP"
            assert img.size == (512, 256)
        assert ("put", "assets/images/pic.webp", "buildr: add image for pic") in (
            remote.calls
        )
        assert 'image: "/assets/images/pic.webp"' in result.content

    def test_image_url_is_kept(self, make_github):
        remote = make_github({})
        post = Post(
            title="Pic", slug="pic", content="", main_image="https://x.test/a.png"
        )

        result = ContentPublisher(remote, TARGET).publish_post(post, now=NOW)

        assert result.main_image == "https://x.test/a.png"
        assert "assets/images/pic.webp" not in remote.branches["main"]

    def test_oversized_image_commits_nothing(self, make_github, monkeypatch):
        remote = make_github({})

        def too_large(data):
            raise ImageTooLargeError("Please use a smaller image.")

        monkeypatch.setattr("pybuildr.content.compress_image", too_large)
        post = Post(title="Pic", slug="pic", content="", main_image=_image_data_url())

        with pytest.raises(ImageTooLargeError):
            ContentPublisher(remote, TARGET).publish_post(post, now=NOW)

        posts = [p for p in remote.branches["main"] if p.startswith("_posts/2024")]
        assert posts == []


class TestScaffoldTemplate:
    """Tests for ContentPublisher.scaffold_template."""

    def test_commits_keep_files(self, make_github):
        remote = make_github({})

        paths = ContentPublisher(remote, TARGET).scaffold_template()

        assert paths == ["_posts/.gitkeep", "assets/images/.gitkeep", "_data/.gitkeep"]
        assert remote.calls[0][2] == "buildr: scaffold template - add _posts/.gitkeep"
        assert all(remote.branches["main"][path] == b"" for path in paths)

    def test_existing_keep_file_is_updated(self, make_github):
        remote = make_github({"_posts/.gitkeep": "old"})

        ContentPublisher(remote, TARGET).scaffold_template()

        assert remote.branches["main"]["_posts/.gitkeep"] == b""


class TestCreatePullRequest:
    """Tests for ContentPublisher.create_pull_request."""

    def test_branch_name(self):
        assert (
            pull_request_branch_name(NOW) == "jekyll-buildr-update-20240501T123005123Z"
        )

    def test_commits_tree_to_new_branch(self, fake_github):
        tree = tree_from_paths(["index.html", "_posts/new.md"])
        contents = {"index.html": "<h1>New</h1>", "_posts/new.md": "New post"}

        url = ContentPublisher(fake_github, TARGET).create_pull_request(
            tree, "Update site", "Changes", file_contents=contents, now=NOW
        )

        head = "jekyll-buildr-update-20240501T123005123Z"
        assert url == "https://github.com/octocat/blog/pull/1"
        assert fake_github.branches[head]["_posts/new.md"] == b"New post"
        assert fake_github.branches["main"]["index.html"] == b"<h1>Home</h1>"
        assert fake_github.pull_requests == [
            {"title": "Update site", "body": "Changes", "head": head, "base": "main"}
        ]
        assert ("put", "index.html", "buildr: update index.html") in fake_github.calls

    def test_file_without_content_is_skipped(self, fake_github, caplog):
        tree = tree_from_paths(["index.html", "unknown.md"])

        ContentPublisher(fake_github, TARGET).create_pull_request(
            tree, "T", "", file_contents={"index.html": "x"}, now=NOW
        )

        assert "Skipping commit for unknown.md" in caplog.text
        assert not any(call[1] == "unknown.md" for call in fake_github.calls)

    def test_empty_folder_gets_placeholder(self, fake_github):
        tree = tree_from_paths(["index.html"])
        tree.append(tree_from_paths(["docs/x"])[0])
        tree[-1].children.clear()

        ContentPublisher(fake_github, TARGET).create_pull_request(
            tree, "T", "", file_contents={"index.html": "x"}, now=NOW
        )

        head = pull_request_branch_name(NOW)
        assert fake_github.branches[head]["docs/.gitkeep"] == b""
