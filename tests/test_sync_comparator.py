"""Tests for the snapshot comparator."""

from pybuildr.models import FileNode, SyncDiff
from pybuildr.sync.comparator import SnapshotComparator, diff_snapshot, prune_unchanged
from pybuildr.sync.ignore import compile_rules
from pybuildr.sync.tree import build_file_tree, tree_from_paths
from pybuildr.utils import git_blob_sha


def _upserts(diff: SyncDiff) -> list[tuple[str, str]]:
    return [(entry.path, entry.content) for entry in diff.to_upsert]


class TestDiffSnapshot:
    """Tests for the delete and upsert sets."""

    def test_deleted_changed_and_new_files(self):
        """b.md was removed locally, a.md kept and c.md added."""
        previous = {"a.md": "sha1", "b.md": "sha2"}
        tree = tree_from_paths(["a.md", "c.md"])
        contents = {"a.md": "X", "c.md": "Y"}

        diff = diff_snapshot(previous, tree, file_contents=contents)

        assert diff.to_delete == [("b.md", "sha2")]
        assert _upserts(diff) == [("a.md", "X"), ("c.md", "Y")]

    def test_ignored_file_is_not_deleted(self):
        """An ignored path missing locally is left alone on the remote."""
        previous = {"a.md": "sha1", "b.md": "sha2"}
        tree = tree_from_paths(["a.md", "c.md"])
        contents = {"a.md": "X", "c.md": "Y"}

        diff = diff_snapshot(
            previous, tree, ignore_rules=compile_rules("b.md"), file_contents=contents
        )

        assert diff.to_delete == []
        assert _upserts(diff) == [("a.md", "X"), ("c.md", "Y")]

    def test_ignored_file_is_not_uploaded(self):
        tree = tree_from_paths(["a.md", "_site/index.html", "debug.log"])
        contents = {"a.md": "A", "_site/index.html": "<html>", "debug.log": "x"}

        rules = compile_rules("_site/\n*.log")
        diff = diff_snapshot({}, tree, ignore_rules=rules, file_contents=contents)

        assert _upserts(diff) == [("a.md", "A")]

    def test_empty_folder_gets_placeholder(self):
        tree = build_file_tree([("docs", "tree")])

        diff = diff_snapshot({}, tree)

        assert _upserts(diff) == [("docs/.gitkeep", "")]

    def test_synced_placeholder_is_not_deleted(self):
        """A placeholder that was synced stays as long as the folder is empty."""
        tree = build_file_tree([("docs", "tree")])

        diff = diff_snapshot({"docs/.gitkeep": git_blob_sha("")}, tree)

        assert diff.to_delete == []

    def test_images_are_never_deleted_or_uploaded(self):
        previous = {"assets/logo.png": "sha-img"}
        tree = [FileNode(name="photo.JPG", path="photo.JPG", type="file")]

        diff = diff_snapshot(previous, tree, file_contents={"photo.JPG": "data"})

        assert diff.to_delete == []
        assert diff.to_upsert == []

    def test_unresolved_content_is_skipped(self, caplog):
        tree = tree_from_paths(["a.md", "b.md"])

        diff = diff_snapshot({}, tree, file_contents={"a.md": "A"})

        assert _upserts(diff) == [("a.md", "A")]
        assert diff.skipped == ["b.md"]
        assert "Skipping commit for b.md due to undefined content." in caplog.text

    def test_node_content_is_used_as_fallback(self):
        tree = [FileNode(name="x.md", path="x.md", type="file", content="inline")]

        diff = diff_snapshot({}, tree)

        assert _upserts(diff) == [("x.md", "inline")]

    def test_contents_map_wins_over_node_content(self):
        tree = [FileNode(name="x.md", path="x.md", type="file", content="old")]

        diff = diff_snapshot({}, tree, file_contents={"x.md": "new"})

        assert _upserts(diff) == [("x.md", "new")]

    def test_upsert_entry_names(self):
        tree = tree_from_paths(["docs/guide.md"])

        diff = diff_snapshot({}, tree, file_contents={"docs/guide.md": "G"})

        assert diff.to_upsert[0].name == "guide.md"

    def test_upserts_expect_the_baseline_sha(self):
        """Known files expect their synced SHA, new files expect no file."""
        tree = tree_from_paths(["a.md", "c.md"])

        diff = diff_snapshot(
            {"a.md": "sha1"}, tree, file_contents={"a.md": "X", "c.md": "Y"}
        )

        assert [entry.expected_sha for entry in diff.to_upsert] == ["sha1", ""]

    def test_comparator_class_matches_function(self):
        previous = {"old.md": "s"}
        tree = tree_from_paths(["new.md"])
        contents = {"new.md": "N"}

        diff = SnapshotComparator().diff(previous, tree, contents)

        assert diff.to_delete == [("old.md", "s")]
        assert _upserts(diff) == [("new.md", "N")]


class TestPruneUnchanged:
    """Tests for pruning upserts that match the baseline."""

    def test_diff_after_sync_is_empty(self):
        """Right after a publish nothing needs to be sent again."""
        contents = {"a.md": "A", "dir/b.md": "B"}
        tree = tree_from_paths(contents)
        baseline = {path: git_blob_sha(text) for path, text in contents.items()}

        diff = prune_unchanged(
            diff_snapshot(baseline, tree, file_contents=contents), baseline
        )

        assert diff.is_empty

    def test_changed_file_is_kept(self):
        contents = {"a.md": "A2", "b.md": "B"}
        baseline = {"a.md": git_blob_sha("A"), "b.md": git_blob_sha("B")}

        diff = prune_unchanged(
            diff_snapshot(baseline, tree_from_paths(contents), file_contents=contents),
            baseline,
        )

        assert _upserts(diff) == [("a.md", "A2")]

    def test_deletes_and_skips_are_kept(self):
        original = SyncDiff(to_delete=[("x.md", "s")], skipped=["y.md"])

        pruned = prune_unchanged(original, {})

        assert pruned.to_delete == [("x.md", "s")]
        assert pruned.skipped == ["y.md"]
        assert pruned is not original
