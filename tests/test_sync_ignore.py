"""Tests for gitignore-style rule matching."""

import pytest

from pybuildr.sync.ignore import (
    EMPTY_RULES,
    IgnoreRule,
    IgnoreRuleSet,
    compile_rules,
    matches,
)


class TestIgnoreRuleParse:
    """Tests for parsing single ignore lines."""

    @pytest.mark.parametrize("line", ["", "   ", "# comment", "/", "!"])
    def test_blank_and_comment_lines(self, line):
        """Blank lines, comments and bare separators produce no rule."""
        assert IgnoreRule.parse(line) is None

    def test_negation(self):
        rule = IgnoreRule.parse("!keep.log")
        assert rule.negated is True
        assert rule.pattern == "keep.log"

    def test_escaped_hash_and_bang(self):
        """A backslash makes a leading # or ! literal."""
        assert IgnoreRule.parse("\\#notes").matches("#notes")
        rule = IgnoreRule.parse("\\!important")
        assert rule.negated is False
        assert rule.matches("!important")

    def test_directory_only(self):
        rule = IgnoreRule.parse("build/")
        assert rule.dir_only is True
        assert rule.matches("build", is_dir=True)
        assert not rule.matches("build", is_dir=False)

    def test_trailing_spaces_are_ignored(self):
        rule = IgnoreRule.parse("notes.txt   ")
        assert rule.matches("notes.txt")


class TestIgnoreRuleSet:
    """Tests for rule precedence and path matching."""

    def test_empty_rules_ignore_nothing(self):
        assert not EMPTY_RULES
        assert EMPTY_RULES.is_ignored("anything.md") is False
        assert compile_rules(None).is_ignored("a.md") is False
        assert compile_rules("").is_ignored("a.md") is False

    def test_exact_file_name(self):
        rules = compile_rules("b.md")
        assert rules.is_ignored("b.md")
        assert rules.is_ignored("docs/b.md")
        assert not rules.is_ignored("a.md")

    def test_unanchored_glob_matches_at_any_depth(self):
        rules = compile_rules("*.log")
        assert rules.is_ignored("debug.log")
        assert rules.is_ignored("logs/today/debug.log")
        assert not rules.is_ignored("debug.log.md")

    def test_anchored_pattern(self):
        """A pattern with a slash only matches relative to the root."""
        rules = compile_rules("/drafts\ndocs/internal.md")
        assert rules.is_ignored("drafts/post.md")
        assert not rules.is_ignored("blog/drafts/post.md")
        assert rules.is_ignored("docs/internal.md")
        assert not rules.is_ignored("x/docs/internal.md")

    def test_directory_rule_ignores_contents(self):
        rules = compile_rules("_site/")
        assert rules.is_ignored("_site/index.html")
        assert rules.is_ignored("_site/assets/main.css")
        assert not rules.is_ignored("_site")
        assert rules.is_ignored("_site", is_dir=True)

    def test_negation_re_includes(self):
        rules = compile_rules("*.log\n!keep.log")
        assert rules.is_ignored("debug.log")
        assert not rules.is_ignored("keep.log")

    def test_later_rule_wins(self):
        rules = compile_rules("!keep.log\n*.log")
        assert rules.is_ignored("keep.log")

    def test_negation_cannot_escape_ignored_directory(self):
        rules = compile_rules("vendor/\n!vendor/keep.js")
        assert rules.is_ignored("vendor/keep.js")

    def test_double_star(self):
        rules = compile_rules("**/cache\nassets/**/*.map\nlogs/**")
        assert rules.is_ignored("cache")
        assert rules.is_ignored("a/b/cache")
        assert rules.is_ignored("assets/app.map")
        assert rules.is_ignored("assets/js/vendor/app.map")
        assert rules.is_ignored("logs/2024/01.txt")
        assert not rules.is_ignored("assets/app.js")

    def test_question_mark_and_brackets(self):
        rules = compile_rules("file?.txt\ntmp[0-9]\n[!a]x")
        assert rules.is_ignored("file1.txt")
        assert not rules.is_ignored("file10.txt")
        assert rules.is_ignored("tmp7")
        assert not rules.is_ignored("tmpx")
        assert rules.is_ignored("bx")
        assert not rules.is_ignored("ax")

    def test_star_does_not_cross_directories(self):
        rules = compile_rules("docs/*.md")
        assert rules.is_ignored("docs/a.md")
        assert not rules.is_ignored("docs/sub/a.md")

    def test_rules_are_immutable_tuple(self):
        rules = IgnoreRuleSet.compile("a\nb\n# c")
        assert len(rules) == 2
        assert isinstance(rules.rules, tuple)

    def test_matches_helper(self):
        rules = compile_rules("secret/")
        assert matches(rules, "secret/key.txt")
        assert matches(rules, "secret", is_dir=True)
        assert not matches(rules, "public/key.txt")
