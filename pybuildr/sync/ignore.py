"""Gitignore-style rule matching for workspace paths.

The workspace's ``.gitignore`` content is compiled once per sync into an
immutable :class:`IgnoreRuleSet`. Matching follows gitignore precedence:

- Later patterns override earlier ones
- ``!pattern`` re-includes a previously excluded path
- ``pattern/`` only matches directories (and therefore everything in them)
- A pattern containing ``/`` (other than a trailing one) is anchored to the
  workspace root, otherwise it matches at any depth
- ``*``, ``?``, ``[abc]`` and ``**`` behave as in git

Examples:
    >>> rules = IgnoreRuleSet.compile("_site/\\n*.log\\n!keep.log")
    >>> rules.is_ignored("_site/index.html")
    True
    >>> rules.is_ignored("debug.log")
    True
    >>> rules.is_ignored("keep.log")
    False
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


def _translate_segment_glob(pattern: str) -> str:
    """Translate a glob without ``**`` handling into a regex fragment.

    ``*`` and ``?`` never cross a path separator.
    """
    result: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "\\" and i + 1 < n:
            result.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            result.append("[^/]*")
        elif char == "?":
            result.append("[^/]")
        elif char == "[":
            start = i + 1
            if pattern[start : start + 1] in ("!", "^"):
                start += 1
            # A "]" directly after the opening bracket is a literal
            end = pattern.find("]", start + 1)
            if end == -1:
                result.append(re.escape(char))
            else:
                body = pattern[i + 1 : end]
                if body[:1] == "!":
                    body = "^" + body[1:]
                result.append(f"[{body}]")
                i = end
        else:
            result.append(re.escape(char))
        i += 1
    return "".join(result)


def _translate(pattern: str, anchored: bool) -> "re.Pattern[str]":
    """Compile a normalized gitignore pattern into a regex."""
    segments = pattern.split("/")
    parts: list[str] = []
    last = len(segments) - 1

    for index, segment in enumerate(segments):
        if segment == "**":
            if index == last:
                # "foo/**" matches everything inside foo
                parts.append(".*")
            else:
                # "**/" matches zero or more directories
                parts.append("(?:.*/)?")
            continue
        parts.append(_translate_segment_glob(segment))
        if index != last:
            parts.append("/")

    body = "".join(parts)
    prefix = "^" if anchored else "^(?:.*/)?"
    return re.compile(f"{prefix}{body}$")


@dataclass(frozen=True)
class IgnoreRule:
    """A single compiled gitignore pattern."""

    pattern: str
    """Original pattern text (without negation prefix)"""

    negated: bool
    """True for "!pattern" rules that re-include paths"""

    dir_only: bool
    """True for patterns with a trailing slash"""

    regex: "re.Pattern[str]"
    """Compiled regex matched against the full relative path"""

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        """Parse one line of an ignore file.

        Args:
            line: Raw line from the ignore file

        Returns:
            IgnoreRule, or None for blank lines and comments
        """
        line = line.rstrip("\n").rstrip("\r")

        # Trailing spaces are ignored unless escaped with a backslash
        stripped = line.rstrip(" ")
        if stripped.endswith("\\") and len(stripped) < len(line):
            stripped += " "
        line = stripped

        if not line or line.startswith("#"):
            return None

        negated = False
        if line.startswith("!"):
            negated = True
            line = line[1:]
        elif line.startswith("\\!") or line.startswith("\\#"):
            line = line[1:]

        dir_only = line.endswith("/")
        line = line.rstrip("/")
        if not line:
            return None

        anchored = "/" in line
        line = line.lstrip("/")
        if not line:
            return None

        # "**/foo" matches at any depth, same as an unanchored "foo"
        if line.startswith("**/") and "/" not in line[3:]:
            anchored = False
            line = line[3:]

        return cls(
            pattern=line,
            negated=negated,
            dir_only=dir_only,
            regex=_translate(line, anchored),
        )

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """Check whether this rule's pattern matches a path.

        Args:
            path: Slash-delimited path relative to the workspace root
            is_dir: Whether the path is a directory

        Returns:
            True if the pattern matches (regardless of negation)
        """
        if self.dir_only and not is_dir:
            return False
        return self.regex.match(path) is not None


class IgnoreRuleSet:
    """An immutable, ordered collection of ignore rules."""

    def __init__(self, rules: Optional[list[IgnoreRule]] = None):
        self._rules: tuple[IgnoreRule, ...] = tuple(rules or ())

    @classmethod
    def compile(cls, pattern_text: Optional[str]) -> "IgnoreRuleSet":
        """Compile ignore file content into a rule set.

        Args:
            pattern_text: Content of an ignore file; None or empty text
                produces a rule set that ignores nothing

        Returns:
            IgnoreRuleSet
        """
        rules: list[IgnoreRule] = []
        for line in (pattern_text or "").splitlines():
            rule = IgnoreRule.parse(line)
            if rule is not None:
                rules.append(rule)
        logger.debug(f"Compiled {len(rules)} ignore rule(s)")
        return cls(rules)

    @property
    def rules(self) -> tuple[IgnoreRule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def _last_match(self, path: str, is_dir: bool) -> Optional[bool]:
        """Return the verdict of the last matching rule, or None."""
        for rule in reversed(self._rules):
            if rule.matches(path, is_dir=is_dir):
                return not rule.negated
        return None

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        """Check whether a path is ignored.

        A path inside an ignored directory is always ignored; git does not
        look into excluded directories, so a later negation cannot bring a
        file back from inside one.

        Args:
            path: Slash-delimited path relative to the workspace root
            is_dir: Whether the path itself is a directory

        Returns:
            True if the path is ignored
        """
        if not self._rules:
            return False

        path = path.strip("/")
        parts = path.split("/")
        for i in range(1, len(parts)):
            if self._last_match("/".join(parts[:i]), is_dir=True):
                return True
        return bool(self._last_match(path, is_dir=is_dir))


EMPTY_RULES = IgnoreRuleSet()


def compile_rules(pattern_text: Optional[str]) -> IgnoreRuleSet:
    """Compile ignore file content. See :meth:`IgnoreRuleSet.compile`."""
    return IgnoreRuleSet.compile(pattern_text)


def matches(rule_set: IgnoreRuleSet, path: str, is_dir: bool = False) -> bool:
    """Check a path against a compiled rule set."""
    return rule_set.is_ignored(path, is_dir=is_dir)
