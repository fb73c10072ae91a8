"""
Text helpers shared by the Java scanner.

- TextInterval: inclusive [start, end] character range
- Comment spans found with a single left-to-right pass
- Whitespace expansion around an index (used to build replace/insert ranges)
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class TextInterval:
    """
    Interval of character indexes in a text, both ends included.

    An interval is never empty: it always covers at least one character,
    so ``start <= end`` and both are non negative.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"The starting index cannot be negative, but {self.start} has been provided")
        if self.end < 0:
            raise ValueError(f"The ending index cannot be negative, but {self.end} has been provided")
        if self.end < self.start:
            raise ValueError(
                f"The starting index must be less or equal to the ending index "
                f"but [{self.start},{self.end}] has been provided"
            )

    @classmethod
    def of(cls, start: int, end: int) -> "TextInterval":
        return cls(start, end)

    def size(self) -> int:
        return self.end - self.start + 1

    def includes(self, index: int) -> bool:
        return self.start <= index <= self.end

    def lies_within(self, other: "TextInterval") -> bool:
        return other.start <= self.start and self.end <= other.end

    def to_slice(self) -> slice:
        """
        Edit range for this interval.

        Editors address a replacement by boundary positions, so the end
        index is used as the (exclusive) boundary: whitespace intervals end
        on the character that must survive the edit (a newline or a brace).
        """
        return slice(self.start, self.end)

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}

    def __str__(self) -> str:
        return f"[{self.start},{self.end}]"


class CommentType(str, Enum):
    SINGLE_LINE = "single_line"  # // ...
    MULTI_LINE = "multi_line"  # /* ... */
    JAVA_DOC = "java_doc"  # /** ... */


@dataclass(frozen=True)
class Comment:
    type: CommentType
    interval: TextInterval

    @classmethod
    def of(cls, comment_type: CommentType, start: int, end: int) -> "Comment":
        return cls(comment_type, TextInterval.of(start, end))


_WHITESPACE_RE = re.compile(r"\s")
_ONLY_WHITESPACE_RE = re.compile(r"^\s*$")
_PACKAGE_RE = re.compile(r"package\s+([^\s;]+)")


def _is_whitespace(ch: str) -> bool:
    return bool(_WHITESPACE_RE.match(ch))


def is_only_whitespace(text: str) -> bool:
    return bool(_ONLY_WHITESPACE_RE.match(text))


def _comment_type_at(text: str, index: int) -> Optional[CommentType]:
    # index points to the character right after a '/'
    ch = text[index]
    if ch == "/":
        return CommentType.SINGLE_LINE
    if ch == "*":
        if index + 1 < len(text) and text[index + 1] == "*":
            return CommentType.JAVA_DOC
        return CommentType.MULTI_LINE
    return None


def _move_to_end_of_line(text: str, index: int) -> int:
    pos = text.find("\n", index)
    return pos if pos != -1 else index


def _move_to_end_of_comment(text: str, index: int) -> int:
    pos = text.find("*/", index)
    return pos + 1 if pos != -1 else index


def find_comments(text: str) -> List[Comment]:
    """
    Return every comment of the text, ordered by starting index.

    Not a real Java lexer: comment markers inside string or char literals
    are reported as comments too. An unterminated comment ends on the
    character right after its opening '/'.
    """
    comments: List[Comment] = []
    for i in range(len(text) - 1):
        if text[i] != "/":
            continue

        comment_type = _comment_type_at(text, i + 1)
        if comment_type is CommentType.SINGLE_LINE:
            comments.append(Comment.of(comment_type, i, _move_to_end_of_line(text, i + 1)))
        elif comment_type is not None:
            comments.append(Comment.of(comment_type, i, _move_to_end_of_comment(text, i + 1)))

    return comments


def belongs_to_a_comment(index: int, comments: List[Comment]) -> bool:
    return any(c.interval.includes(index) for c in comments)


def include_leading_whitespaces(text: str, index: int) -> int:
    """Move backwards from ``index`` while the previous characters are whitespace."""
    if index <= 0:
        return index

    for i in range(min(index, len(text)) - 1, -1, -1):
        if not _is_whitespace(text[i]):
            return i + 1
    return 0


def include_trailing_whitespaces(text: str, index: int) -> int:
    """
    Move forwards from ``index`` while whitespace is found.

    Returns the position of the last newline seen before the next
    non-whitespace character, so that the indentation of the following
    line is kept out of the range.
    """
    if index >= len(text) - 1:
        return index

    last_newline = index
    for i in range(index, len(text)):
        ch = text[i]
        if ch == "\n":
            last_newline = i
        elif not _is_whitespace(ch):
            return last_newline

    return len(text) - 1


def get_whitespace_interval(text: str, index: int) -> TextInterval:
    """Interval of whitespace surrounding ``index`` (the index itself is always covered)."""
    start = include_leading_whitespaces(text, index)
    end = include_trailing_whitespaces(text, index)
    return TextInterval.of(start, end)


def get_package_name(text: str) -> str:
    m = _PACKAGE_RE.search(text)
    return m.group(1) if m else ""


def safe_read_text(path: str) -> str:
    # Try UTF-8, fall back to latin-1 to avoid crashing on weird encodings.
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        with open(path, "r", encoding="latin-1") as f:
            return f.read()
