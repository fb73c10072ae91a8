"""
Heuristic structural scanner for Java source text.

No grammar is involved: comments come from a single character pass,
class headers from a regular expression, and class bodies from a brace
counter that skips comments. The result is a forest of JavaClass nodes
(outer classes owning their inner classes) used to answer:
  - which class encloses a cursor offset
  - where generated code can be inserted safely
  - which text range an existing method occupies (JavaDoc included)

Known leniency: braces, comment markers and the word ``class`` inside
string literals are not recognised as such.
"""
from __future__ import annotations

import re
import weakref
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Pattern, Sequence, Union

from .trace.trace_utils import trace_span
from .utils import (
    Comment,
    CommentType,
    TextInterval,
    belongs_to_a_comment,
    find_comments,
    get_package_name,
    include_leading_whitespaces,
    include_trailing_whitespaces,
    is_only_whitespace,
)


# Header runs from `class` up to (not including) the body-opening brace.
_RE_CLASS_DECL = re.compile(r"\bclass\s+(?P<name>[^\s{]+)[^{]*")


class ClassTreeError(ValueError):
    """Raised when class nodes cannot be assembled into a proper tree."""


def _iter_code_positions(text: str, start: int, stop: int, comments: Sequence[Comment]) -> Iterator[int]:
    """
    Yield the indexes in [start, stop) that are not covered by a comment.

    Two cursors, both moving forward only:
      pos    - the scan position in the text
      cursor - the next comment not consumed yet
    """
    cursor = 0
    while cursor < len(comments) and comments[cursor].interval.end < start:
        cursor += 1

    pos = start
    while pos < stop:
        if cursor < len(comments) and comments[cursor].interval.start <= pos:
            pos = max(pos, comments[cursor].interval.end + 1)
            cursor += 1
            continue
        yield pos
        pos += 1


def move_to_closing_bracket(text: str, index: int, comments: Sequence[Comment]) -> int:
    """
    Return the index of the brace closing the one opened at ``index``.

    Braces inside comments are ignored. When no matching brace exists the
    given ``index`` is returned unchanged: callers must compare the result
    with their input to detect the failure.
    """
    depth = 1
    for pos in _iter_code_positions(text, index + 1, len(text), comments):
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return pos
    return index


def brace_depth(text: str, start: int, stop: int, comments: Sequence[Comment]) -> int:
    """Net brace balance of text[start:stop], comments excluded."""
    depth = 0
    for pos in _iter_code_positions(text, start, stop, comments):
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
    return depth


class JavaClass:
    """
    A class found in the source text.

    signature_interval covers the header (``public class Foo extends Bar``),
    body_interval runs from the opening to the closing brace, class_interval
    is the union of the two. ``comments`` holds only the comments lying in
    the body. Inner classes are owned by their outer class; the link back to
    the outer class is a weak reference set once, when the inner class is
    added: keep the ParsedDocument (or the top level class) alive while its
    inner classes are in use.
    """

    def __init__(
        self,
        name: str,
        signature_interval: TextInterval,
        body_interval: TextInterval,
        comments: List[Comment],
    ) -> None:
        self.name = name
        self.comments = comments
        self.signature_interval = signature_interval
        self.body_interval = body_interval
        self.class_interval = TextInterval.of(signature_interval.start, body_interval.end)
        self.inner_classes: List[JavaClass] = []
        self._outer_ref: Optional[weakref.ReferenceType] = None

    @classmethod
    def of(
        cls,
        name: str,
        signature_interval: TextInterval,
        body_interval: TextInterval,
        comments: Sequence[Comment],
    ) -> "JavaClass":
        class_comments = [c for c in comments if c.interval.lies_within(body_interval)]
        return cls(name, signature_interval, body_interval, class_comments)

    @property
    def outer_class(self) -> Optional["JavaClass"]:
        if self._outer_ref is None:
            return None
        outer = self._outer_ref()
        if outer is None:
            raise ClassTreeError(f"The outer class of {self.name} has been discarded together with its document")
        return outer

    def add(self, inner: "JavaClass") -> None:
        if not inner.class_interval.lies_within(self.body_interval):
            raise ClassTreeError(f"The provided java class {inner} is not an inner class of {self}")
        if inner._outer_ref is not None:
            raise ClassTreeError(f"The outer class of {inner} has been already set to {inner.outer_class}")
        self.inner_classes.append(inner)
        inner._outer_ref = weakref.ref(self)

    def get_scope(self) -> int:
        """Brace nesting of the class body: 1 for a top level class."""
        outer = self.outer_class
        return outer.get_scope() + 1 if outer else 1

    def get_enclosing_class(self, index: int) -> Optional["JavaClass"]:
        """Innermost class (this one or an inner one) containing ``index``."""
        if not self.class_interval.includes(index):
            return None
        for inner in self.inner_classes:
            pointed = inner.get_enclosing_class(index)
            if pointed is not None:
                return pointed
        return self

    def get_insert_index(self, text: str, index: int) -> int:
        """
        Position where generated code can be inserted.

        The given index is kept when it points to whitespace of the class
        body, outside comments, methods and inner classes. Otherwise the
        closing brace of the class is returned. A whitespace inside a
        multi-line method signature is not detected.
        """
        end = self.body_interval.end
        if not self.body_interval.includes(index):
            return end
        if index >= len(text) or not text[index].isspace():
            return end
        if belongs_to_a_comment(index, self.comments):
            return end
        if brace_depth(text, index, end, self.comments) != 0:
            return end
        return index

    def get_name_used_by_class_loader(self) -> str:
        outer = self.outer_class
        if outer:
            return f"{outer.get_name_used_by_class_loader()}${self.name}"
        return self.name

    def iter_classes(self) -> Iterator["JavaClass"]:
        yield self
        for inner in self.inner_classes:
            yield from inner.iter_classes()

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "loader_name": self.get_name_used_by_class_loader(),
            "scope": self.get_scope(),
            "signature": self.signature_interval.to_dict(),
            "body": self.body_interval.to_dict(),
            "comments": len(self.comments),
            "inner_classes": [c.to_dict() for c in self.inner_classes],
        }

    def __str__(self) -> str:
        return f"{self.name},{self.body_interval}"

    def __repr__(self) -> str:
        return f"JavaClass({self.name!r}, body={self.body_interval})"


def parse_classes(text: str, comments: Sequence[Comment], class_matches: Sequence[re.Match]) -> List[JavaClass]:
    """
    Build the class forest from header matches in source order.

    Matches starting inside the body of the current class are its inner
    classes: they are built recursively and attached to it.
    """
    classes: List[JavaClass] = []

    i = 0
    while i < len(class_matches):
        match = class_matches[i]
        i += 1

        signature_start = match.start()
        signature_end = match.end() - 1
        body_start = signature_end + 1
        body_end = move_to_closing_bracket(text, body_start, comments)

        signature_interval = TextInterval.of(signature_start, signature_end)
        body_interval = TextInterval.of(body_start, body_end)
        java_class = JavaClass.of(match.group("name"), signature_interval, body_interval, comments)

        inner_matches = []
        while i < len(class_matches) and body_interval.includes(class_matches[i].start()):
            inner_matches.append(class_matches[i])
            i += 1

        for inner in parse_classes(text, comments, inner_matches):
            java_class.add(inner)

        classes.append(java_class)

    return classes


def find_classes(text: str, comments: Sequence[Comment]) -> List[JavaClass]:
    """All classes of the text as a forest of top level classes."""
    return parse_classes(text, comments, list(_RE_CLASS_DECL.finditer(text)))


@dataclass
class ParsedDocument:
    """One snapshot of a source file; rebuild it after every edit."""

    text: str
    comments: List[Comment]
    classes: List[JavaClass]
    package_name: str

    def find_pointed_class(self, index: int) -> Optional[JavaClass]:
        for java_class in self.classes:
            pointed = java_class.get_enclosing_class(index)
            if pointed is not None:
                return pointed
        return None

    def iter_classes(self) -> Iterator[JavaClass]:
        for java_class in self.classes:
            yield from java_class.iter_classes()

    def to_dict(self) -> Dict:
        return {
            "package": self.package_name,
            "comments": len(self.comments),
            "classes": [c.to_dict() for c in self.classes],
        }


def parse_document(text: str) -> ParsedDocument:
    with trace_span(stage="parse", tool="parse_document", input_obj=text) as sp:
        comments = find_comments(text)
        classes = find_classes(text, comments)
        doc = ParsedDocument(
            text=text,
            comments=comments,
            classes=classes,
            package_name=get_package_name(text),
        )
        sp.set_output(doc.to_dict())
        sp.add_extra(comments=len(comments), classes=sum(1 for _ in doc.iter_classes()))
    return doc


def find_java_doc(text: str, index: int, comments: Sequence[Comment]) -> Optional[Comment]:
    """
    JavaDoc right before ``index``, if any.

    Only the last comment ending before ``index`` is considered, and it
    must be a JavaDoc separated from ``index`` by whitespace only.
    """
    previous: Optional[Comment] = None
    for comment in comments:
        if comment.interval.end >= index:
            break
        previous = comment

    if previous is None or previous.type is not CommentType.JAVA_DOC:
        return None
    if not is_only_whitespace(text[previous.interval.end + 1 : index]):
        return None
    return previous


def _compile(pattern: Union[str, Pattern]) -> Pattern:
    return re.compile(pattern) if isinstance(pattern, str) else pattern


def find_existing_method(text: str, pattern: Union[str, Pattern], java_class: JavaClass) -> Optional[TextInterval]:
    """
    Range covered by an existing method of ``java_class``, or None.

    ``pattern`` must match the method signature up to its opening brace.
    Matches are attributed by node identity, so a method with the same
    signature in an inner class (or in another class with the same name)
    is ignored. The range starts at the leading whitespace of the method
    (or of its JavaDoc) and ends on the last newline after its closing
    brace, keeping the indentation of the following line.
    """
    regexp = _compile(pattern)
    with trace_span(
        stage="locate", tool="find_existing_method", input_obj={"pattern": regexp.pattern, "class": java_class.name}
    ) as sp:
        for match in regexp.finditer(text):
            method_start = match.start()
            if java_class.get_enclosing_class(method_start) is not java_class:
                continue

            java_doc = find_java_doc(text, method_start, java_class.comments)
            doc_start = java_doc.interval.start if java_doc else method_start
            selection_start = include_leading_whitespaces(text, doc_start)

            # the match is expected to end on the opening brace
            open_bracket = text.find("{", max(match.end() - 1, method_start))
            if open_bracket == -1:
                return None
            close_bracket = move_to_closing_bracket(text, open_bracket, java_class.comments)
            if close_bracket == open_bracket:
                # unbalanced body, nothing safe to select
                sp.add_extra(unbalanced=True)
                return None

            selection_end = include_trailing_whitespaces(text, close_bracket + 1)
            interval = TextInterval.of(selection_start, selection_end)
            sp.set_output(interval.to_dict())
            return interval

    return None
