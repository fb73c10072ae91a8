import gc
import weakref

import pytest
from hypothesis import given, settings, strategies as st

from javaspan.parser import (
    ClassTreeError,
    JavaClass,
    brace_depth,
    find_classes,
    find_java_doc,
    move_to_closing_bracket,
    parse_document,
)
from javaspan.utils import TextInterval, find_comments


SOURCE = (
    "package demo;\n"
    "\n"
    "/** Outer doc */\n"
    "public class Outer {\n"
    "\n"
    "    private int a;\n"
    "\n"
    "    // { not a brace\n"
    "    public void run() {\n"
    "        if (a > 0) { a--; }\n"
    "    }\n"
    "\n"
    "    static class Inner {\n"
    "        void m() {}\n"
    "    }\n"
    "\n"
    "}\n"
)


# ==========================================
# 1. Brace matching
# ==========================================
class TestBracketMatcher:

    def test_nested_braces(self):
        assert move_to_closing_bracket("{A{B}C}", 0, []) == 6
        assert move_to_closing_bracket("{A{B}C}", 2, []) == 4

    def test_braces_in_block_comment_are_skipped(self):
        text = "{ /* } */ }"
        assert move_to_closing_bracket(text, 0, find_comments(text)) == 10

    def test_braces_in_line_comment_are_skipped(self):
        text = "{ // }\n}"
        assert move_to_closing_bracket(text, 0, find_comments(text)) == 7

    def test_comment_before_the_index_is_ignored(self):
        text = "/* } */ { }"
        assert move_to_closing_bracket(text, 8, find_comments(text)) == 10

    def test_unmatched_returns_the_index(self):
        assert move_to_closing_bracket("{ {", 0, []) == 0
        assert move_to_closing_bracket("{", 0, []) == 0

    def test_brace_depth(self):
        text = "{ a } } // {\n"
        assert brace_depth(text, 0, len(text), find_comments(text)) == -1
        assert brace_depth(text, 0, 5, []) == 0

    @given(text=st.text(alphabet="{}/*\n x", max_size=50), data=st.data())
    @settings(max_examples=300)
    def test_result_is_index_or_a_closing_brace(self, text, data):
        if not text:
            return
        index = data.draw(st.integers(0, len(text) - 1))
        result = move_to_closing_bracket(text, index, find_comments(text))
        assert result == index or (result > index and text[result] == "}")


# ==========================================
# 2. Class forest
# ==========================================
class TestClassForest:

    def test_nested_classes(self):
        doc = parse_document(SOURCE)
        assert doc.package_name == "demo"
        assert [c.name for c in doc.classes] == ["Outer"]
        outer = doc.classes[0]
        assert [c.name for c in outer.inner_classes] == ["Inner"]
        inner = outer.inner_classes[0]
        assert inner.outer_class is outer
        assert outer.outer_class is None

    def test_intervals(self):
        outer = parse_document(SOURCE).classes[0]
        header = SOURCE.index("class Outer")
        assert outer.signature_interval.start == header
        assert outer.body_interval.start == SOURCE.index("{", header)
        assert outer.body_interval.end == SOURCE.rindex("}")
        assert outer.signature_interval.end == outer.body_interval.start - 1
        assert outer.class_interval == TextInterval.of(header, SOURCE.rindex("}"))

    def test_only_body_comments_are_kept(self):
        outer = parse_document(SOURCE).classes[0]
        # the JavaDoc before the header is outside the body
        assert len(outer.comments) == 1
        assert outer.inner_classes[0].comments == []

    def test_scope_and_class_loader_name(self):
        outer = parse_document(SOURCE).classes[0]
        inner = outer.inner_classes[0]
        assert outer.get_scope() == 1
        assert inner.get_scope() == 2
        assert outer.get_name_used_by_class_loader() == "Outer"
        assert inner.get_name_used_by_class_loader() == "Outer$Inner"

    def test_sibling_top_level_classes(self):
        text = "class A { } class B { class C { } }"
        classes = find_classes(text, find_comments(text))
        assert [c.name for c in classes] == ["A", "B"]
        assert [c.name for c in classes[1].inner_classes] == ["C"]
        assert classes[0].inner_classes == []

    def test_header_without_space_before_brace(self):
        classes = find_classes("class A{}", [])
        assert classes[0].name == "A"
        assert classes[0].body_interval == TextInterval.of(7, 8)

    def test_word_ending_with_class_is_not_a_header(self):
        assert find_classes("int subclass = 1;", []) == []

    def test_class_word_in_comment_is_reported(self):
        # known limitation: headers are found by regex only
        doc = parse_document("int x; // class Foo")
        assert [c.name for c in doc.classes] == ["Foo"]

    def test_iter_classes_and_to_dict(self):
        doc = parse_document(SOURCE)
        assert [c.name for c in doc.iter_classes()] == ["Outer", "Inner"]
        d = doc.to_dict()
        assert d["classes"][0]["inner_classes"][0]["loader_name"] == "Outer$Inner"
        assert d["classes"][0]["scope"] == 1

    @given(text=st.lists(st.sampled_from(["class A", "class B", "{", "}", "/*", "*/", "//", "\n", " "]), max_size=20).map("".join))
    @settings(max_examples=200)
    def test_forest_or_tree_error(self, text):
        try:
            doc = parse_document(text)
        except ClassTreeError:
            return
        for java_class in doc.iter_classes():
            for inner in java_class.inner_classes:
                assert inner.class_interval.lies_within(java_class.body_interval)
                assert inner.get_scope() == java_class.get_scope() + 1


# ==========================================
# 3. Tree invariants
# ==========================================
class TestClassTree:

    def _node(self, name, sig, body):
        return JavaClass(name, TextInterval.of(*sig), TextInterval.of(*body), [])

    def test_add_outside_body_fails(self):
        outer = self._node("A", (0, 9), (10, 50))
        stray = self._node("B", (60, 65), (66, 70))
        with pytest.raises(ClassTreeError):
            outer.add(stray)
        assert outer.inner_classes == []

    def test_parent_is_set_once(self):
        first = self._node("A", (0, 9), (10, 50))
        second = self._node("B", (0, 9), (10, 50))
        inner = self._node("C", (12, 20), (21, 30))
        first.add(inner)
        with pytest.raises(ClassTreeError):
            second.add(inner)
        assert inner.outer_class is first

    def test_tree_error_is_a_value_error(self):
        assert issubclass(ClassTreeError, ValueError)


# ==========================================
# 4. Enclosing class and insert index
# ==========================================
class TestEnclosingClass:

    def test_enclosing_class(self):
        doc = parse_document(SOURCE)
        outer = doc.classes[0]
        inner = outer.inner_classes[0]
        assert outer.get_enclosing_class(SOURCE.index("void m")) is inner
        assert outer.get_enclosing_class(SOURCE.index("private int a")) is outer
        assert outer.get_enclosing_class(SOURCE.index("class Inner")) is inner
        assert outer.get_enclosing_class(0) is None
        assert doc.find_pointed_class(0) is None

    def test_pointed_class_while_document_is_alive(self):
        doc = parse_document(SOURCE)
        inner = doc.find_pointed_class(SOURCE.index("void m"))
        assert inner.get_scope() == 2
        assert inner.get_name_used_by_class_loader() == "Outer$Inner"

    def test_inner_class_does_not_keep_outer_alive(self):
        doc = parse_document("class A { class B { } }")
        inner = doc.classes[0].inner_classes[0]
        outer_ref = weakref.ref(doc.classes[0])
        del doc
        gc.collect()
        assert outer_ref() is None
        with pytest.raises(ClassTreeError):
            inner.outer_class
        with pytest.raises(ClassTreeError):
            inner.get_name_used_by_class_loader()


class TestInsertIndex:

    def setup_method(self):
        self.outer = parse_document(SOURCE).classes[0]
        self.end = self.outer.body_interval.end

    def test_whitespace_between_members_is_kept(self):
        index = SOURCE.index("private int a;") + len("private int a;")
        assert self.outer.get_insert_index(SOURCE, index) == index

    def test_non_whitespace_goes_to_end(self):
        assert self.outer.get_insert_index(SOURCE, SOURCE.index("private")) == self.end

    def test_inside_comment_goes_to_end(self):
        assert self.outer.get_insert_index(SOURCE, SOURCE.index("// {") + 2) == self.end

    def test_inside_method_goes_to_end(self):
        index = SOURCE.index("if (a") - 1
        assert SOURCE[index] == " "
        assert self.outer.get_insert_index(SOURCE, index) == self.end

    def test_inside_inner_class_goes_to_end(self):
        index = SOURCE.index("void m") - 1
        assert self.outer.get_insert_index(SOURCE, index) == self.end

    def test_outside_body_goes_to_end(self):
        assert self.outer.get_insert_index(SOURCE, SOURCE.index("public class")) == self.end
        assert self.outer.get_insert_index(SOURCE, 0) == self.end

    def test_inner_class_insert_index(self):
        inner = self.outer.inner_classes[0]
        index = SOURCE.index("void m() {}") + len("void m() {}")
        assert inner.get_insert_index(SOURCE, index) == index

    @given(index=st.integers(0, len(SOURCE) + 5))
    def test_result_is_index_or_body_end(self, index):
        result = self.outer.get_insert_index(SOURCE, index)
        assert result in (index, self.end)


# ==========================================
# 5. JavaDoc lookup
# ==========================================
class TestFindJavaDoc:

    def test_no_comments(self):
        assert find_java_doc("void m() {}", 0, []) is None

    def test_java_doc_right_before(self):
        text = "/** doc */\n  void m() {}"
        comments = find_comments(text)
        assert find_java_doc(text, text.index("void"), comments) == comments[0]

    def test_code_in_between(self):
        text = "/** doc */ int a;\n  void m() {}"
        assert find_java_doc(text, text.index("void"), find_comments(text)) is None

    def test_plain_block_comment(self):
        text = "/* doc */\n  void m() {}"
        assert find_java_doc(text, text.index("void"), find_comments(text)) is None
