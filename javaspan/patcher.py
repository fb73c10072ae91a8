from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Sequence

from .config import GeneratorConfig
from .generator import (
    ACCESSOR_KINDS,
    GLOBAL_IMPORT_RE,
    OBJECT_OVERRIDES,
    Accessor,
    Field,
    Indentation,
    ObjectMethod,
    ObjectOverride,
    equals_code,
    hash_code_code,
    to_string_code,
)
from .parser import JavaClass, ParsedDocument, find_existing_method, parse_document
from .trace.trace_utils import trace_span
from .utils import TextInterval, get_whitespace_interval


_PACKAGE_LINE_RE = re.compile(r"^[ \t]*package\s+[^;]+;[^\n]*(\n|$)", re.MULTILINE)


class PatchApplyError(Exception):
    pass


class MethodExistsError(PatchApplyError):
    def __init__(self, method_name: str, interval: TextInterval) -> None:
        super().__init__(f"The {method_name} method is already implemented at {interval}")
        self.method_name = method_name
        self.interval = interval


@dataclass(frozen=True)
class TextEdit:
    kind: str  # "insert" | "replace" | "delete"
    interval: TextInterval
    text: str
    label: str = ""

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "label": self.label, "range": self.interval.to_dict(), "text": self.text}


def apply_edit(text: str, edit: TextEdit) -> str:
    """Rewrite ``text`` replacing the edit range (see TextInterval.to_slice)."""
    rng = edit.interval.to_slice()
    if rng.stop > len(text):
        raise PatchApplyError(f"Edit range {edit.interval} is outside the text ({len(text)} chars)")
    return text[: rng.start] + edit.text + text[rng.stop :]


def plan_insertion(text: str, java_class: JavaClass, cursor: int, code: str, *, label: str = "") -> TextEdit:
    """Insert ``code`` at the safe position closest to the cursor, replacing the whitespace around it."""
    insert_index = java_class.get_insert_index(text, cursor)
    return TextEdit(kind="insert", interval=get_whitespace_interval(text, insert_index), text=code, label=label)


def plan_object_method(
    text: str,
    java_class: JavaClass,
    override: ObjectOverride,
    code: str,
    cursor: int,
    *,
    regenerate: bool = False,
) -> TextEdit:
    """
    Edit placing an Object override in the class.

    An existing implementation is replaced only when ``regenerate`` is set,
    otherwise MethodExistsError is raised.
    """
    existing = find_existing_method(text, override.method_re, java_class)
    if existing is not None:
        if not regenerate:
            raise MethodExistsError(override.name, existing)
        return TextEdit(kind="replace", interval=existing, text=code, label=override.name)
    return plan_insertion(text, java_class, cursor, code, label=override.name)


def fix_import(text: str, import_re: Pattern, import_code: str) -> str:
    """
    Add ``import_code`` unless it (or the package wildcard) is already imported.

    The import goes on the line after the package declaration, or on top
    of a file without one.
    """
    if import_re.search(text) or GLOBAL_IMPORT_RE.search(text):
        return text

    m = _PACKAGE_LINE_RE.search(text)
    if m is None:
        return f"{import_code}\n" + text

    pos = m.end()
    next_line_end = text.find("\n", pos)
    next_line = text[pos : next_line_end + 1] if next_line_end != -1 else text[pos:]
    suffix = "" if next_line == "\n" else "\n"
    return text[:pos] + f"\n{import_code}{suffix}" + text[pos:]


class JavaClassProcessor:
    """
    Generates code into the class pointed by a cursor.

    Every applied edit invalidates the class forest, so the document is
    parsed again and the pointed class looked up by its class loader name.
    """

    def __init__(self, text: str, cursor: int, config: Optional[GeneratorConfig] = None) -> None:
        self.config = config or GeneratorConfig()
        self.cursor = cursor
        self.edits: List[TextEdit] = []
        self._load(text)
        pointed = self.document.find_pointed_class(cursor)
        if pointed is None:
            raise PatchApplyError("The cursor is not pointing to any Java class")
        self.java_class = pointed
        self.indentation = Indentation.of(pointed.get_scope(), self.config)

    @property
    def text(self) -> str:
        return self.document.text

    @property
    def package_name(self) -> str:
        return self.document.package_name

    def _load(self, text: str) -> None:
        self.document: ParsedDocument = parse_document(text)

    def _reload(self, text: str) -> None:
        # read the name before the old forest is released
        loader_name = self.java_class.get_name_used_by_class_loader()
        self._load(text)
        for candidate in self.document.iter_classes():
            if candidate.get_name_used_by_class_loader() == loader_name:
                self.java_class = candidate
                return
        raise PatchApplyError(f"Unexpected failure. Unable to find the class to process {self.java_class.name}")

    def _apply(self, edit: TextEdit) -> None:
        with trace_span(stage="edit", tool="apply_edit", input_obj=edit.to_dict()) as sp:
            new_text = apply_edit(self.text, edit)
            sp.set_output({"chars": len(new_text)})
        # the cursor follows the text it pointed to
        rng = edit.interval.to_slice()
        if self.cursor >= rng.stop and self.cursor > rng.start:
            self.cursor += len(edit.text) - (rng.stop - rng.start)
        elif self.cursor >= rng.start:
            # code inserted at the cursor pushes it forward
            self.cursor = rng.start + len(edit.text) if edit.kind == "insert" else rng.start
        self.edits.append(edit)
        self._reload(new_text)

    def _insert_or_replace(self, method: ObjectMethod, code: str, regenerate: bool) -> str:
        override = OBJECT_OVERRIDES[method]
        edit = plan_object_method(self.text, self.java_class, override, code, self.cursor, regenerate=regenerate)
        self._apply(edit)
        self._fix_import(override)
        return self.text

    def _fix_import(self, override: ObjectOverride) -> None:
        new_text = fix_import(self.text, override.import_re, override.import_code)
        if new_text != self.text:
            self.cursor += len(new_text) - len(self.text)
            self._reload(new_text)

    def insert_or_replace_to_string(
        self,
        field_names: Sequence[str],
        *,
        print_field_names: Optional[bool] = None,
        layout: Optional[str] = None,
        regenerate: bool = False,
    ) -> str:
        code = to_string_code(
            field_names,
            self.config.print_field_names if print_field_names is None else print_field_names,
            layout or self.config.to_string_layout,
            self.indentation,
        )
        return self._insert_or_replace(ObjectMethod.TO_STRING, code, regenerate)

    def insert_or_replace_hash_code(self, field_names: Sequence[str], *, regenerate: bool = False) -> str:
        code = hash_code_code(field_names, self.indentation)
        return self._insert_or_replace(ObjectMethod.HASH_CODE, code, regenerate)

    def insert_or_replace_equals(self, field_names: Sequence[str], *, regenerate: bool = False) -> str:
        code = equals_code(field_names, self.indentation)
        return self._insert_or_replace(ObjectMethod.EQUALS, code, regenerate)

    def build_accessors(self, kind: str, fields: Sequence[Field]) -> List[Accessor]:
        accessor_cls = ACCESSOR_KINDS.get(kind)
        if accessor_cls is None:
            raise ValueError(f"Unknown accessor kind {kind!r}, expected one of {sorted(ACCESSOR_KINDS)}")
        return [accessor_cls(f) for f in fields]

    def insert_or_replace_accessors(self, accessors: Sequence[Accessor], *, regenerate: bool = False) -> str:
        """
        Insert the accessors missing from the class.

        Existing ones are skipped, or deleted and generated again next to
        the others when ``regenerate`` is set.
        """
        code = ""
        for accessor in accessors:
            existing = find_existing_method(self.text, re.compile(accessor.regex_pattern()), self.java_class)
            if existing is not None:
                if not regenerate:
                    continue
                self._apply(TextEdit(kind="delete", interval=existing, text="", label=accessor.name))
            code += accessor.code(self.indentation)

        if code:
            self._apply(plan_insertion(self.text, self.java_class, self.cursor, code, label="accessors"))
        return self.text
