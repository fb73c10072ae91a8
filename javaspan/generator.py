"""
Java code generation for Object overrides and accessor methods.

The generated code targets the nerd4j helpers (ToString / Hashcode /
Equals) and is laid out with the indentation of the class it is
inserted into. Each generated method comes with the regular expression
used to find an existing implementation in the source text; those
expressions match the signature up to the opening brace, which is what
parser.find_existing_method expects.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Pattern, Sequence

from .config import GeneratorConfig


@dataclass(frozen=True)
class Indentation:
    step: str  # one indentation level
    base: str  # indentation of the class members

    @classmethod
    def of(cls, level: int, config: Optional[GeneratorConfig] = None) -> "Indentation":
        cfg = config or GeneratorConfig()
        unit = " " if cfg.insert_spaces else "\t"
        step = unit * max(1, cfg.tab_size)
        return cls(step=step, base=step * max(0, level))


class AccessorImplementation(str, Enum):
    NONE = ""
    IN_CURRENT_CLASS = "(defined in current class)"
    IN_ANCESTOR_CLASS = "(defined in parent class)"

    @classmethod
    def from_flag(cls, flag: str) -> "AccessorImplementation":
        if flag == "1":
            return cls.IN_CURRENT_CLASS
        if flag == "2":
            return cls.IN_ANCESTOR_CLASS
        return cls.NONE


@dataclass(frozen=True)
class Field:
    name: str
    type: str
    enclosing_class: str
    accessor: AccessorImplementation = AccessorImplementation.NONE

    @classmethod
    def of(cls, enclosing_class: str, descriptor: str) -> "Field":
        """
        Parse a ``"type name [flag]"`` descriptor.

        flag is 1 when the accessor already exists in the class itself and
        2 when it is inherited; any other value (or none) means missing.
        """
        tokens = descriptor.split()
        flag = ""
        if len(tokens) >= 3 and tokens[-1].isdigit():
            flag = tokens.pop()
        if len(tokens) < 2:
            raise ValueError(f"Expected 'type name' but {descriptor!r} has been provided")
        return cls(
            name=tokens[-1],
            type=" ".join(tokens[:-1]),
            enclosing_class=enclosing_class,
            accessor=AccessorImplementation.from_flag(flag),
        )

    def override(self) -> str:
        return "@Override" if self.accessor is AccessorImplementation.IN_ANCESTOR_CLASS else ""


def _type_pattern(java_type: str) -> str:
    # "Map<String, Integer>" also matches "Map<String,Integer>"
    return re.escape(java_type).replace(r"\ ", r"\s*")


class Accessor(ABC):
    prefix = ""

    def __init__(self, field: Field, return_type: str) -> None:
        self.field = field
        self.return_type = return_type
        self.name = self.prefix + field.name[:1].upper() + field.name[1:]

    def regex_pattern(self) -> str:
        params = ""
        if self.has_param():
            params = rf"{_type_pattern(self.field.type)}\s+{re.escape(self.field.name)}"
        return rf"\s*(@Override)?\s*public\s+(?:{_type_pattern(self.return_type)}|\S+)\s+{re.escape(self.name)}\s*\(\s*{params}\s*\)\s*\{{"

    def code(self, indentation: Indentation) -> str:
        base = indentation.base
        step = indentation.step
        return (
            f"\n{base}{self.field.override()}"
            f"\n{base}public {self.return_type} {self.name}({self.param_content()})"
            f"\n{base}{{"
            f"\n{base}{step}{self.method_content(indentation)}"
            f"\n{base}}}"
            "\n"
        )

    def has_param(self) -> bool:
        return bool(self.param_content().strip())

    @abstractmethod
    def param_content(self) -> str:
        ...

    @abstractmethod
    def method_content(self, indentation: Indentation) -> str:
        ...


class Getter(Accessor):
    prefix = "get"

    def __init__(self, field: Field) -> None:
        super().__init__(field, field.type)

    def param_content(self) -> str:
        return ""

    def method_content(self, indentation: Indentation) -> str:
        return f"return this.{self.field.name};"


class Setter(Accessor):
    prefix = "set"

    def __init__(self, field: Field) -> None:
        super().__init__(field, "void")

    def param_content(self) -> str:
        return f" {self.field.type} {self.field.name} "

    def method_content(self, indentation: Indentation) -> str:
        return f"this.{self.field.name} = {self.field.name};"


class Wither(Accessor):
    prefix = "with"

    def __init__(self, field: Field) -> None:
        super().__init__(field, field.enclosing_class)

    def param_content(self) -> str:
        return f" {self.field.type} {self.field.name} "

    def method_content(self, indentation: Indentation) -> str:
        indent = indentation.base + indentation.step
        return f"this.{self.field.name} = {self.field.name};\n{indent}return this;"


ACCESSOR_KINDS: Dict[str, type] = {
    "getters": Getter,
    "setters": Setter,
    "withers": Wither,
}


class ObjectMethod(Enum):
    TO_STRING = 0
    HASH_CODE = 1
    EQUALS = 2


@dataclass(frozen=True)
class ObjectOverride:
    import_re: Pattern
    import_code: str
    method_re: Pattern
    name: str


OBJECT_OVERRIDES: Dict[ObjectMethod, ObjectOverride] = {
    ObjectMethod.TO_STRING: ObjectOverride(
        import_re=re.compile(r"import\s+org\.nerd4j\.utils\.lang\.ToString\s*;\s*"),
        import_code="import org.nerd4j.utils.lang.ToString;",
        method_re=re.compile(r"\s*(@Override)?\s*public\s+String\s+toString\s*\(\s*\)\s*\{"),
        name="toString()",
    ),
    ObjectMethod.HASH_CODE: ObjectOverride(
        import_re=re.compile(r"import\s+org\.nerd4j\.utils\.lang\.Hashcode\s*;\s*"),
        import_code="import org.nerd4j.utils.lang.Hashcode;",
        method_re=re.compile(r"\s*(@Override)?\s*public\s+int\s+hashCode\s*\(\s*\)\s*\{"),
        name="hashCode()",
    ),
    ObjectMethod.EQUALS: ObjectOverride(
        import_re=re.compile(r"import\s+org\.nerd4j\.utils\.lang\.Equals\s*;\s*"),
        import_code="import org.nerd4j.utils.lang.Equals;",
        method_re=re.compile(r"\s*(@Override)?\s*public\s+boolean\s+equals\s*\(\s*Object[^)]*\)\s*\{"),
        name="equals()",
    ),
}

GLOBAL_IMPORT_RE = re.compile(r"import\s+org\.nerd4j\.utils\.lang\.\*\s*;\s*")


def group_fields(names: Sequence[str]) -> List[List[str]]:
    """Split field names in rows: up to 3 stay together, 4 become 2+2, more go 3 by 3."""
    names = list(names)
    if len(names) < 4:
        return [names]
    if len(names) == 4:
        return [names[:2], names[2:]]
    return [names[i : i + 3] for i in range(0, len(names), 3)]


def print_field_group(group: Sequence[str], prefix: str, separator: str, suffix: str) -> str:
    return prefix + separator.join(group) + suffix


def _header(base: str, signature: str) -> str:
    return (
        f"\n{base}"
        f"\n{base}/**"
        f"\n{base} * {{@inheritDoc}}"
        f"\n{base} */"
        f"\n{base}@Override"
        f"\n{base}{signature}"
        f"\n{base}{{"
        f"\n{base}"
    )


def _footer(base: str) -> str:
    return f"\n{base}\n{base}}}\n{base}\n"


def to_string_code(
    field_names: Sequence[str], print_field_names: bool, layout: str, indentation: Indentation
) -> str:
    base, step = indentation.base, indentation.step
    code = _header(base, "public String toString()") + f"\n{base}{step}return ToString.of( this )"

    if field_names:
        if print_field_names:
            for name in field_names:
                code += f'\n{base}{step}{step}.print("{name}", {name})'
        else:
            for group in group_fields(field_names):
                code += print_field_group(group, f"\n{base}{step}{step}.print( ", ", ", " )")

    code += f"\n{base}{step}{step}.{layout};"
    return code + _footer(base)


def hash_code_code(field_names: Sequence[str], indentation: Indentation) -> str:
    base, step = indentation.base, indentation.step
    code = _header(base, "public int hashCode()") + f"\n{base}{step}return "

    if not field_names:
        code += "super.hashCode();"
    else:
        code += "Hashcode.of("
        groups = group_fields(field_names)
        if len(groups) == 1:
            code += print_field_group(groups[0], " ", ", ", " );")
        else:
            code += print_field_group(groups[0], f"\n{base}{step}{step}", ", ", "")
            for group in groups[1:]:
                code += print_field_group(group, f",\n{base}{step}{step}", ", ", "")
            code += f"\n{base}{step});"

    return code + _footer(base)


def equals_code(field_names: Sequence[str], indentation: Indentation) -> str:
    base, step = indentation.base, indentation.step
    code = _header(base, "public boolean equals( Object other )")
    code += f"\n{base}{step}return Equals.ifSameClass( this, other"

    if not field_names:
        code += " );"
    else:
        for name in field_names:
            if name:
                code += f",\n{base}{step}{step}o -> o.{name}"
        code += f"\n{base}{step});"

    return code + _footer(base)
