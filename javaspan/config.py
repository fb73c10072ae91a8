from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


TO_STRING_LAYOUTS = (
    "likeIntellij()",
    "likeEclipse()",
    "likeFunction()",
    "likeTuple()",
    'using( "{", ":", ",", "}" )',
)


def env_bool(key: str, default: bool = False) -> bool:
    v = os.environ.get(key)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def env_int(key: str, default: int) -> int:
    v = (os.environ.get(key) or "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {v!r}") from e


@dataclass
class GeneratorConfig:
    """
    Settings for the generated Java code.

    Mirrors the editor settings the code is inserted into:
      - insert_spaces / tab_size: one indentation step
      - to_string_layout: terminal call of the ToString builder
      - print_field_names: ToString prints `.print("name", name)` per field
    """
    insert_spaces: bool = True
    tab_size: int = 4
    to_string_layout: str = "likeIntellij()"
    print_field_names: bool = False

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        return cls(
            insert_spaces=env_bool("JAVASPAN_INSERT_SPACES", True),
            tab_size=env_int("JAVASPAN_TAB_SIZE", 4),
            to_string_layout=os.environ.get("JAVASPAN_TOSTRING_LAYOUT") or "likeIntellij()",
            print_field_names=env_bool("JAVASPAN_PRINT_FIELD_NAMES", False),
        )


def load_config(dotenv_path: Optional[str] = None, *, override: bool = False) -> GeneratorConfig:
    """
    Read the configuration from the environment.

    A .env file is loaded first: the explicit path when given, otherwise the
    nearest one walking up from the current directory (if any).
    """
    path = Path(dotenv_path).expanduser() if dotenv_path else None
    if path is not None and path.is_file():
        load_dotenv(path, override=override)
    elif path is None:
        found = find_dotenv(usecwd=True)
        if found:
            load_dotenv(found, override=override)
    return GeneratorConfig.from_env()
