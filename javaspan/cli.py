#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from .config import TO_STRING_LAYOUTS, GeneratorConfig, load_config
from .generator import ACCESSOR_KINDS, OBJECT_OVERRIDES, Field, ObjectMethod
from .graph_builder import ClassGraphBuilder
from .parser import find_existing_method, parse_document
from .patcher import JavaClassProcessor, MethodExistsError, PatchApplyError
from .trace.trace_utils import TraceLogger, trace_span, using_tracer
from .utils import safe_read_text


_METHODS = {
    "toString": ObjectMethod.TO_STRING,
    "hashCode": ObjectMethod.HASH_CODE,
    "equals": ObjectMethod.EQUALS,
}

_KINDS = ("tostring", "hashcode", "equals") + tuple(sorted(ACCESSOR_KINDS))


def _emit(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _field_names(descriptors: List[str]) -> List[str]:
    # "type name" descriptors or bare names
    return [d.split()[-1] for d in descriptors if d.strip()]


def cmd_classes(args: argparse.Namespace, cfg: GeneratorConfig) -> int:
    doc = parse_document(safe_read_text(args.file))
    if not args.graph:
        _emit(doc.to_dict())
        return 0
    builder = ClassGraphBuilder()
    builder.build_from_document(doc, file_path=args.file)
    _emit({**builder.to_dict(), "top_level": builder.top_level_classes()})
    return 0


def cmd_locate(args: argparse.Namespace, cfg: GeneratorConfig) -> int:
    text = safe_read_text(args.file)
    doc = parse_document(text)
    java_class = doc.find_pointed_class(args.offset)
    if java_class is None:
        print("❌ The offset is not pointing to any Java class", file=sys.stderr)
        return 1
    override = OBJECT_OVERRIDES[_METHODS[args.method]]
    interval = find_existing_method(text, override.method_re, java_class)
    _emit({"class": java_class.get_name_used_by_class_loader(), "range": interval.to_dict() if interval else None})
    return 0


def cmd_insert_index(args: argparse.Namespace, cfg: GeneratorConfig) -> int:
    text = safe_read_text(args.file)
    doc = parse_document(text)
    java_class = doc.find_pointed_class(args.offset)
    if java_class is None:
        print("❌ The offset is not pointing to any Java class", file=sys.stderr)
        return 1
    _emit({
        "class": java_class.get_name_used_by_class_loader(),
        "scope": java_class.get_scope(),
        "insert_index": java_class.get_insert_index(text, args.offset),
    })
    return 0


def cmd_generate(args: argparse.Namespace, cfg: GeneratorConfig) -> int:
    path = Path(args.file)
    text = safe_read_text(str(path))
    processor = JavaClassProcessor(text, args.offset, cfg)

    if args.kind == "tostring":
        new_text = processor.insert_or_replace_to_string(
            _field_names(args.field),
            print_field_names=args.print_field_names or None,
            layout=args.layout,
            regenerate=args.regenerate,
        )
    elif args.kind == "hashcode":
        new_text = processor.insert_or_replace_hash_code(_field_names(args.field), regenerate=args.regenerate)
    elif args.kind == "equals":
        new_text = processor.insert_or_replace_equals(_field_names(args.field), regenerate=args.regenerate)
    else:
        fields = [Field.of(processor.java_class.name, d) for d in args.field]
        accessors = processor.build_accessors(args.kind, fields)
        new_text = processor.insert_or_replace_accessors(accessors, regenerate=args.regenerate)

    if args.in_place:
        path.write_text(new_text, encoding="utf-8")
        print(f"✅ {len(processor.edits)} edit(s) written to {path.resolve()}", file=sys.stderr)
    else:
        sys.stdout.write(new_text)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="javaspan", description="Locate classes and methods in Java source and generate code.")
    ap.add_argument("--dotenv", default=None, help="Optional .env path (default: nearest .env, if any)")
    ap.add_argument("--trace", action="store_true", help="Write runs/<run_id>/trace.jsonl")
    ap.add_argument("--run_id", default=None)
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("classes", help="Print the class forest as JSON")
    p.add_argument("file")
    p.add_argument("--graph", action="store_true", help="Print nodes and CONTAINS edges instead of the nested forest")
    p.set_defaults(func=cmd_classes)

    p = sub.add_parser("locate", help="Print the range of an existing Object override")
    p.add_argument("file")
    p.add_argument("--method", choices=sorted(_METHODS), required=True)
    p.add_argument("--offset", type=int, required=True, help="Character offset inside the target class")
    p.set_defaults(func=cmd_locate)

    p = sub.add_parser("insert-index", help="Print the safe insertion index for a cursor offset")
    p.add_argument("file")
    p.add_argument("--offset", type=int, required=True)
    p.set_defaults(func=cmd_insert_index)

    p = sub.add_parser("generate", help="Generate code into the class pointed by the offset")
    p.add_argument("file")
    p.add_argument("--offset", type=int, required=True)
    p.add_argument("--kind", choices=_KINDS, required=True)
    p.add_argument("--field", action="append", default=[], help='Field as "type name" (repeatable)')
    p.add_argument("--layout", choices=TO_STRING_LAYOUTS, default=None)
    p.add_argument("--print_field_names", action="store_true")
    p.add_argument("--regenerate", action="store_true", help="Replace methods that already exist")
    p.add_argument("--in_place", action="store_true", help="Rewrite the file instead of printing it")
    p.set_defaults(func=cmd_generate)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_arg_parser()
    args = ap.parse_args(argv)
    cfg = load_config(args.dotenv)

    if not args.trace:
        return _run(ap, args, cfg)

    run_id = args.run_id or uuid.uuid4().hex[:12]
    trace_path = Path("runs") / run_id / "trace.jsonl"
    tracer = TraceLogger(run_id=run_id, trace_path=trace_path)
    with using_tracer(tracer):
        code = _run(ap, args, cfg)
    print(f"✅ trace: {trace_path.resolve()}", file=sys.stderr)
    return code


def _run(ap: argparse.ArgumentParser, args: argparse.Namespace, cfg: GeneratorConfig) -> int:
    if not Path(args.file).is_file():
        ap.error(f"File not found: {args.file}")
    try:
        with trace_span(stage="command", tool=args.command, input_obj={"file": args.file}):
            return args.func(args, cfg)
    except MethodExistsError as e:
        print(f"❌ {e}. Use --regenerate to replace it.", file=sys.stderr)
        return 1
    except (PatchApplyError, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
