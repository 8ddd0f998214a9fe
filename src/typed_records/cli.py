"""Command line front end for record stores."""

from __future__ import annotations

import argparse
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable

from typed_records.access import AllowAll, ReadOnly
from typed_records.context import RecordContext
from typed_records.errors import RecordEngineError
from typed_records.mutation import coerce_edit
from typed_records.render import format_table, to_markdown
from typed_records.schema import TypeRegistry, get_field
from typed_records.storage import JsonStore
from typed_records.types import AuditEntry, FieldDescriptor, ValueKind, type_name

logger = logging.getLogger(__name__)


def load_registry(module_name: str | None) -> TypeRegistry:
    """Import a models module and return its ``registry`` attribute."""
    if module_name is None:
        return TypeRegistry()
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    module = importlib.import_module(module_name)
    registry = getattr(module, "registry", None)
    if not isinstance(registry, TypeRegistry):
        raise RecordEngineError(f"Module '{module_name}' has no TypeRegistry named 'registry'")
    logger.debug("Loaded %d record types from %s", len(registry.list_types()), module_name)
    return registry


def confirm(prompt: str, assume_yes: bool) -> bool:
    """Ask a yes/no question on the terminal."""
    if assume_yes:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _require(ctx: RecordContext, record_type: type, action: str, allowed: bool | None = None) -> None:
    if allowed is None:
        allowed = action in ctx.actions(record_type)
    if not allowed:
        raise PermissionError(f"'{action}' is not allowed on {type_name(record_type)}")


def _get_record(ctx: RecordContext, record_type: type, record_id: int) -> Any:
    record = ctx.get(record_type, record_id)
    if record is None:
        raise RecordEngineError(f"No {type_name(record_type)} record with id {record_id}")
    return record


def _edit_value(ctx: RecordContext, descriptor: FieldDescriptor, text: str) -> Any:
    """Turn command line text into an editor value for a field.

    Foreign fields accept an id or a record name; many-to-many fields accept
    comma-separated names.
    """
    if descriptor.kind is ValueKind.FOREIGN:
        text = text.strip()
        if not text:
            return None
        if text.isdigit():
            return int(text)
        target = ctx.resolver.foreign_by_name(descriptor, text)
        if target is None:
            raise RecordEngineError(f"No {descriptor.target} named '{text}'")
        return target
    if descriptor.kind is ValueKind.MANY_TO_MANY:
        return ctx.resolver.many_to_many_by_names(descriptor, text)
    return text


def _parse_assignments(pairs: list[str]) -> list[tuple[str, str]]:
    result = []
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise RecordEngineError(f"Expected FIELD=VALUE, got '{pair}'")
        result.append((name.strip(), value))
    return result


# --- Commands ---


def cmd_types(ctx: RecordContext, args: argparse.Namespace) -> int:
    for name in ctx.registry.list_types():
        print(name)
    return 0


def cmd_list(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "view")
    query = " ".join(args.query)
    if query.strip():
        _require(ctx, record_type, "filter")
        records = ctx.query(record_type, query)
    else:
        records = ctx.records(record_type)
    print(format_table(records, ctx.resolver, labels=True))
    return 0


def cmd_show(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "view")
    print(to_markdown(_get_record(ctx, record_type, args.id), ctx.resolver))
    return 0


def cmd_add(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "add")
    edits = {}
    if args.assignments:
        _require(ctx, record_type, "edit", ctx.access.can_edit(record_type))
        # Convert everything up front so a bad value stores nothing
        for name, text in _parse_assignments(args.assignments):
            descriptor = get_field(record_type, name)
            if descriptor.editable:
                edits[name] = coerce_edit(descriptor, _edit_value(ctx, descriptor, text))
    record = ctx.mutator.create(record_type)
    if edits:
        ctx.mutator.update(record, edits)
    print(f"Added {type_name(record_type)} {record.id}")
    return 0


def cmd_set(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "edit", ctx.access.can_edit(record_type))
    record = _get_record(ctx, record_type, args.id)
    edits = {
        name: _edit_value(ctx, get_field(record_type, name), value)
        for name, value in _parse_assignments(args.assignments)
    }
    ctx.mutator.update(record, edits)
    print(f"Saved {type_name(record_type)} {record.id}")
    return 0


def cmd_delete(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "delete", ctx.access.can_delete(record_type))
    record = _get_record(ctx, record_type, args.id)
    if not confirm(f"Delete {type_name(record_type)} '{record.name}'?", args.yes):
        print("Cancelled")
        return 1
    ctx.mutator.delete(record)
    print(f"Deleted {type_name(record_type)} {record.id}")
    return 0


def cmd_duplicate(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "add")
    copy_ = ctx.mutator.duplicate(_get_record(ctx, record_type, args.id))
    print(f"Duplicated {type_name(record_type)} {args.id} as {copy_.id}")
    return 0


def cmd_clear(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "clear")
    if not confirm(f"Delete every {type_name(record_type)} record?", args.yes):
        print("Cancelled")
        return 1
    ctx.mutator.clear_all(record_type)
    print(f"Cleared {type_name(record_type)}")
    return 0


def cmd_export(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    if args.output is None:
        sys.stdout.write(ctx.codec.export(record_type))
        return 0
    if args.output.is_dir():
        path = ctx.codec.export_to_file(record_type, args.output)
    else:
        path = args.output
        path.write_text(ctx.codec.export(record_type), encoding="utf-8")
    print(f"Exported to {path}")
    return 0


def cmd_import(ctx: RecordContext, args: argparse.Namespace) -> int:
    record_type = ctx.registry.resolve(args.type)
    _require(ctx, record_type, "import")
    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1
    if not confirm(f"Replace every {type_name(record_type)} record with {args.file}?", args.yes):
        print("Cancelled")
        return 1
    count = ctx.codec.import_file(record_type, args.file)
    print(f"Imported {count} record{'s' if count != 1 else ''}")
    return 0


def cmd_audit(ctx: RecordContext, args: argparse.Namespace) -> int:
    print(format_table(ctx.records(AuditEntry), labels=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        prog="typed-records",
        description="Browse and edit typed record stores",
    )
    arg_parser.add_argument(
        "-m", "--models",
        help="Module exposing a TypeRegistry named 'registry'",
    )
    arg_parser.add_argument(
        "-d", "--data",
        type=Path,
        default=Path("data"),
        help="Directory holding the record files (default: ./data)",
    )
    arg_parser.add_argument(
        "-u", "--user",
        default=None,
        help="Acting user recorded in audit entries",
    )
    arg_parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only allow viewing, filtering and export",
    )
    arg_parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    sub = arg_parser.add_subparsers(dest="command", required=True)

    def add(name: str, func: Callable[..., int], help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.set_defaults(func=func)
        return p

    add("types", cmd_types, "List registered record types")

    p = add("list", cmd_list, "List records, optionally filtered and sorted")
    p.add_argument("type")
    p.add_argument("query", nargs="*", help="e.g. where price < 10 sort by name desc")

    p = add("show", cmd_show, "Show one record as Markdown")
    p.add_argument("type")
    p.add_argument("id", type=int)

    p = add("add", cmd_add, "Create a record with default values")
    p.add_argument("type")
    p.add_argument("assignments", nargs="*", metavar="FIELD=VALUE")

    p = add("set", cmd_set, "Edit fields of a record")
    p.add_argument("type")
    p.add_argument("id", type=int)
    p.add_argument("assignments", nargs="+", metavar="FIELD=VALUE")

    for name, func, help_text in (
        ("delete", cmd_delete, "Delete a record"),
        ("duplicate", cmd_duplicate, "Copy a record"),
    ):
        p = add(name, func, help_text)
        p.add_argument("type")
        p.add_argument("id", type=int)

    p = add("clear", cmd_clear, "Delete every record of a type")
    p.add_argument("type")

    p = add("export", cmd_export, "Export a type as CSV")
    p.add_argument("type")
    p.add_argument("-o", "--output", type=Path, help="Output file, or directory for a timestamped file")

    p = add("import", cmd_import, "Replace a type's records from a CSV file")
    p.add_argument("type")
    p.add_argument("file", type=Path)

    add("audit", cmd_audit, "Show the audit log")

    return arg_parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        registry = load_registry(args.models)
        store = JsonStore(args.data, registry)
        access = ReadOnly() if args.read_only else AllowAll()
        with RecordContext(registry, store, access=access, current_user=args.user) as ctx:
            return args.func(ctx, args)
    except SyntaxError as e:
        print(f"Syntax error: {e}", file=sys.stderr)
        return 1
    except (RecordEngineError, PermissionError, ImportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
