"""Text renderings of records: Markdown details, list rows and tables."""

from __future__ import annotations

import re
from typing import Any, Sequence

from typed_records.relations import RelationshipResolver
from typed_records.schema import export_fields
from typed_records.types import FieldDescriptor, ValueKind, display_string, type_name

MISSING_MARKDOWN = "—"
MISSING_ROW = "--"

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def field_label(name: str) -> str:
    """Turn a field name into a label: ``created_at`` -> ``Created At``."""
    words = _WORD_BOUNDARY.sub(" ", name).replace("_", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _resolvable(resolver: RelationshipResolver | None, descriptor: FieldDescriptor) -> bool:
    return resolver is not None and descriptor.target is not None and descriptor.target in resolver.lookups


def to_markdown(record: Any, resolver: RelationshipResolver | None = None) -> str:
    """Render every readable field of a record as Markdown.

    Without a resolver, relationship fields show their stored ids.
    """
    if record is None:
        return "# Null Record\n"

    record_type = type(record)
    lines = [f"# {type_name(record_type)} Details", ""]
    for d in export_fields(record_type):
        value = getattr(record, d.name, None)
        if value is None:
            text = MISSING_MARKDOWN
        elif d.is_relationship and _resolvable(resolver, d):
            text = resolver.display_value(d, value)  # type: ignore[union-attr]
        else:
            text = display_string(value)
        lines.append(f"**{d.name}**: {text}")
        lines.append("")
    return "\n".join(lines)


def format_row(
    record: Any,
    resolver: RelationshipResolver | None = None,
    fields: Sequence[str] | None = None,
) -> str:
    """Render a record as ``field: value`` lines for a list view.

    Foreign fields show the referenced record's name, or ``--`` when the
    value is unset, no lookup is available or the id is unknown.
    """
    descriptors = export_fields(type(record))
    if fields is not None:
        wanted = set(fields)
        descriptors = tuple(d for d in descriptors if d.name in wanted)

    lines = []
    for d in descriptors:
        value = getattr(record, d.name, None)
        if d.kind is ValueKind.FOREIGN:
            target = None
            if value is not None and _resolvable(resolver, d):
                target = resolver.resolve_foreign(d, value)  # type: ignore[union-attr]
            text = target.name if target is not None else MISSING_ROW
        elif d.kind is ValueKind.MANY_TO_MANY and _resolvable(resolver, d):
            text = resolver.display_value(d, value)  # type: ignore[union-attr]
        else:
            text = display_string(value)
        lines.append(f"{d.name}: {text}")
    return "\n".join(lines)


def format_cell(value: Any, max_width: int = 40) -> str:
    """Format a value for a table cell.

    Args:
        value: The value to format
        max_width: Maximum character width before truncating
    """
    if value is None:
        return ""
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, float):
        return f"{value:.6g}"
    s = display_string(value)
    if len(s) > max_width:
        return s[:max_width - 3] + "..."
    return s


def format_table(
    records: Sequence[Any],
    resolver: RelationshipResolver | None = None,
    max_col_width: int = 40,
    labels: bool = False,
) -> str:
    """Render records of one type as an aligned text table.

    With ``labels`` the header shows field labels instead of field names.
    """
    if not records:
        return "(no results)"

    descriptors = export_fields(type(records[0]))
    columns = [field_label(d.name) if labels else d.name for d in descriptors]
    rows = []
    for record in records:
        row = []
        for d in descriptors:
            value = getattr(record, d.name, None)
            if d.is_relationship and _resolvable(resolver, d):
                value = resolver.display_value(d, value)  # type: ignore[union-attr]
            row.append(format_cell(value, max_col_width))
        rows.append(row)

    # Calculate column widths
    widths = [len(c) for c in columns]
    for row in rows:
        for i, val in enumerate(row):
            widths[i] = min(max(widths[i], len(val)), max_col_width)

    header = " | ".join(c.ljust(w)[:w] for c, w in zip(columns, widths))
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(" | ".join(val.ljust(w) for val, w in zip(row, widths)))
    lines.append("")
    lines.append(f"({len(rows)} row{'s' if len(rows) != 1 else ''})")
    return "\n".join(lines)
