"""Schema-driven CSV export and import.

The format is deliberately plain: one header row of field names, ``;``
between fields, ``,`` between the names of a many-to-many field, no quoting.
Literal ``;`` in values is written as ``,`` so rows always split cleanly.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from typed_records.errors import CsvImportError, ExportError
from typed_records.relations import RelationshipResolver
from typed_records.schema import derive, export_fields
from typed_records.storage import DataStore
from typed_records.types import FieldDescriptor, ValueKind, display_string, type_name

logger = logging.getLogger(__name__)

DELIMITER = ";"
SUB_DELIMITER = ","

_LINE_BREAK = re.compile(r"\r\n|\n")
_SKIP = object()


def _cell(text: str) -> str:
    """Make text safe for a single cell."""
    return text.replace(DELIMITER, SUB_DELIMITER).replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


class CsvCodec:
    """Exports records of a type to delimited text and imports them back."""

    def __init__(self, store: DataStore, resolver: RelationshipResolver, memoize: bool = False) -> None:
        """Initialize the codec.

        Args:
            store: Data store to read from and write to.
            resolver: Resolver for relationship fields.
            memoize: Call each lookup at most once per export/import pass.
        """
        self.store = store
        self.resolver = resolver
        self.memoize = memoize

    def _pass_resolver(self) -> RelationshipResolver:
        if self.memoize:
            return RelationshipResolver(self.resolver.lookups.memoized())
        return self.resolver

    # --- Export ---

    def export(self, record_type: type) -> str:
        """Export every stored record of a type.

        Raises:
            ExportError: If the type has no records.
            SchemaError: If a relationship target has no registered lookup.
        """
        records = self.store.scan(record_type)
        if not records:
            raise ExportError(f"Nothing to export: no {type_name(record_type)} records")

        resolver = self._pass_resolver()
        fields = export_fields(record_type)
        lines = [DELIMITER.join(d.name for d in fields)]
        for record in records:
            values = [self._export_value(resolver, d, getattr(record, d.name, None)) for d in fields]
            lines.append(DELIMITER.join(values))

        logger.info("Exported %d %s records", len(records), type_name(record_type))
        return "\n".join(lines) + "\n"

    @staticmethod
    def _export_value(resolver: RelationshipResolver, descriptor: FieldDescriptor, value: Any) -> str:
        if descriptor.kind is ValueKind.MANY_TO_MANY:
            names = [r.name for r in resolver.resolve_many_to_many(descriptor, value)]
            return _cell(SUB_DELIMITER.join(names))
        if descriptor.kind is ValueKind.FOREIGN:
            target = resolver.resolve_foreign(descriptor, value)
            return _cell(target.name) if target is not None else ""
        return _cell(display_string(value))

    def export_to_file(self, record_type: type, directory: Path | str) -> Path:
        """Export to ``<Type>_export_<timestamp>.csv`` in a directory."""
        text = self.export(record_type)
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = directory / f"{type_name(record_type)}_export_{stamp}.csv"
        path.write_text(text, encoding="utf-8")
        return path

    # --- Import ---

    def import_text(self, record_type: type, text: str) -> int:
        """Replace all records of a type with the rows of ``text``.

        Existing records are deleted before the first row is inserted, and
        rows are inserted one by one: a failure part way leaves the table
        partially populated. Cells that do not parse are skipped and the
        field keeps its default. No audit entries are written.

        Returns:
            Number of inserted records.

        Raises:
            CsvImportError: If the text has no header plus data row.
        """
        lines = [line for line in _LINE_BREAK.split(text) if line]
        if len(lines) < 2:
            raise CsvImportError("CSV text is empty or has no data rows")

        headers = [h.strip() for h in lines[0].split(DELIMITER)]
        importable = {d.name: d for d in derive(record_type) if d.editable}
        unknown = [h for h in headers if h not in importable]
        if unknown:
            logger.debug("Ignoring columns not importable into %s: %s", type_name(record_type), unknown)

        self.store.delete_all(record_type)
        resolver = self._pass_resolver()

        count = 0
        for line_no, line in enumerate(lines[1:], start=2):
            values = line.split(DELIMITER)
            record = record_type()
            for header, raw in zip(headers, values):
                descriptor = importable.get(header)
                if descriptor is None:
                    continue
                value = self._import_value(resolver, descriptor, raw.strip())
                if value is _SKIP:
                    logger.debug("Line %d: skipping unparseable %s value %r", line_no, header, raw)
                    continue
                setattr(record, descriptor.name, value)
            self.store.insert(record)
            count += 1

        logger.info("Imported %d %s records", count, type_name(record_type))
        return count

    @staticmethod
    def _import_value(resolver: RelationshipResolver, descriptor: FieldDescriptor, text: str) -> Any:
        """Convert one cell leniently; returns _SKIP when it does not parse."""
        kind = descriptor.kind
        if kind is ValueKind.MANY_TO_MANY:
            return resolver.many_to_many_by_names(descriptor, text)
        if kind is ValueKind.FOREIGN:
            target = resolver.foreign_by_name(descriptor, text)
            return target.id if target is not None else _SKIP
        if kind in (ValueKind.TEXT, ValueKind.FILE):
            return text
        if kind is ValueKind.NUMBER:
            if descriptor.python_type is int:
                try:
                    return int(text)
                except ValueError:
                    pass
            try:
                number = float(text)
            except ValueError:
                return _SKIP
            if descriptor.python_type is int:
                return int(number) if number.is_integer() else _SKIP
            return number
        if kind is ValueKind.BOOLEAN:
            lowered = text.lower()
            if lowered in ("true", "false"):
                return lowered == "true"
            return _SKIP
        if kind is ValueKind.ENUMERATION and descriptor.choices is not None:
            choices = descriptor.choices
            if text in choices.__members__:
                return choices[text]
            try:
                return choices(int(text))
            except ValueError:
                return _SKIP
        return _SKIP

    def import_file(self, record_type: type, path: Path | str) -> int:
        """Import a CSV file written by ``export``/``export_to_file``."""
        text = Path(path).read_text(encoding="utf-8-sig")
        return self.import_text(record_type, text)
