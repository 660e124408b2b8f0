"""
Output rendering for extraction results.

Two shapes are produced:

    json      the full nested document: {"job": {...}, "data": {section: [...]}}
    tabular   every other format: a fixed header
              GUID, MESSAGE, DATE, SERVICE, SENDER, RECEIVER
              followed by one row per record

The tabular formats share one projection (each record's ``tabular_row()``)
and differ only in delimiter and quoting, following sqlite3's output modes.
Every record occupies exactly one output line in line, list, column, html and
insert output: line breaks, tabs and delimiters inside a cell are escaped
(backslash escapes, HTML character references, SQL char()). csv keeps
embedded line breaks inside quoted cells, so it stays one record per CSV row.
"""

import csv
import html
import io
import json
import logging
import re
from enum import Enum
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from msgintel.extract.records import ExtractionResult

logger = logging.getLogger(__name__)

TABULAR_HEADER: Tuple[str, ...] = ("GUID", "MESSAGE", "DATE", "SERVICE", "SENDER", "RECEIVER")

_SQL_NAME_RE = re.compile(r"[^A-Za-z0-9_]")


class RenderFormat(str, Enum):
    """Output formats accepted by the CLI and API."""

    JSON = "json"
    LINE = "line"
    CSV = "csv"
    COLUMN = "column"
    HTML = "html"
    INSERT = "insert"
    LIST = "list"

    @property
    def is_structured(self) -> bool:
        return self is RenderFormat.JSON

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


Cells = Tuple[str, ...]


def tabular_cells(records: Iterable) -> List[Cells]:
    """Project records onto the tabular columns; None becomes an empty string."""
    return [
        tuple("" if value is None else str(value) for value in record.tabular_row())
        for record in records
    ]


# Cell escapes for the line-oriented formats: one record stays on one line
# and delimiters inside a cell never split it.
_LINE_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"})
_LIST_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "|": "\\|"})


def _delimited(delimiter: str, escapes: Dict[int, str]) -> Callable[[List[Cells], str], List[str]]:
    def write(rows: List[Cells], table: str) -> List[str]:
        return [
            delimiter.join(cell.translate(escapes) for cell in row)
            for row in [TABULAR_HEADER, *rows]
        ]

    return write


def _write_csv(rows: List[Cells], table: str) -> List[str]:
    buffer = io.StringIO()
    # A \r\n terminator makes the writer quote cells holding either character
    writer = csv.writer(buffer, lineterminator="\r\n")
    lines = []
    for row in [TABULAR_HEADER, *rows]:
        buffer.seek(0)
        buffer.truncate()
        writer.writerow(row)
        lines.append(buffer.getvalue()[:-2])
    return lines


def _write_column(rows: List[Cells], table: str) -> List[str]:
    all_rows = [tuple(cell.translate(_LINE_ESCAPES) for cell in row) for row in [TABULAR_HEADER, *rows]]
    widths = [max(len(row[i]) for row in all_rows) for i in range(len(TABULAR_HEADER))]
    return [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in all_rows
    ]


def _html_cell(value: str) -> str:
    return html.escape(value).replace("\r", "&#13;").replace("\n", "&#10;")


def _write_html(rows: List[Cells], table: str) -> List[str]:
    lines = ["<TR>" + "".join(f"<TH>{html.escape(h)}</TH>" for h in TABULAR_HEADER) + "</TR>"]
    for row in rows:
        lines.append("<TR>" + "".join(f"<TD>{_html_cell(cell)}</TD>" for cell in row) + "</TR>")
    return lines


_LINE_BREAK_RE = re.compile(r"(\r|\n)")


def _sql_quote(value: str) -> str:
    """Quote a value as a single-line SQL expression; line breaks become char()."""
    pieces = []
    for part in _LINE_BREAK_RE.split(value):
        if part in ("\r", "\n"):
            pieces.append(f"char({ord(part)})")
        elif part:
            pieces.append("'" + part.replace("'", "''") + "'")
    return " || ".join(pieces) or "''"


def _write_insert(rows: List[Cells], table: str) -> List[str]:
    name = _SQL_NAME_RE.sub("_", table) or "records"
    columns = ", ".join(f"{h} TEXT" for h in TABULAR_HEADER)
    lines = [f"CREATE TABLE {name}({columns});"]
    for row in rows:
        values = ",".join(_sql_quote(cell) for cell in row)
        lines.append(f"INSERT INTO {name} VALUES({values});")
    return lines


_TABULAR_WRITERS: Dict[RenderFormat, Callable[[List[Cells], str], List[str]]] = {
    RenderFormat.LINE: _delimited("\t", _LINE_ESCAPES),
    RenderFormat.LIST: _delimited("|", _LIST_ESCAPES),
    RenderFormat.CSV: _write_csv,
    RenderFormat.COLUMN: _write_column,
    RenderFormat.HTML: _write_html,
    RenderFormat.INSERT: _write_insert,
}


def render_records(records: Sequence, fmt: RenderFormat, table: str = "records") -> str:
    """
    Render one section of records in a tabular format.

    Args:
        records: Assembled records exposing ``tabular_row()``.
        fmt: Any non-JSON RenderFormat.
        table: Section name, used as the table name by the insert format.

    Returns:
        Header line followed by one line per record.
    """
    fmt = RenderFormat(fmt)
    if fmt.is_structured:
        raise ValueError("render_records only handles tabular formats")

    writer = _TABULAR_WRITERS[fmt]
    return "\n".join(writer(tabular_cells(records), table))


def render(result: ExtractionResult, fmt: RenderFormat = RenderFormat.JSON) -> str:
    """
    Render an extraction result.

    Args:
        result: Run metadata and assembled sections.
        fmt: Output format.

    Returns:
        The JSON document for ``json``; otherwise one tabular block per
        section, separated by newlines.
    """
    fmt = RenderFormat(fmt)

    if fmt.is_structured:
        return json.dumps(result.to_document(), indent=2, ensure_ascii=False)

    blocks = [
        render_records(records, fmt, table=name) for name, records in result.sections.items()
    ]
    logger.debug(f"Rendered {len(blocks)} sections as {fmt.value}")
    return "\n".join(blocks)
