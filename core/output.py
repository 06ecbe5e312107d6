# ============================================================
# nlql - Natural Language SQL Terminal
# core/output.py - Result formatting (rich, text, CSV, JSON)
# ============================================================

import csv
import io
import json
from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from tabulate import tabulate

from core.database import QueryResult
from utils.helpers import export_filename

NULL_TEXT = "NULL"


def format_value(value: Any) -> str:
    if value is None:
        return NULL_TEXT
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ── Rich renderables ──────────────────────────────────────────

def build_result_table(
        result: QueryResult,
        offset: int = 0,
        limit: Optional[int] = None,
        header_style: str = "bold cyan",
        border_style: str = "dim white",
        null_style: str = "dim italic yellow",
) -> Table:
    """Rich table of a result, optionally windowed to rows[offset:offset+limit]."""
    table = Table(
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style=header_style,
        border_style=border_style,
        show_lines=False,
        pad_edge=False,
        expand=False,
    )

    for col_name in result.columns:
        table.add_column(str(col_name), no_wrap=False, overflow="fold")

    end = None if limit is None else offset + limit
    for row in result.rows[offset:end]:
        cells = []
        for cell in row:
            if cell is None:
                cells.append(Text(NULL_TEXT, style=null_style))
            else:
                cells.append(Text(format_value(cell)))
        table.add_row(*cells)

    return table


def format_sql_syntax(sql: str, theme: str = "monokai", background: Optional[str] = None) -> Syntax:
    """Return a Rich Syntax object for SQL highlighting."""
    return Syntax(
        sql,
        "sql",
        theme=theme,
        line_numbers=False,
        word_wrap=True,
        background_color=background,
    )


def row_summary(result: QueryResult) -> str:
    if result.columns:
        row_word = "row" if result.row_count == 1 else "rows"
        return f"{result.row_count} {row_word} in set ({result.elapsed_ms / 1000:.3f} sec)"
    row_word = "row" if result.affected_rows == 1 else "rows"
    return f"Query OK, {result.affected_rows} {row_word} affected ({result.elapsed_ms / 1000:.3f} sec)"


# ── Plain text ────────────────────────────────────────────────

def format_result_as_text(result: QueryResult) -> str:
    """
    Column-aligned plain text (two-space gaps, dashed rule under the
    header), the form copied to the clipboard.
    """
    if not result.rows:
        return "no rows"
    rows = [[format_value(v) for v in row] for row in result.rows]
    return tabulate(
        rows,
        headers=result.columns,
        tablefmt="simple",
        stralign="left",
        numalign="left",
        disable_numparse=True,
    ) + "\n"


# ── CSV / JSON ────────────────────────────────────────────────

def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    return format_value(value)


def result_to_csv(result: QueryResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow([_csv_value(v) for v in row])
    return buffer.getvalue()


def export_csv(result: QueryResult, directory: str = ".") -> Path:
    """Write the result to a timestamped CSV file and return its path."""
    target = Path(directory).expanduser()
    target.mkdir(parents=True, exist_ok=True)
    path = target / export_filename()
    path.write_text(result_to_csv(result), encoding="utf-8")
    return path


def result_to_json(result: QueryResult, pretty: bool = True) -> str:
    if pretty:
        return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    return json.dumps(result.to_dict(), separators=(",", ":"), ensure_ascii=False)

