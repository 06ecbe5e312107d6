# ============================================================
# nlql - Natural Language SQL Terminal
# utils/helpers.py - Small formatting helpers
# ============================================================

from typing import Optional
from datetime import datetime


def format_duration(milliseconds: Optional[int]) -> str:
    if milliseconds is None:
        return "-"
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    elif milliseconds < 60000:
        return f"{milliseconds / 1000:.2f}s"
    else:
        minutes = milliseconds // 60000
        seconds = (milliseconds % 60000) / 1000
        return f"{minutes}m {seconds:.1f}s"


def truncate_string(s: str, max_len: int = 80, suffix: str = "...") -> str:
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


def first_line(text: str) -> str:
    """First line of a (possibly multi-line) prompt, for log entries."""
    lines = text.splitlines()
    return lines[0] if lines else text


def get_timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"nlql_export_{now.strftime('%Y%m%d_%H%M%S')}.csv"

