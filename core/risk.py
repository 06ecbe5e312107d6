# ============================================================
# nlql - Natural Language SQL Terminal
# core/risk.py - Statement risk classification
# ============================================================
#
# Heuristic only: looks at the leading keyword and, for DELETE
# and UPDATE, whether "WHERE" appears anywhere in the text (a
# WHERE inside a literal or comment still counts). The tier is
# shown next to the SQL; whether to ask first is the caller's
# confirm_before_run setting.
# ============================================================

from enum import Enum
from typing import Tuple


class RiskLevel(Enum):
    SAFE = "SAFE"
    MODERATE = "MODERATE"
    DANGER = "DANGER"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_dangerous(self) -> bool:
        return self is RiskLevel.DANGER


ALWAYS_DANGEROUS = ("DROP", "TRUNCATE", "ALTER")
FILTERED_WRITES = ("DELETE", "UPDATE")
KNOWN_TYPES = ("SELECT", "INSERT", "UPDATE", "DELETE", "DROP", "TRUNCATE", "ALTER")


def _normalize(sql: str) -> str:
    return sql.upper().strip()


def classify(sql: str) -> RiskLevel:
    """Return the risk tier of a SQL statement."""
    upper = _normalize(sql)

    if upper.startswith(ALWAYS_DANGEROUS):
        return RiskLevel.DANGER

    if upper.startswith(FILTERED_WRITES):
        return RiskLevel.MODERATE if "WHERE" in upper else RiskLevel.DANGER

    if upper.startswith("INSERT"):
        return RiskLevel.MODERATE

    return RiskLevel.SAFE


def statement_type(sql: str) -> str:
    """Leading statement keyword, or QUERY when it is not one we track."""
    upper = _normalize(sql)
    for keyword in KNOWN_TYPES:
        if upper.startswith(keyword):
            return keyword
    return "QUERY"


def assess(sql: str) -> Tuple[RiskLevel, str]:
    return classify(sql), statement_type(sql)
