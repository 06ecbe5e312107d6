# ============================================================
# nlql - Natural Language SQL Terminal
# core/session.py - Session state
# ============================================================
#
# One Session exists per process and is owned by the session
# controller. All mutation goes through the named methods below;
# the controller and keymap never assign fields directly.
# ============================================================

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Union

from loguru import logger

from core.buffer import TextBuffer
from core.database import QueryResult, ConnectionInfo, count_tables
from core.risk import RiskLevel, classify, statement_type
from core.themes import THEME_NAMES, theme_index
from core.wizard import SetupWizard
from utils.helpers import first_line, get_timestamp

# The generation service reports no confidence; this is shown as an estimate.
PLACEHOLDER_CONFIDENCE = 92
LOG_FOLLOW_WINDOW = 10


class Mode(Enum):
    NORMAL = "NORMAL"
    INSERT = "INSERT"


class Panel(Enum):
    PROMPT = "prompt"
    SQL = "sql"
    RESULTS = "results"
    LOGS = "logs"

    def next(self) -> "Panel":
        order = list(Panel)
        return order[(order.index(self) + 1) % len(order)]

    @property
    def title(self) -> str:
        return {
            Panel.PROMPT: "Prompt",
            Panel.SQL: "SQL",
            Panel.RESULTS: "Results",
            Panel.LOGS: "Logs",
        }[self]


class LogLevel(Enum):
    INFO = "info"
    OK = "ok"
    WARN = "warn"
    ERROR = "error"

    @property
    def loguru_level(self) -> str:
        return {
            LogLevel.INFO: "INFO",
            LogLevel.OK: "SUCCESS",
            LogLevel.WARN: "WARNING",
            LogLevel.ERROR: "ERROR",
        }[self]


@dataclass(frozen=True)
class LogEntry:
    level: LogLevel
    message: str
    timestamp: str = field(default_factory=get_timestamp)


@dataclass
class DbInfo:
    dialect: str = ""
    host: str = ""
    database: str = ""
    tables: int = 0
    url: str = ""

    @property
    def connected(self) -> bool:
        return bool(self.dialect)

    @classmethod
    def from_connection(cls, info: ConnectionInfo, schema: str) -> "DbInfo":
        return cls(
            dialect=info.dialect.value,
            host=info.host,
            database=info.database,
            tables=count_tables(schema),
            url=info.url,
        )


@dataclass
class AgentInfo:
    provider: str = ""
    model: str = ""

    @property
    def ready(self) -> bool:
        return bool(self.provider)


# ── Modals ────────────────────────────────────────────────────

@dataclass
class ThemePicker:
    index: int = 0


@dataclass
class ConfirmDialog:
    sql: str
    risk: RiskLevel


@dataclass
class ConnectionEditor:
    buffer: TextBuffer = field(default_factory=TextBuffer)
    error: Optional[str] = None


Modal = Union[ThemePicker, ConfirmDialog, ConnectionEditor, SetupWizard]


# ── Query outcome (result XOR error) ──────────────────────────

@dataclass(frozen=True)
class QuerySucceeded:
    result: QueryResult


@dataclass(frozen=True)
class QueryFailed:
    message: str


Outcome = Union[QuerySucceeded, QueryFailed]


class Session:
    """
    Everything the renderer draws and the controller decides on:
    edit mode, focused panel, active modal, connection and agent
    info, the current SQL with its risk, the last result or error,
    logs, scroll offsets and prompt history.
    """

    def __init__(
            self,
            db_info: Optional[DbInfo] = None,
            agent_info: Optional[AgentInfo] = None,
            confirm_before_run: bool = False,
            theme: str = "dark",
    ):
        self.running: bool = True
        self.mode: Mode = Mode.NORMAL
        self.panel: Panel = Panel.PROMPT
        self.modal: Optional[Modal] = None
        self.fullscreen: bool = False
        self.confirm_before_run: bool = confirm_before_run
        self.theme: str = theme if theme in THEME_NAMES else "dark"

        self.db_info: DbInfo = db_info or DbInfo()
        self.agent_info: AgentInfo = agent_info or AgentInfo()

        self.prompt: TextBuffer = TextBuffer()

        self.sql: Optional[str] = None
        self.sql_status: Optional[str] = None
        self.sql_type: Optional[str] = None
        self.risk: Optional[RiskLevel] = None
        self.confidence: Optional[int] = None
        self.latency_ms: Optional[int] = None
        self.explain: Optional[str] = None
        self.show_explain: bool = False

        self.outcome: Optional[Outcome] = None
        self.loading: bool = False
        self.reconnecting: bool = False
        self._query_started: Optional[float] = None
        self._query_paused: Optional[float] = None

        self.logs: List[LogEntry] = []
        self.log_scroll: int = 0
        self.result_scroll: int = 0

        self.history: List[str] = []
        self.history_index: Optional[int] = None

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def for_connection(
            cls,
            db_info: DbInfo,
            agent_info: AgentInfo,
            confirm_before_run: bool = False,
            theme: str = "dark",
    ) -> "Session":
        session = cls(db_info, agent_info, confirm_before_run, theme)
        session.log(LogLevel.OK, f"connected {db_info.dialect}")
        session.log(LogLevel.OK, f"agent selected: {agent_info.provider}")
        session.log(LogLevel.INFO, f"schema loaded ({db_info.tables} tables)")
        return session

    @classmethod
    def for_setup(cls, confirm_before_run: bool = False, theme: str = "dark") -> "Session":
        session = cls(confirm_before_run=confirm_before_run, theme=theme)
        session.modal = SetupWizard()
        return session

    # ── Derived ───────────────────────────────────────────────

    @property
    def result(self) -> Optional[QueryResult]:
        return self.outcome.result if isinstance(self.outcome, QuerySucceeded) else None

    @property
    def error(self) -> Optional[str]:
        return self.outcome.message if isinstance(self.outcome, QueryFailed) else None

    @property
    def wizard(self) -> Optional[SetupWizard]:
        return self.modal if isinstance(self.modal, SetupWizard) else None

    @property
    def in_setup(self) -> bool:
        return self.wizard is not None

    @property
    def busy(self) -> bool:
        return self.loading or self.reconnecting

    # ── Logging ───────────────────────────────────────────────

    def log(self, level: LogLevel, message: str):
        """Append a log entry and snap the log view to the newest entries."""
        self.logs.append(LogEntry(level, message))
        self.log_scroll = max(0, len(self.logs) - LOG_FOLLOW_WINDOW)
        logger.log(level.loguru_level, f"[session] {message}")

    # ── Modes, panels, modals ─────────────────────────────────

    def enter_insert(self):
        self.mode = Mode.INSERT

    def exit_insert(self):
        self.mode = Mode.NORMAL

    def cycle_panel(self):
        self.panel = self.panel.next()

    def toggle_fullscreen(self):
        self.fullscreen = not self.fullscreen

    def close_modal(self):
        self.modal = None

    def quit(self):
        self.running = False

    # ── Themes ────────────────────────────────────────────────

    def set_theme(self, name: str):
        if name in THEME_NAMES:
            self.theme = name

    def open_theme_picker(self):
        self.modal = ThemePicker(index=theme_index(self.theme))

    def move_theme_cursor(self, delta: int):
        """Move the picker highlight and preview that theme live."""
        if not isinstance(self.modal, ThemePicker):
            return
        index = max(0, min(len(THEME_NAMES) - 1, self.modal.index + delta))
        self.modal.index = index
        self.set_theme(THEME_NAMES[index])

    def select_theme(self):
        if isinstance(self.modal, ThemePicker):
            self.set_theme(THEME_NAMES[self.modal.index])
        self.close_modal()

    # ── Prompt & history ──────────────────────────────────────

    def submit_prompt(self) -> Optional[str]:
        """
        Take the prompt text for generation. Returns None and changes
        nothing when the buffer is blank.
        """
        if self.prompt.is_blank:
            return None
        text = self.prompt.text.strip()
        self.history.append(text)
        self.history_index = None
        self.prompt.clear()
        if isinstance(self.outcome, QueryFailed):
            self.outcome = None
        self._query_started = time.monotonic()
        return text

    def history_up(self):
        if not self.history:
            return
        if self.history_index is None:
            self.history_index = len(self.history) - 1
        elif self.history_index > 0:
            self.history_index -= 1
        self.prompt.set(self.history[self.history_index])

    def history_down(self):
        if self.history_index is None:
            return
        if self.history_index < len(self.history) - 1:
            self.history_index += 1
            self.prompt.set(self.history[self.history_index])
        else:
            self.history_index = None
            self.prompt.clear()

    # ── Query pipeline ────────────────────────────────────────

    def _stop_timer(self):
        if self._query_started is not None:
            self.latency_ms = int((time.monotonic() - self._query_started) * 1000)
            self._query_started = None

    def begin_generation(self, request: str):
        self.loading = True
        self.log(LogLevel.INFO, f"processing: {first_line(request)}")

    def begin_execution(self):
        self.loading = True

    def set_generated_sql(self, sql: str):
        self.risk = classify(sql)
        self.sql_type = statement_type(sql)
        self.confidence = PLACEHOLDER_CONFIDENCE
        self.sql = sql
        self.sql_status = "pending"
        self.explain = None
        self.show_explain = False
        self.log(LogLevel.OK, "generated sql")

    def set_query_result(self, result: QueryResult):
        self._stop_timer()
        self.sql_status = f"executed ({self.latency_ms or 0}ms)"
        self.outcome = QuerySucceeded(result)
        self.loading = False
        self.result_scroll = 0
        self.log(LogLevel.OK, "executed query")

    def set_query_error(self, message: str):
        self._stop_timer()
        self.sql_status = "failed"
        self.outcome = QueryFailed(message)
        self.loading = False
        self.reconnecting = False
        self.log(LogLevel.ERROR, message)

    def show_confirm(self, sql: str):
        """Hold generated SQL in the confirmation dialog instead of running it."""
        self.loading = False
        self.modal = ConfirmDialog(sql=sql, risk=classify(sql))
        # time spent in the dialog is not query latency
        if self._query_started is not None:
            self._query_paused = time.monotonic() - self._query_started
            self._query_started = None

    def confirm_sql(self) -> Optional[str]:
        if not isinstance(self.modal, ConfirmDialog):
            return None
        sql = self.modal.sql
        self.close_modal()
        if self._query_paused is not None:
            self._query_started = time.monotonic() - self._query_paused
            self._query_paused = None
        return sql

    def cancel_sql(self):
        self.close_modal()
        self.sql = None
        self.sql_status = None
        self.sql_type = None
        self.risk = None
        self.confidence = None
        self.explain = None
        self.show_explain = False
        self._query_started = None
        self._query_paused = None

    # ── EXPLAIN ───────────────────────────────────────────────

    def toggle_explain(self) -> bool:
        """Flip EXPLAIN visibility; True when a plan still has to be fetched."""
        self.show_explain = not self.show_explain
        return self.show_explain and self.explain is None and self.sql is not None

    def begin_explain(self):
        self.loading = True

    def set_explain(self, text: str):
        self.explain = text
        self.loading = False

    # ── Scrolling ─────────────────────────────────────────────

    def scroll(self, delta: int):
        """Scroll the focused panel; only Results and Logs scroll."""
        if self.panel is Panel.RESULTS:
            rows = self.result.row_count if self.result else 0
            self.result_scroll = max(0, min(max(0, rows - 1), self.result_scroll + delta))
        elif self.panel is Panel.LOGS:
            self.log_scroll = max(0, min(max(0, len(self.logs) - 1), self.log_scroll + delta))

    # ── Connection ────────────────────────────────────────────

    def open_connection_editor(self):
        buffer = TextBuffer()
        buffer.set(self.db_info.url)
        self.modal = ConnectionEditor(buffer=buffer)

    def begin_reconnect(self):
        self.reconnecting = True
        self.log(LogLevel.INFO, "reconnecting...")

    def _clear_query_state(self):
        self.outcome = None
        self.sql = None
        self.sql_status = None
        self.sql_type = None
        self.confidence = None
        self.risk = None
        self.show_explain = False
        self.explain = None
        self.result_scroll = 0

    def update_db_info(self, info: DbInfo):
        """Swap in a new connection; anything shown for the old one is dropped."""
        self.log(LogLevel.OK, f"connected {info.dialect}")
        self.log(LogLevel.INFO, f"schema loaded ({info.tables} tables)")
        self.db_info = info
        self.reconnecting = False
        self._clear_query_state()
        if isinstance(self.modal, ConnectionEditor):
            self.close_modal()

    def set_connection_error(self, message: str):
        """Reconnect failed; the current connection and results stay as they are."""
        self.reconnecting = False
        self.log(LogLevel.ERROR, message)
        if isinstance(self.modal, ConnectionEditor):
            self.modal.error = message

    # ── Setup ─────────────────────────────────────────────────

    def begin_setup_connect(self):
        self.loading = True
        self.log(LogLevel.INFO, "connecting to database...")

    def setup_connected(self, info: DbInfo):
        self.loading = False
        self.db_info = info
        if self.wizard:
            self.wizard.connected()
        self.log(LogLevel.OK, f"connected to {info.dialect}")

    def setup_failed(self, message: str, connection: bool = True):
        self.loading = False
        wizard = self.wizard
        if wizard is None:
            return
        if connection:
            wizard.connection_failed(message)
        else:
            wizard.fail(message)

    def finish_setup(self, agent_info: AgentInfo, credential_from_env: bool = False):
        self.modal = None
        self.mode = Mode.NORMAL
        self.loading = False
        self.agent_info = agent_info
        self._clear_query_state()
        self.log(LogLevel.OK, f"connected {self.db_info.dialect}")
        self.log(LogLevel.OK, f"agent selected: {agent_info.provider}")
        self.log(LogLevel.INFO, f"schema loaded ({self.db_info.tables} tables)")
        if credential_from_env:
            self.log(LogLevel.INFO, "using api key from environment")
