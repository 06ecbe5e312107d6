"""Unit tests for core/session.py.

Tests verify:
- Prompt history navigation and blank submissions
- Panel cycling and fullscreen
- Result / error exclusivity and the query pipeline transitions
- Connection swap and failed reconnect behavior
- Theme picker live preview
"""

from core.database import QueryResult, ConnectionInfo
from core.risk import RiskLevel
from core.session import (
    Session, Mode, Panel, LogLevel, DbInfo, AgentInfo,
    ThemePicker, ConfirmDialog, ConnectionEditor,
    PLACEHOLDER_CONFIDENCE, LOG_FOLLOW_WINDOW,
)
from core.wizard import SetupWizard, WizardStep


def _result(rows=3):
    return QueryResult(
        columns=["n"], rows=[[i] for i in range(rows)], row_count=rows, elapsed_ms=1,
    )


def _connected_session(**kwargs) -> Session:
    info = DbInfo.from_connection(
        ConnectionInfo.parse("postgres://u@db.local/shop"), "TABLE a (\n  id int\n)",
    )
    return Session.for_connection(info, AgentInfo("claude", "m"), **kwargs)


class TestConstruction:
    """Startup states."""

    def test_for_connection_logs_startup(self):
        session = _connected_session()
        messages = [entry.message for entry in session.logs]
        assert messages == ["connected postgres", "agent selected: claude", "schema loaded (1 tables)"]
        assert session.mode is Mode.NORMAL
        assert session.panel is Panel.PROMPT
        assert session.modal is None

    def test_for_setup_opens_wizard(self):
        session = Session.for_setup()
        assert isinstance(session.modal, SetupWizard)
        assert session.in_setup
        assert not session.db_info.connected

    def test_unknown_theme_falls_back_to_dark(self):
        assert Session(theme="no-such-theme").theme == "dark"


class TestPromptHistory:
    """Submitting and recalling prompts."""

    def _with_history(self) -> Session:
        session = Session()
        for text in ("a", "b", "c"):
            session.prompt.set(text)
            session.submit_prompt()
        return session

    def test_submit_returns_trimmed_text_and_clears(self):
        session = Session()
        session.prompt.set("  count users  ")
        assert session.submit_prompt() == "count users"
        assert session.prompt.text == ""
        assert session.history == ["count users"]

    def test_blank_submit_is_ignored(self):
        session = Session()
        session.prompt.set("   ")
        assert session.submit_prompt() is None
        assert session.history == []
        assert session.prompt.text == "   "

    def test_up_walks_back_and_stops_at_oldest(self):
        session = self._with_history()
        session.history_up()
        assert session.prompt.text == "c"
        session.history_up()
        session.history_up()
        assert session.prompt.text == "a"
        session.history_up()
        assert session.prompt.text == "a"
        assert session.history_index == 0

    def test_down_past_newest_clears_prompt(self):
        session = self._with_history()
        session.history_up()
        session.history_up()
        session.history_down()
        assert session.prompt.text == "c"
        session.history_down()
        assert session.prompt.text == ""
        assert session.history_index is None

    def test_history_on_empty_is_noop(self):
        session = Session()
        session.history_up()
        session.history_down()
        assert session.prompt.text == ""
        assert session.history_index is None


class TestPanels:
    """Focus and layout toggles."""

    def test_cycle_returns_to_start_after_four(self):
        session = Session()
        seen = []
        for _ in range(4):
            session.cycle_panel()
            seen.append(session.panel)
        assert seen == [Panel.SQL, Panel.RESULTS, Panel.LOGS, Panel.PROMPT]

    def test_fullscreen_toggle(self):
        session = Session()
        session.toggle_fullscreen()
        assert session.fullscreen
        session.toggle_fullscreen()
        assert not session.fullscreen


class TestQueryPipeline:
    """Generated SQL, results and errors."""

    def test_generated_sql_sets_metadata(self):
        session = Session()
        session.set_generated_sql("DELETE FROM users")
        assert session.sql == "DELETE FROM users"
        assert session.risk is RiskLevel.DANGER
        assert session.sql_type == "DELETE"
        assert session.confidence == PLACEHOLDER_CONFIDENCE
        assert session.sql_status == "pending"

    def test_result_and_error_are_exclusive(self):
        session = Session()
        session.set_query_error("boom")
        assert session.error == "boom"
        assert session.result is None

        session.set_query_result(_result())
        assert session.result is not None
        assert session.error is None

        session.set_query_error("again")
        assert session.result is None
        assert session.error == "again"

    def test_result_clears_loading_and_records_status(self):
        session = Session()
        session.prompt.set("q")
        session.submit_prompt()
        session.begin_generation("q")
        assert session.loading
        session.set_query_result(_result())
        assert not session.loading
        assert session.sql_status.startswith("executed (")
        assert session.latency_ms is not None

    def test_new_submit_clears_previous_error_only(self):
        session = Session()
        session.set_query_error("bad")
        session.prompt.set("retry")
        session.submit_prompt()
        assert session.error is None

        session.set_query_result(_result())
        session.prompt.set("next")
        session.submit_prompt()
        assert session.result is not None

    def test_begin_generation_logs_first_line(self):
        session = Session()
        session.begin_generation("top users\nby spend")
        assert session.logs[-1].message == "processing: top users"

    def test_confirm_dialog_roundtrip(self):
        session = Session()
        session.set_generated_sql("DROP TABLE t")
        session.show_confirm("DROP TABLE t")
        assert isinstance(session.modal, ConfirmDialog)
        assert session.modal.risk is RiskLevel.DANGER
        assert session.confirm_sql() == "DROP TABLE t"
        assert session.modal is None

    def test_cancel_drops_pending_sql(self):
        session = Session()
        session.set_generated_sql("DROP TABLE t")
        session.show_confirm("DROP TABLE t")
        session.cancel_sql()
        assert session.modal is None
        assert session.sql is None

    def test_cancel_clears_sql_metadata(self):
        session = Session()
        session.set_generated_sql("DROP TABLE t")
        session.show_confirm("DROP TABLE t")
        session.cancel_sql()
        assert session.sql_status is None
        assert session.risk is None
        assert session.sql_type is None
        assert session.confidence is None

    def test_latency_excludes_time_in_confirm_dialog(self, monkeypatch):
        class Clock:
            ticks = iter([100.0, 100.5, 160.5, 161.0])

            @classmethod
            def monotonic(cls):
                return next(cls.ticks)

        monkeypatch.setattr("core.session.time", Clock)
        session = Session()
        session.prompt.set("drop t")

        session.submit_prompt()              # 100.0
        session.set_generated_sql("DROP TABLE t")
        session.show_confirm("DROP TABLE t")  # 100.5, 0.5s of generation
        session.confirm_sql()                # 160.5, a minute reading the dialog
        session.begin_execution()
        session.set_query_result(_result())  # 161.0

        assert session.latency_ms == 1000


class TestExplain:
    """EXPLAIN visibility and fetch signalling."""

    def test_first_toggle_needs_fetch(self):
        session = Session()
        session.set_generated_sql("SELECT 1")
        assert session.toggle_explain() is True
        session.set_explain("plan")
        assert session.toggle_explain() is False
        assert session.toggle_explain() is False
        assert session.show_explain

    def test_no_sql_means_nothing_to_fetch(self):
        session = Session()
        assert session.toggle_explain() is False

    def test_new_sql_drops_cached_plan(self):
        session = Session()
        session.set_generated_sql("SELECT 1")
        session.set_explain("plan")
        session.set_generated_sql("SELECT 2")
        assert session.explain is None
        assert not session.show_explain


class TestScrolling:
    """Scroll offsets stay within content."""

    def test_results_scroll_is_bounded(self):
        session = Session()
        session.set_query_result(_result(rows=3))
        session.panel = Panel.RESULTS
        session.scroll(10)
        assert session.result_scroll == 2
        session.scroll(-10)
        assert session.result_scroll == 0

    def test_prompt_panel_does_not_scroll(self):
        session = Session()
        session.set_query_result(_result())
        session.scroll(1)
        assert session.result_scroll == 0
        assert session.log_scroll == 0

    def test_logs_follow_newest(self):
        session = Session()
        for i in range(LOG_FOLLOW_WINDOW + 5):
            session.log(LogLevel.INFO, f"m{i}")
        assert session.log_scroll == 5

    def test_single_log_entry_scrolls_to_top(self):
        session = Session()
        session.log(LogLevel.INFO, "only")
        assert session.log_scroll == 0


class TestConnection:
    """Reconnect transitions."""

    def test_editor_prefills_current_url(self):
        session = _connected_session()
        session.open_connection_editor()
        assert isinstance(session.modal, ConnectionEditor)
        assert session.modal.buffer.text == "postgres://u@db.local/shop"

    def test_update_db_info_clears_query_state(self):
        session = _connected_session()
        session.set_generated_sql("SELECT 1")
        session.set_query_result(_result())
        session.open_connection_editor()
        session.begin_reconnect()

        info = DbInfo.from_connection(ConnectionInfo.parse("sqlite:///tmp/x.db"), "")
        session.update_db_info(info)

        assert session.db_info.dialect == "sqlite"
        assert session.result is None
        assert session.sql is None
        assert session.modal is None
        assert not session.reconnecting

    def test_connection_error_keeps_state(self):
        session = _connected_session()
        session.set_generated_sql("SELECT 1")
        session.set_query_result(_result())
        session.open_connection_editor()
        session.begin_reconnect()

        session.set_connection_error("connection failed: refused")

        assert session.db_info.dialect == "postgres"
        assert session.result is not None
        assert session.sql == "SELECT 1"
        assert session.modal.error == "connection failed: refused"
        assert session.logs[-1].level is LogLevel.ERROR


class TestThemes:
    """Theme picker preview."""

    def test_cursor_previews_and_select_keeps(self):
        session = Session()
        session.open_theme_picker()
        assert isinstance(session.modal, ThemePicker)
        session.move_theme_cursor(1)
        assert session.theme == "light"
        session.select_theme()
        assert session.modal is None
        assert session.theme == "light"

    def test_cursor_is_bounded(self):
        session = Session()
        session.open_theme_picker()
        session.move_theme_cursor(-5)
        assert session.modal.index == 0


class TestSetup:
    """Wizard-driven startup."""

    def test_connected_moves_wizard_to_provider(self):
        session = Session.for_setup()
        session.modal.select_db_type()
        session.begin_setup_connect()
        session.setup_connected(DbInfo.from_connection(ConnectionInfo.parse("sqlite:///x.db"), ""))
        assert session.wizard.step is WizardStep.PROVIDER
        assert not session.loading

    def test_failed_connection_returns_to_details(self):
        session = Session.for_setup()
        session.modal.select_db_type()
        session.setup_failed("connection failed: nope")
        assert session.wizard.step is WizardStep.DB_DETAILS
        assert session.wizard.error == "connection failed: nope"

    def test_finish_setup_closes_wizard(self):
        session = Session.for_setup()
        session.db_info = DbInfo.from_connection(ConnectionInfo.parse("sqlite:///x.db"), "")
        session.finish_setup(AgentInfo("openai", "gpt"), credential_from_env=True)
        assert session.modal is None
        assert session.agent_info.ready
        assert session.logs[-1].message == "using api key from environment"
