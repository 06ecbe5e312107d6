# ============================================================
# nlql - Natural Language SQL Terminal
# ui/render.py - Session -> rich renderables
# ============================================================
#
# Pure functions: nothing here mutates the session. The Textual
# app places each region in its own widget; tests render them
# to a recording Console.
# ============================================================

from typing import List, Optional

from rich.console import Group, RenderableType
from rich.panel import Panel as RichPanel
from rich.table import Table
from rich.text import Text
from rich import box

from config import app_config
from core.buffer import TextBuffer
from core.generator import PROVIDERS
from core.output import build_result_table, format_sql_syntax, row_summary
from core.risk import RiskLevel
from core.session import (
    Session, Mode, Panel, LogLevel, ThemePicker, ConfirmDialog, ConnectionEditor,
)
from core.themes import Theme, THEMES, get_theme
from core.wizard import SetupWizard, WizardStep, DB_TYPES
from utils.helpers import format_duration, truncate_string

LOGO = "◆ nlql"
VISIBLE_RESULT_ROWS = 50
VISIBLE_LOG_LINES = 10

RISK_SLOTS = {
    RiskLevel.SAFE: "success",
    RiskLevel.MODERATE: "warning",
    RiskLevel.DANGER: "error",
}

LOG_SLOTS = {
    LogLevel.INFO: "muted",
    LogLevel.OK: "success",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
}


def session_theme(session: Session) -> Theme:
    return get_theme(session.theme)


def buffer_text(buffer: TextBuffer, theme: Theme, show_cursor: bool, mask: bool = False) -> Text:
    """Buffer contents with a block cursor drawn at the cursor position."""
    content = "•" * len(buffer.text) if mask else buffer.text
    text = Text(style=theme.hex("fg"))
    if not show_cursor:
        text.append(content)
        return text
    cursor = max(0, min(buffer.cursor, len(content)))
    text.append(content[:cursor])
    under = content[cursor:cursor + 1]
    if not under or under == "\n":
        text.append(" ", style=f"reverse {theme.hex('accent')}")
        text.append(under)
    else:
        text.append(under, style=f"reverse {theme.hex('accent')}")
    text.append(content[cursor + 1:])
    return text


def _panel(body: RenderableType, title: str, theme: Theme, focused: bool,
           height: Optional[int] = None) -> RichPanel:
    border = theme.style("accent", bold=True) if focused else theme.style("border")
    title_style = theme.style("accent", bold=True) if focused else theme.style("muted")
    return RichPanel(
        body,
        title=Text(f" {title} ", style=title_style),
        title_align="left",
        border_style=border,
        box=box.ROUNDED,
        style=f"{theme.hex('fg')} on {theme.hex('bg')}",
        height=height,
    )


# ── Header / Footer ───────────────────────────────────────────

def render_header(session: Session) -> Text:
    theme = session_theme(session)
    info = session.db_info
    sep = (" │ ", theme.style("border"))

    line = Text(style=f"{theme.hex('fg')} on {theme.hex('bg')}")
    line.append(f"{LOGO} ", style=theme.style("accent", bold=True))
    line.append(f"v{app_config.version}", style=theme.style("muted"))
    line.append(*sep)

    if info.connected:
        line.append("db: ", style=theme.style("muted"))
        line.append(f"{info.dialect} @ {info.host}/{info.database}")
        line.append(f" ({info.tables} tables)", style=theme.style("muted"))
    else:
        line.append("db: not connected", style=theme.style("warning"))
    line.append(*sep)

    agent = session.agent_info
    line.append("agent: ", style=theme.style("muted"))
    line.append(f"{agent.provider} · {agent.model}" if agent.ready else "-")
    line.append(*sep)

    line.append("latency: ", style=theme.style("muted"))
    line.append(format_duration(session.latency_ms))
    line.append(*sep)

    mode_slot = "warning" if session.mode is Mode.INSERT else "accent"
    line.append(f" {session.mode.value} ", style=f"bold {theme.hex('bg')} on {theme.hex(mode_slot)}")
    if session.reconnecting:
        line.append("  reconnecting...", style=theme.style("warning"))
    elif session.loading:
        line.append("  working...", style=theme.style("warning"))
    return line


def footer_hints(session: Session) -> List[str]:
    modal = session.modal
    if isinstance(modal, SetupWizard):
        if modal.step in (WizardStep.DB_TYPE, WizardStep.PROVIDER):
            return ["j/k select", "enter confirm", "q quit"]
        if modal.step is WizardStep.DB_DETAILS:
            return ["tab next field", "enter connect", "esc back"]
        return ["enter save", "ctrl+u clear", "ctrl+c quit"]
    if isinstance(modal, ThemePicker):
        return ["j/k preview", "enter select", "esc close"]
    if isinstance(modal, ConfirmDialog):
        return ["y execute", "n cancel"]
    if isinstance(modal, ConnectionEditor):
        return ["enter connect", "ctrl+u clear", "esc cancel"]
    if session.mode is Mode.INSERT:
        return ["esc normal", "enter run", "ctrl+enter newline", "ctrl+p/n history"]
    return [
        "i insert", "enter run", "tab panel", "e explain", "y/Y copy",
        "x export", "t theme", "c connect", "f full", "q quit",
    ]


def render_footer(session: Session) -> Text:
    theme = session_theme(session)
    text = Text(style=f"{theme.hex('muted')} on {theme.hex('bg')}")
    for i, hint in enumerate(footer_hints(session)):
        if i:
            text.append("  ·  ", style=theme.style("border"))
        key, _, label = hint.partition(" ")
        text.append(key, style=theme.style("accent", bold=True))
        text.append(f" {label}")
    return text


# ── Panels ────────────────────────────────────────────────────

def render_prompt(session: Session, height: Optional[int] = None) -> RichPanel:
    theme = session_theme(session)
    focused = session.panel is Panel.PROMPT
    inserting = session.mode is Mode.INSERT and session.modal is None

    if not session.prompt.text and not inserting:
        body = Text("press i and describe what you want to query", style=theme.style("muted"))
    else:
        body = buffer_text(session.prompt, theme, show_cursor=inserting)

    title = Panel.PROMPT.title
    if session.history_index is not None:
        title += f" [history {session.history_index + 1}/{len(session.history)}]"
    return _panel(body, title, theme, focused, height)


def render_sql(session: Session, height: Optional[int] = None) -> RichPanel:
    theme = session_theme(session)
    focused = session.panel is Panel.SQL

    if session.sql is None:
        body: RenderableType = Text("no sql yet", style=theme.style("muted"))
        return _panel(body, Panel.SQL.title, theme, focused, height)

    parts: List[RenderableType] = [
        format_sql_syntax(
            session.sql,
            theme="friendly" if theme.is_light else "monokai",
            background=theme.hex("bg"),
        )
    ]

    meta = Text()
    meta.append("status ", style=theme.style("muted"))
    meta.append(session.sql_status or "-")
    if session.sql_type:
        meta.append("  type ", style=theme.style("muted"))
        meta.append(session.sql_type)
    if session.risk is not None:
        meta.append("  risk ", style=theme.style("muted"))
        meta.append(session.risk.label, style=theme.style(RISK_SLOTS[session.risk], bold=True))
    if session.confidence is not None:
        meta.append("  confidence ", style=theme.style("muted"))
        meta.append(f"~{session.confidence}% (est.)")
    parts.append(meta)

    if session.show_explain:
        parts.append(Text("EXPLAIN", style=theme.style("accent", bold=True)))
        if session.explain is not None:
            parts.append(Text(session.explain, style=theme.hex("fg")))
        else:
            parts.append(Text("running EXPLAIN...", style=theme.style("muted")))

    return _panel(Group(*parts), Panel.SQL.title, theme, focused, height)


def render_results(session: Session, height: Optional[int] = None) -> RichPanel:
    theme = session_theme(session)
    visible_rows = max(1, height - 6) if height else VISIBLE_RESULT_ROWS
    focused = session.panel is Panel.RESULTS
    result = session.result

    if session.loading and session.modal is None:
        body: RenderableType = Text("running...", style=theme.style("warning"))
    elif session.error is not None:
        body = Text(f"ERROR: {session.error}", style=theme.style("error"))
    elif result is None:
        body = Text("no results", style=theme.style("muted"))
    elif not result.columns:
        body = Text(row_summary(result), style=theme.style("success"))
    elif result.is_empty:
        body = Text("Empty set", style=theme.style("muted"))
    else:
        table = build_result_table(
            result,
            offset=session.result_scroll,
            limit=visible_rows,
            header_style=theme.style("accent", bold=True),
            border_style=theme.style("border"),
            null_style=f"italic {theme.hex('muted')}",
        )
        shown_to = min(result.row_count, session.result_scroll + visible_rows)
        footer = Text(
            f"{row_summary(result)}  rows {session.result_scroll + 1}-{shown_to}",
            style=theme.style("muted"),
        )
        body = Group(table, footer)

    return _panel(body, Panel.RESULTS.title, theme, focused, height)


def render_logs(session: Session, height: Optional[int] = None) -> RichPanel:
    theme = session_theme(session)
    visible_lines = max(1, height - 2) if height else VISIBLE_LOG_LINES
    focused = session.panel is Panel.LOGS
    text = Text()
    window = session.logs[session.log_scroll:session.log_scroll + visible_lines]
    for i, entry in enumerate(window):
        if i:
            text.append("\n")
        text.append(f"{entry.timestamp} ", style=theme.style("muted"))
        text.append(f"{entry.level.value:<5} ", style=theme.style(LOG_SLOTS[entry.level], bold=True))
        text.append(entry.message)
    if not window:
        text.append("no logs", style=theme.style("muted"))
    return _panel(text, Panel.LOGS.title, theme, focused, height)


PANEL_RENDERERS = {
    Panel.PROMPT: render_prompt,
    Panel.SQL: render_sql,
    Panel.RESULTS: render_results,
    Panel.LOGS: render_logs,
}


def render_panel(session: Session, panel: Panel, height: Optional[int] = None) -> RichPanel:
    return PANEL_RENDERERS[panel](session, height)


# ── Modals ────────────────────────────────────────────────────

def _choice_list(labels: List[str], selected: int, theme: Theme) -> Text:
    text = Text()
    for i, label in enumerate(labels):
        if i:
            text.append("\n")
        if i == selected:
            text.append(f"▸ {label}", style=f"bold {theme.hex('accent')} on {theme.hex('selection')}")
        else:
            text.append(f"  {label}")
    return text


def _error_line(message: Optional[str], theme: Theme) -> Optional[Text]:
    if not message:
        return None
    return Text(f"✗ {message}", style=theme.style("error"))


def _wizard_body(session: Session, wizard: SetupWizard, theme: Theme) -> List[RenderableType]:
    parts: List[RenderableType] = []
    step = wizard.step

    if step is WizardStep.DB_TYPE:
        parts.append(Text("Which database are you connecting to?"))
        parts.append(_choice_list([t.display_name for t in DB_TYPES], wizard.db_type_index, theme))

    elif step is WizardStep.DB_DETAILS:
        parts.append(Text(f"{wizard.db_type.display_name} connection", style=theme.style("accent")))
        fields = Table.grid(padding=(0, 1))
        fields.add_column(justify="right", style=theme.style("muted"))
        fields.add_column()
        for i, wizard_field in enumerate(wizard.visible_fields):
            focused = i == wizard.focus
            marker = "▸" if focused else " "
            fields.add_row(
                f"{marker} {wizard_field.label}",
                buffer_text(wizard.fields[wizard_field], theme, show_cursor=focused,
                            mask=wizard_field.is_secret),
            )
        parts.append(fields)
        if session.loading:
            parts.append(Text("connecting...", style=theme.style("warning")))

    elif step is WizardStep.PROVIDER:
        parts.append(Text("Which AI provider should write the SQL?"))
        labels = []
        for provider in PROVIDERS:
            found = " (key found in environment)" if provider.credential_from_env() else ""
            labels.append(f"{provider.display_name}{found}")
        parts.append(_choice_list(labels, wizard.provider_index, theme))

    else:
        parts.append(Text(f"{wizard.provider.display_name} API key"))
        parts.append(buffer_text(wizard.api_key, theme, show_cursor=True, mask=True))
        parts.append(Text(f"or set {wizard.provider.env_vars[0]}", style=theme.style("muted")))

    error = _error_line(wizard.error, theme)
    if error is not None:
        parts.append(error)
    return parts


def render_modal(session: Session) -> Optional[RichPanel]:
    """Overlay for the active modal, or None when there is none."""
    theme = session_theme(session)
    modal = session.modal
    if modal is None:
        return None

    if isinstance(modal, SetupWizard):
        title = f"Setup ({modal.step.number}/{len(WizardStep)})"
        body: List[RenderableType] = _wizard_body(session, modal, theme)

    elif isinstance(modal, ThemePicker):
        title = "Themes"
        body = [_choice_list([t.name for t in THEMES], modal.index, theme)]

    elif isinstance(modal, ConfirmDialog):
        title = "Run this query?"
        risk = Text("risk ", style=theme.style("muted"))
        risk.append(modal.risk.label, style=theme.style(RISK_SLOTS[modal.risk], bold=True))
        body = [
            format_sql_syntax(truncate_string(modal.sql, 600), background=theme.hex("bg")),
            risk,
            Text("y execute · n cancel", style=theme.style("muted")),
        ]

    else:
        title = "Connection"
        body = [
            Text("database url", style=theme.style("muted")),
            buffer_text(modal.buffer, theme, show_cursor=True),
        ]
        if session.reconnecting:
            body.append(Text("connecting...", style=theme.style("warning")))
        error = _error_line(modal.error, theme)
        if error is not None:
            body.append(error)

    return _panel(Group(*body), title, theme, focused=True)
