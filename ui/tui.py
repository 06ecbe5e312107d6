# ============================================================
# nlql - Natural Language SQL Terminal
# ui/tui.py - Textual shell around the session controller
# ============================================================
#
# Textual owns the terminal: App.run() enters raw mode and the
# alternate screen and restores both on every exit path, so the
# controller never touches terminal modes itself.
#
# All keys go to the session keymap. The app binds nothing and
# stops every key event so Textual's own bindings (tab focus,
# ctrl+q) never see them.
# ============================================================

import asyncio
from pathlib import Path
from typing import Optional

from textual import events, work
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Static
from loguru import logger

from core.session import Session, Panel
from core.themes import get_theme
from ui.controller import SessionController
from ui.keymap import KeyPress
from ui.render import render_header, render_footer, render_panel, render_modal

TOP_ROW = (Panel.PROMPT, Panel.SQL)


class OverlayScreen(ModalScreen):
    """Centered box for whichever session modal is active."""

    def __init__(self):
        super().__init__()
        self._body = Static(id="modal-body")

    def compose(self) -> ComposeResult:
        yield self._body

    def show(self, renderable) -> None:
        self._body.update(renderable)


class NlqlApp(App, inherit_bindings=False):
    """
    Full-screen nlql session.
    Header, 2x2 panel grid (Prompt | SQL over Results | Logs), footer.
    Implements the controller's Terminal protocol: draw() and poll().
    """

    CSS_PATH = str(Path(__file__).parent / "nlql.tcss")
    TITLE = "nlql"
    ENABLE_COMMAND_PALETTE = False

    def __init__(self, controller: SessionController):
        super().__init__()
        self.controller = controller
        self._keys: "asyncio.Queue[KeyPress]" = asyncio.Queue()
        self._overlay: Optional[OverlayScreen] = None

    # ── Layout ────────────────────────────────────────────────

    def compose(self) -> ComposeResult:
        yield Static(id="header")
        with Vertical(id="body"):
            with Horizontal(id="row-top", classes="row"):
                yield Static(id="panel-prompt", classes="panel")
                yield Static(id="panel-sql", classes="panel")
            with Horizontal(id="row-bottom", classes="row"):
                yield Static(id="panel-results", classes="panel")
                yield Static(id="panel-logs", classes="panel")
        yield Static(id="footer")

    # ── App Lifecycle ─────────────────────────────────────────

    def on_mount(self) -> None:
        self.run_session()

    @work(exclusive=True)
    async def run_session(self) -> None:
        try:
            await self.controller.run(self)
        finally:
            self.exit()

    async def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._keys.put_nowait(KeyPress.from_event(event))

    def on_mouse_down(self, event) -> None:
        event.stop()

    # ── Terminal protocol ─────────────────────────────────────

    async def poll(self, timeout: float) -> Optional[KeyPress]:
        try:
            return await asyncio.wait_for(self._keys.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def draw(self, session: Session) -> None:
        theme = get_theme(session.theme)
        base = self.screen_stack[0]
        base.styles.background = theme.hex("bg")

        base.query_one("#header", Static).update(render_header(session))
        base.query_one("#footer", Static).update(render_footer(session))

        body = base.query_one("#body")
        body.set_class(session.fullscreen, "fullscreen")
        base.query_one("#row-top").set_class(session.panel in TOP_ROW, "active-row")
        base.query_one("#row-bottom").set_class(session.panel not in TOP_ROW, "active-row")

        for panel in Panel:
            widget = base.query_one(f"#panel-{panel.value}", Static)
            widget.set_class(panel is session.panel, "active")
            height = widget.size.height or None
            widget.update(render_panel(session, panel, height))

        self._draw_modal(session)

    def _draw_modal(self, session: Session) -> None:
        renderable = render_modal(session)
        if renderable is None:
            if self._overlay is not None:
                self.pop_screen()
                self._overlay = None
            return

        if self._overlay is None:
            self._overlay = OverlayScreen()
            self.push_screen(self._overlay)
            logger.debug(f"modal opened: {session.modal.__class__.__name__}")
        self._overlay.show(renderable)
