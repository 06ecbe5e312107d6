# ============================================================
# nlql - Natural Language SQL Terminal
# ui/keymap.py - Key events to session edits and actions
# ============================================================
#
# Dispatch order: ctrl+c (always quits), active modal, then the
# edit mode. Keys that only change session state are applied
# here and return NoOp; anything needing I/O becomes an Action.
# ============================================================

from dataclasses import dataclass
from typing import Optional

from core.actions import (
    Action, Quit, SubmitPrompt, ConfirmExecute, CancelExecute, Reconnect,
    ToggleExplain, CopySql, CopyOutput, ExportResults, NoOp,
)
from core.buffer import TextBuffer
from core.database import ConnectionInfo
from core.errors import ConnectionUrlError
from core.session import Session, Mode, ThemePicker, ConfirmDialog, ConnectionEditor
from core.wizard import SetupWizard, WizardStep

NEWLINE_KEYS = ("ctrl+enter", "shift+enter", "ctrl+j")


@dataclass(frozen=True)
class KeyPress:
    """
    A key as the session sees it: Textual-style key name plus the
    printable character it produced, if any.
    """
    key: str
    char: Optional[str] = None

    @classmethod
    def from_event(cls, event) -> "KeyPress":
        char = getattr(event, "character", None)
        if not getattr(event, "is_printable", bool(char and char.isprintable())):
            char = None
        return cls(key=event.key, char=char)

    @property
    def text(self) -> Optional[str]:
        """Printable character, ignoring ctrl/alt chords."""
        if self.char and self.char.isprintable() and not self.key.startswith(("ctrl+", "alt+")):
            return self.char
        return None

    def is_(self, *names: str) -> bool:
        return self.key in names or (self.text is not None and self.text in names)


def edit_buffer(buffer: TextBuffer, press: KeyPress) -> bool:
    """Apply a line-editing key to a buffer. Returns False if the key isn't an edit."""
    key = press.key
    if key == "backspace":
        buffer.backspace()
    elif key == "delete":
        buffer.delete()
    elif key == "left":
        buffer.left()
    elif key == "right":
        buffer.right()
    elif key in ("home", "ctrl+a"):
        buffer.home()
    elif key in ("end", "ctrl+e"):
        buffer.end()
    elif key == "ctrl+u":
        buffer.clear()
    elif press.text is not None:
        buffer.insert(press.text)
    else:
        return False
    return True


def map_key(session: Session, press: KeyPress) -> Action:
    if press.key == "ctrl+c":
        return Quit()

    modal = session.modal
    if isinstance(modal, SetupWizard):
        return _wizard_key(modal, press)
    if isinstance(modal, ThemePicker):
        return _theme_key(session, press)
    if isinstance(modal, ConfirmDialog):
        return _confirm_key(session, press)
    if isinstance(modal, ConnectionEditor):
        return _connection_key(session, modal, press)

    if session.mode is Mode.INSERT:
        return _insert_key(session, press)
    return _normal_key(session, press)


# ── Normal / Insert ───────────────────────────────────────────

def _submit(session: Session) -> Action:
    text = session.submit_prompt()
    return SubmitPrompt(text) if text is not None else NoOp()


def _normal_key(session: Session, press: KeyPress) -> Action:
    key, text = press.key, press.text

    if text == "q":
        return Quit()
    if text == "i":
        session.enter_insert()
    elif text in ("a", "A"):
        session.prompt.end()
        session.enter_insert()
    elif text == "I":
        session.prompt.home()
        session.enter_insert()
    elif key == "tab":
        session.cycle_panel()
    elif text == "t":
        session.open_theme_picker()
    elif text == "f":
        session.toggle_fullscreen()
    elif text == "c":
        session.open_connection_editor()
    elif text == "e":
        return ToggleExplain() if session.toggle_explain() else NoOp()
    elif text == "y":
        return CopySql()
    elif text == "Y":
        return CopyOutput()
    elif text == "x":
        return ExportResults()
    elif text == "j" or key == "down":
        session.scroll(1)
    elif text == "k" or key == "up":
        session.scroll(-1)
    elif key == "ctrl+p":
        session.history_up()
    elif key == "ctrl+n":
        session.history_down()
    elif key == "enter":
        return _submit(session)
    return NoOp()


def _insert_key(session: Session, press: KeyPress) -> Action:
    key = press.key

    if key == "escape":
        session.exit_insert()
    elif key in NEWLINE_KEYS:
        session.prompt.insert("\n")
    elif key == "enter":
        session.exit_insert()
        return _submit(session)
    elif key in ("ctrl+p", "up"):
        session.history_up()
    elif key in ("ctrl+n", "down"):
        session.history_down()
    else:
        edit_buffer(session.prompt, press)
    return NoOp()


# ── Modals ────────────────────────────────────────────────────

def _theme_key(session: Session, press: KeyPress) -> Action:
    if press.is_("j", "down"):
        session.move_theme_cursor(1)
    elif press.is_("k", "up"):
        session.move_theme_cursor(-1)
    elif press.key == "enter":
        session.select_theme()
    elif press.is_("escape", "q"):
        session.close_modal()
    return NoOp()


def _confirm_key(session: Session, press: KeyPress) -> Action:
    if press.text in ("y", "Y"):
        sql = session.confirm_sql()
        return ConfirmExecute(sql) if sql is not None else NoOp()
    if press.text in ("n", "N") or press.key == "escape":
        session.cancel_sql()
        return CancelExecute()
    return NoOp()


def _connection_key(session: Session, editor: ConnectionEditor, press: KeyPress) -> Action:
    if press.key == "escape":
        session.close_modal()
        return NoOp()
    if press.key == "enter":
        url = editor.buffer.text.strip()
        try:
            ConnectionInfo.parse(url)
        except ConnectionUrlError as e:
            editor.error = str(e)
            return NoOp()
        editor.error = None
        return Reconnect(url)
    if edit_buffer(editor.buffer, press):
        editor.error = None
    return NoOp()


def _wizard_key(wizard: SetupWizard, press: KeyPress) -> Action:
    step = wizard.step

    if step is WizardStep.DB_TYPE:
        if press.is_("j", "down"):
            wizard.move_db_type(1)
        elif press.is_("k", "up"):
            wizard.move_db_type(-1)
        elif press.key == "enter":
            wizard.select_db_type()
        elif press.is_("q", "escape"):
            return Quit()
        return NoOp()

    if step is WizardStep.PROVIDER:
        if press.is_("j", "down"):
            wizard.move_provider(1)
        elif press.is_("k", "up"):
            wizard.move_provider(-1)
        elif press.key == "enter":
            return wizard.select_provider() or NoOp()
        elif press.text == "q":
            return Quit()
        return NoOp()

    if step is WizardStep.DB_DETAILS:
        if press.key in ("tab", "down"):
            wizard.next_field()
            return NoOp()
        if press.key in ("shift+tab", "up"):
            wizard.prev_field()
            return NoOp()
        if press.key == "escape":
            wizard.back_to_db_type()
            return NoOp()
        if press.key == "enter":
            return wizard.submit_details() or NoOp()

    elif step is WizardStep.API_KEY and press.key == "enter":
        return wizard.submit_api_key() or NoOp()

    buffer = wizard.active_buffer
    if buffer is not None:
        if press.text is not None:
            wizard.type_text(press.text)
        else:
            edit_buffer(buffer, press)
    return NoOp()
