# ============================================================
# nlql - Natural Language SQL Terminal
# core/actions.py - Closed set of actions produced by the keymap
# ============================================================
#
# Keys that only touch session state are applied inside the
# keymap and come back as NoOp. Everything here that is not
# NoOp needs the controller: an external call, the clipboard,
# the filesystem, or ending the loop.
# ============================================================

from dataclasses import dataclass
from typing import Optional, Union

from core.generator import Provider


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class SubmitPrompt:
    text: str


@dataclass(frozen=True)
class ConfirmExecute:
    sql: str


@dataclass(frozen=True)
class CancelExecute:
    pass


@dataclass(frozen=True)
class Reconnect:
    url: str


@dataclass(frozen=True)
class ToggleExplain:
    pass


@dataclass(frozen=True)
class CopySql:
    pass


@dataclass(frozen=True)
class CopyOutput:
    pass


@dataclass(frozen=True)
class ExportResults:
    pass


@dataclass(frozen=True)
class SetupConnectDatabase:
    url: str


@dataclass(frozen=True)
class SetupComplete:
    provider: Provider
    credential: Optional[str] = None

    @property
    def credential_from_env(self) -> bool:
        return self.credential is None


@dataclass(frozen=True)
class NoOp:
    pass


Action = Union[
    Quit,
    SubmitPrompt,
    ConfirmExecute,
    CancelExecute,
    Reconnect,
    ToggleExplain,
    CopySql,
    CopyOutput,
    ExportResults,
    SetupConnectDatabase,
    SetupComplete,
    NoOp,
]
