# ============================================================
# nlql - Natural Language SQL Terminal
# core/wizard.py - First-run setup wizard
# ============================================================
#
# Forced order:
#   DB_TYPE -> DB_DETAILS -> PROVIDER -> API_KEY -> (complete)
# DB_DETAILS -> DB_TYPE is the only way back. PROVIDER can jump
# straight to completion when the provider's API key is already
# in the environment.
# ============================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Mapping
from urllib.parse import quote

from core.actions import SetupConnectDatabase, SetupComplete
from core.buffer import TextBuffer
from core.generator import Provider, PROVIDERS


class DbType(Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @property
    def display_name(self) -> str:
        return {
            DbType.POSTGRES: "PostgreSQL",
            DbType.MYSQL: "MySQL",
            DbType.SQLITE: "SQLite",
        }[self]

    @property
    def scheme(self) -> str:
        return self.value

    @property
    def default_port(self) -> str:
        return {DbType.POSTGRES: "5432", DbType.MYSQL: "3306", DbType.SQLITE: ""}[self]

    @property
    def is_file_based(self) -> bool:
        return self is DbType.SQLITE


DB_TYPES = (DbType.POSTGRES, DbType.MYSQL, DbType.SQLITE)


class WizardStep(Enum):
    DB_TYPE = "db_type"
    DB_DETAILS = "db_details"
    PROVIDER = "provider"
    API_KEY = "api_key"

    @property
    def number(self) -> int:
        return list(WizardStep).index(self) + 1


class WizardField(Enum):
    HOST = "host"
    PORT = "port"
    USER = "user"
    PASSWORD = "password"
    NAME = "database"
    FILE = "file"

    @property
    def label(self) -> str:
        return {
            WizardField.HOST: "Host",
            WizardField.PORT: "Port",
            WizardField.USER: "User",
            WizardField.PASSWORD: "Password",
            WizardField.NAME: "Database",
            WizardField.FILE: "File path",
        }[self]

    @property
    def is_secret(self) -> bool:
        return self is WizardField.PASSWORD


NETWORK_FIELDS: List[WizardField] = [
    WizardField.HOST,
    WizardField.PORT,
    WizardField.USER,
    WizardField.PASSWORD,
    WizardField.NAME,
]
FILE_FIELDS: List[WizardField] = [WizardField.FILE]


def _default_fields() -> Dict[WizardField, TextBuffer]:
    fields = {f: TextBuffer() for f in WizardField}
    fields[WizardField.HOST].set("localhost")
    fields[WizardField.PORT].set(DbType.POSTGRES.default_port)
    return fields


@dataclass
class SetupWizard:
    """
    Sub-state of the session while no database and credential
    exist yet. Also serves as the session's active modal for the
    duration of setup.
    """
    step: WizardStep = WizardStep.DB_TYPE
    db_type_index: int = 0
    fields: Dict[WizardField, TextBuffer] = field(default_factory=_default_fields)
    focus: int = 0
    provider_index: int = 0
    api_key: TextBuffer = field(default_factory=TextBuffer)
    error: Optional[str] = None

    @property
    def db_type(self) -> DbType:
        return DB_TYPES[self.db_type_index]

    @property
    def provider(self) -> Provider:
        return PROVIDERS[self.provider_index]

    # ── Step 1: database type ─────────────────────────────────

    def move_db_type(self, delta: int):
        self.db_type_index = max(0, min(len(DB_TYPES) - 1, self.db_type_index + delta))

    def select_db_type(self):
        self.step = WizardStep.DB_DETAILS
        self.focus = 0
        self.error = None
        self.fields[WizardField.PORT].set(self.db_type.default_port)

    # ── Step 2: connection details ────────────────────────────

    @property
    def visible_fields(self) -> List[WizardField]:
        return FILE_FIELDS if self.db_type.is_file_based else NETWORK_FIELDS

    @property
    def focused_field(self) -> WizardField:
        fields = self.visible_fields
        return fields[min(self.focus, len(fields) - 1)]

    def next_field(self):
        self.focus = (self.focus + 1) % len(self.visible_fields)

    def prev_field(self):
        self.focus = (self.focus - 1) % len(self.visible_fields)

    def value(self, wizard_field: WizardField) -> str:
        return self.fields[wizard_field].text

    def back_to_db_type(self):
        self.step = WizardStep.DB_TYPE
        self.error = None

    def build_url(self) -> Optional[str]:
        """Assemble the connection URL, or set an error and return None."""
        if self.db_type.is_file_based:
            path = self.value(WizardField.FILE).strip()
            if not path:
                self.error = "file path required"
                return None
            return f"sqlite:{path}"

        host = self.value(WizardField.HOST).strip()
        name = self.value(WizardField.NAME).strip()
        if not host:
            self.error = "host required"
            return None
        if not name:
            self.error = "database name required"
            return None

        user = self.value(WizardField.USER).strip()
        password = self.value(WizardField.PASSWORD)
        port = self.value(WizardField.PORT).strip()
        if port and not (port.isascii() and port.isdigit() and 1 <= int(port) <= 65535):
            self.error = "port must be a number from 1 to 65535"
            return None

        # credentials may hold @ / : # and must not end the authority early
        auth = ""
        if user:
            auth = quote(user, safe="")
            if password:
                auth += ":" + quote(password, safe="")
            auth += "@"
        address = f"{host}:{port}" if port else host
        return f"{self.db_type.scheme}://{auth}{address}/{quote(name, safe='')}"

    def submit_details(self) -> Optional[SetupConnectDatabase]:
        url = self.build_url()
        if url is None:
            return None
        self.error = None
        return SetupConnectDatabase(url)

    def connection_failed(self, message: str):
        self.step = WizardStep.DB_DETAILS
        self.error = message

    def connected(self):
        self.step = WizardStep.PROVIDER
        self.error = None

    # ── Step 3: provider ──────────────────────────────────────

    def move_provider(self, delta: int):
        self.provider_index = max(0, min(len(PROVIDERS) - 1, self.provider_index + delta))

    def select_provider(self, environ: Optional[Mapping[str, str]] = None) -> Optional[SetupComplete]:
        """Finish right away when the environment already has a key."""
        self.error = None
        if self.provider.credential_from_env(environ):
            return SetupComplete(self.provider, None)
        self.step = WizardStep.API_KEY
        return None

    # ── Step 4: API key ───────────────────────────────────────

    def submit_api_key(self) -> Optional[SetupComplete]:
        if self.api_key.is_blank:
            self.error = "api key required"
            return None
        self.error = None
        return SetupComplete(self.provider, self.api_key.text.strip())

    # ── Editing ───────────────────────────────────────────────

    @property
    def active_buffer(self) -> Optional[TextBuffer]:
        """Buffer receiving keystrokes on the current step, if any."""
        if self.step is WizardStep.DB_DETAILS:
            return self.fields[self.focused_field]
        if self.step is WizardStep.API_KEY:
            return self.api_key
        return None

    def type_text(self, chars: str):
        buffer = self.active_buffer
        if buffer is not None:
            buffer.insert(chars)
            self.error = None

    def fail(self, message: str):
        self.error = message
