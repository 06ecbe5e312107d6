# ============================================================
# nlql - Natural Language SQL Terminal
# ui/controller.py - Session controller (render, poll, dispatch)
# ============================================================
#
# One coroutine drives everything: draw the session, wait up to
# poll_interval for a key, map it, dispatch the action. Actions
# that call out follow the same three steps:
#
#   1. set a loading/reconnecting flag and draw immediately
#   2. await the call (driver work runs in a thread, under
#      the connection lock)
#   3. apply success or failure through a Session method
#
# Nothing is dispatched while a call is pending, so results are
# applied strictly in order.
# ============================================================

import asyncio
from typing import Callable, Optional, Protocol

from loguru import logger

from config import app_config
from core.actions import (
    Action, Quit, SubmitPrompt, ConfirmExecute, CancelExecute, Reconnect,
    ToggleExplain, CopySql, CopyOutput, ExportResults, SetupConnectDatabase,
    SetupComplete, NoOp,
)
from core.database import Database
from core.errors import NlqlError, GenerationError
from core.generator import Provider, SQLGenerator
from core.output import format_result_as_text, export_csv
from core.session import Session, DbInfo, AgentInfo, LogLevel
from ui.keymap import KeyPress, map_key
from utils.clipboard import copy_to_clipboard


class Terminal(Protocol):
    """Where the session is drawn and keys come from."""

    def draw(self, session: Session) -> None:
        ...

    async def poll(self, timeout: float) -> Optional[KeyPress]:
        """Next key, or None once timeout seconds pass without one."""
        ...


ConnectFn = Callable[[str], Database]
GeneratorFactory = Callable[[Provider, Optional[str]], SQLGenerator]


class SessionController:
    """
    Owns the session, the live database handle with its schema
    text, and the SQL generator. The handle sits behind an
    asyncio.Lock; reconnects swap handle and schema together.
    """

    def __init__(
            self,
            session: Session,
            database: Optional[Database] = None,
            schema: str = "",
            generator: Optional[SQLGenerator] = None,
            connect: ConnectFn = Database.connect,
            generator_factory: GeneratorFactory = SQLGenerator,
            clipboard: Callable[[str], bool] = copy_to_clipboard,
            export_dir: Optional[str] = None,
            poll_interval: Optional[float] = None,
    ):
        self.session = session
        self._db = database
        self._schema = schema
        self._generator = generator
        self._connect = connect
        self._generator_factory = generator_factory
        self._clipboard = clipboard
        self.export_dir = export_dir or app_config.export_dir
        self.poll_interval = poll_interval if poll_interval is not None else app_config.poll_interval
        self._db_lock = asyncio.Lock()

    @property
    def database(self) -> Optional[Database]:
        return self._db

    @property
    def schema(self) -> str:
        return self._schema

    @property
    def generator(self) -> Optional[SQLGenerator]:
        return self._generator

    # ── Main Loop ─────────────────────────────────────────────

    async def run(self, terminal: Terminal):
        logger.info("Session loop started")
        try:
            while self.session.running:
                terminal.draw(self.session)
                press = await terminal.poll(self.poll_interval)
                if press is None:
                    continue
                await self.dispatch(map_key(self.session, press), terminal)
        finally:
            await self.close()
            logger.info("Session loop stopped")

    async def dispatch(self, action: Action, terminal: Terminal):
        if isinstance(action, NoOp):
            return
        logger.debug(f"dispatch {action.__class__.__name__}")

        if isinstance(action, Quit):
            self.session.quit()
        elif isinstance(action, SubmitPrompt):
            await self._submit(action.text, terminal)
        elif isinstance(action, ConfirmExecute):
            await self._execute(action.sql, terminal)
        elif isinstance(action, CancelExecute):
            self.session.log(LogLevel.INFO, "query cancelled")
        elif isinstance(action, ToggleExplain):
            await self._explain(terminal)
        elif isinstance(action, Reconnect):
            await self._reconnect(action.url, terminal)
        elif isinstance(action, SetupConnectDatabase):
            await self._setup_connect(action.url, terminal)
        elif isinstance(action, SetupComplete):
            self._setup_complete(action)
        elif isinstance(action, CopySql):
            await self._copy_sql()
        elif isinstance(action, CopyOutput):
            await self._copy_output()
        elif isinstance(action, ExportResults):
            self._export()

    async def close(self):
        async with self._db_lock:
            if self._db is not None:
                await asyncio.to_thread(self._db.close)
                self._db = None

    # ── Query Pipeline ────────────────────────────────────────

    async def _submit(self, text: str, terminal: Terminal):
        session = self.session
        if self._generator is None:
            session.set_query_error("no ai provider configured")
            return

        session.begin_generation(text)
        terminal.draw(session)

        try:
            sql = await self._generator.generate(text, self._schema)
        except GenerationError as e:
            session.set_query_error(str(e))
            return

        session.set_generated_sql(sql)

        if session.confirm_before_run:
            session.show_confirm(sql)
            return

        await self._execute(sql, terminal)

    async def _execute(self, sql: str, terminal: Terminal):
        session = self.session
        session.begin_execution()
        terminal.draw(session)

        async with self._db_lock:
            if self._db is None:
                session.set_query_error("not connected to a database")
                return
            try:
                result = await asyncio.to_thread(self._db.execute, sql)
            except NlqlError as e:
                session.set_query_error(str(e))
                return

        session.set_query_result(result)

    async def _explain(self, terminal: Terminal):
        session = self.session
        sql = session.sql
        if sql is None:
            return

        session.begin_explain()
        terminal.draw(session)

        async with self._db_lock:
            if self._db is None:
                session.set_explain("EXPLAIN failed: not connected")
                return
            try:
                plan = await asyncio.to_thread(self._db.explain, sql)
            except NlqlError as e:
                plan = f"EXPLAIN failed: {e}"

        session.set_explain(plan)

    # ── Connections ───────────────────────────────────────────

    async def _open(self, url: str):
        """Connect and load the schema as one unit; the handle is closed if schema fails."""
        try:
            database = await asyncio.to_thread(self._connect, url)
        except NlqlError as e:
            raise NlqlError(f"connection failed: {e}") from e

        try:
            schema = await asyncio.to_thread(database.schema)
        except NlqlError as e:
            await asyncio.to_thread(database.close)
            raise NlqlError(f"schema error: {e}") from e

        return database, schema

    async def _reconnect(self, url: str, terminal: Terminal):
        session = self.session
        session.begin_reconnect()
        terminal.draw(session)

        async with self._db_lock:
            try:
                database, schema = await self._open(url)
            except NlqlError as e:
                session.set_connection_error(str(e))
                return

            previous = self._db
            self._db, self._schema = database, schema
            session.update_db_info(DbInfo.from_connection(database.info, schema))
            if previous is not None:
                await asyncio.to_thread(previous.close)

    async def _setup_connect(self, url: str, terminal: Terminal):
        session = self.session
        session.begin_setup_connect()
        terminal.draw(session)

        async with self._db_lock:
            try:
                database, schema = await self._open(url)
            except NlqlError as e:
                session.setup_failed(str(e))
                return

            previous = self._db
            self._db, self._schema = database, schema
            if previous is not None:
                await asyncio.to_thread(previous.close)

        session.setup_connected(DbInfo.from_connection(database.info, schema))

    def _setup_complete(self, action: SetupComplete):
        try:
            generator = self._generator_factory(action.provider, action.credential)
        except Exception as e:
            logger.error(f"AI client init failed: {e}")
            self.session.setup_failed(f"ai init failed: {e}", connection=False)
            return

        self._generator = generator
        self.session.finish_setup(
            AgentInfo(provider=action.provider.value, model=generator.model),
            credential_from_env=action.credential_from_env,
        )

    # ── Clipboard & Export ────────────────────────────────────

    async def _copy(self, text: str, what: str):
        if await asyncio.to_thread(self._clipboard, text):
            self.session.log(LogLevel.OK, f"{what} copied to clipboard")
        else:
            self.session.log(LogLevel.WARN, "clipboard not available")

    async def _copy_sql(self):
        if self.session.sql is None:
            self.session.log(LogLevel.WARN, "no sql to copy")
            return
        await self._copy(self.session.sql, "sql")

    async def _copy_output(self):
        result = self.session.result
        if result is None:
            self.session.log(LogLevel.WARN, "no output to copy")
            return
        await self._copy(format_result_as_text(result), "output")

    def _export(self):
        result = self.session.result
        if result is None:
            self.session.log(LogLevel.WARN, "no results to export")
            return
        try:
            path = export_csv(result, self.export_dir)
        except OSError as e:
            self.session.log(LogLevel.ERROR, f"export failed: {e}")
            return
        self.session.log(LogLevel.OK, f"exported to {path}")
