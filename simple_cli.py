# ============================================================
# nlql - Natural Language SQL Terminal
# simple_cli.py - Line-mode REPL (no full-screen session)
# ============================================================
#
# Same generator, database and risk rules as the full-screen
# session, one request per line. With --confirm every statement
# waits for a y/n answer.
# ============================================================

import asyncio
import os
from typing import Optional
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from loguru import logger

from core.database import Database, QueryResult, TABLE_MARKER, count_tables
from core.errors import NlqlError
from core.generator import SQLGenerator
from core.output import build_result_table, format_sql_syntax, row_summary, result_to_json
from core.risk import RiskLevel, assess
from config import app_config

RISK_STYLES = {
    RiskLevel.SAFE: "green",
    RiskLevel.MODERATE: "yellow",
    RiskLevel.DANGER: "bold red",
}

HELP_TEXT = """[bold]Commands[/bold]
  /help     show this help
  /schema   print the schema sent to the model
  /tables   list tables
  /exit     quit

Anything else is sent to the model as a question."""


class SimpleCLI:
    """
    Single-window REPL for nlql.
    Each line is turned into SQL, shown with its risk tier, and run.
    Output is a rich table, or JSON for piping ("json" / "raw").
    """

    def __init__(
            self,
            database: Database,
            schema: str,
            generator: SQLGenerator,
            confirm_before_run: bool = False,
            output: str = "table",
            console: Optional[Console] = None,
            prompt_session: Optional[PromptSession] = None,
    ):
        self.console = console or Console()
        self.database = database
        self.schema = schema
        self.generator = generator
        self.confirm_before_run = confirm_before_run
        self.output = output
        self._running: bool = True

        # Prompt toolkit session with history
        if prompt_session is None:
            history_file = os.path.expanduser(app_config.history_file)
            prompt_session = PromptSession(
                history=FileHistory(history_file),
                auto_suggest=AutoSuggestFromHistory(),
            )
        self.session = prompt_session

    def run(self):
        """Main loop."""
        self._print_banner()

        while self._running:
            try:
                user_input = self._get_input()
                if user_input is None:
                    break
                user_input = user_input.strip()
                if not user_input:
                    continue
                self.handle_input(user_input)
            except KeyboardInterrupt:
                self.console.print("\n[dim]Use /exit to quit[/dim]")
            except EOFError:
                break

        self._shutdown()

    def _get_input(self) -> Optional[str]:
        try:
            return self.session.prompt(
                HTML(
                    f"<ansigreen><b>nlql</b></ansigreen>"
                    f"<ansicyan>[{self.database.database or self.database.dialect_name}]</ansicyan>"
                    f"<ansicyan> ▶ </ansicyan>"
                )
            )
        except KeyboardInterrupt:
            return ""
        except EOFError:
            return None

    def handle_input(self, user_input: str):
        """Route input to a slash command or the generator."""
        if user_input.startswith("/"):
            self._handle_command(user_input)
            return
        self._handle_request(user_input)

    # ── Requests ──────────────────────────────────────────────

    def _handle_request(self, request: str):
        self.console.print("[dim]Generating...[/dim]")
        try:
            sql = asyncio.run(self.generator.generate(request, self.schema))
        except NlqlError as e:
            self.console.print(f"[red]✗ {e}[/red]")
            return

        risk, stmt_type = assess(sql)
        self.console.print(format_sql_syntax(sql))
        self.console.print(
            f"[dim]type:[/dim] {stmt_type}  "
            f"[dim]risk:[/dim] [{RISK_STYLES[risk]}]{risk.label}[/{RISK_STYLES[risk]}]"
        )

        if self.confirm_before_run and not self._confirm(risk):
            self.console.print("[dim]Query not executed.[/dim]\n")
            return

        self._execute(sql)

    def _confirm(self, risk: RiskLevel) -> bool:
        if risk.is_dangerous:
            self.console.print("[yellow]⚠ This statement can destroy data.[/yellow]")
        try:
            answer = self.session.prompt(HTML("<ansiyellow>Execute this query? (y/n): </ansiyellow>"))
        except (KeyboardInterrupt, EOFError):
            return False
        return answer.strip().lower() == "y"

    def _execute(self, sql: str):
        try:
            result = self.database.execute(sql)
        except NlqlError as e:
            self.console.print(f"[red]ERROR: {e}[/red]\n")
            return
        self.print_result(result)

    def print_result(self, result: QueryResult):
        if self.output in ("json", "raw"):
            # JSON goes out unstyled so it can be piped
            self.console.print(result_to_json(result, pretty=self.output == "json"),
                               markup=False, highlight=False, soft_wrap=True)
            return

        if result.columns:
            self.console.print(build_result_table(result))
        self.console.print(f"[dim]{row_summary(result)}[/dim]\n")

    # ── Slash commands ────────────────────────────────────────

    def _handle_command(self, command: str):
        cmd = command.split()[0].lower()

        if cmd in ("/exit", "/quit"):
            self._running = False

        elif cmd == "/help":
            self.console.print(HELP_TEXT)

        elif cmd == "/schema":
            self.console.print(self.schema or "[dim](no tables)[/dim]", markup=not self.schema)

        elif cmd == "/tables":
            names = [
                line[len(TABLE_MARKER):].split(" (", 1)[0]
                for line in self.schema.splitlines()
                if line.startswith(TABLE_MARKER)
            ]
            if names:
                for name in names:
                    self.console.print(f"  • {name}")
            else:
                self.console.print("[dim](no tables)[/dim]")

        else:
            self.console.print(f"[yellow]Unknown command: {command}. Type /help[/yellow]")

    def _print_banner(self):
        self.console.print(
            f"[bold #58a6ff]nlql[/bold #58a6ff] [bold]v{app_config.version}[/bold]  "
            f"[dim]{self.database.dialect_name} · {count_tables(self.schema)} tables · "
            f"{self.generator.provider.value} ({self.generator.model})[/dim]"
        )
        self.console.print("[dim]Type [bold]/help[/bold] for commands, or ask a question.[/dim]\n")
        logger.info("Simple CLI started")

    def _shutdown(self):
        """Clean up on exit."""
        self.database.close()
        self.console.print("[green]Goodbye![/green]")
