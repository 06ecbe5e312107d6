#!/usr/bin/env python3
# ============================================================
# nlql - Natural Language SQL Terminal
# main.py - Application Entry Point
# ============================================================
#
# Usage:
#   nlql                          → full-screen session (setup wizard
#                                   when no database URL is known)
#   nlql --db sqlite:///app.db    → start connected
#   nlql simple [--json|--raw]    → line-mode REPL
#   nlql schema --db URL          → print the introspected schema
#   nlql serve [--port N]         → HTTP API (/health, /schema, /query)
#   nlql version                  → show version info
#
# Connection URL comes from --db or DATABASE_URL; the API key
# from --api-key or the provider's environment variable.
# ============================================================

import sys
import os
import click
from loguru import logger

# Add project root to path
sys.path.insert(0, os.path.dirname(__file__))

from utils.logger import setup_logger
from config import app_config, ai_config, database_config
from core.database import Database
from core.errors import NlqlError, MissingCredentialError
from core.generator import Provider, SQLGenerator
from core.themes import resolve_theme_name, THEME_NAMES


@click.group(invoke_without_command=True)
@click.option("--db", "db_url", envvar="DATABASE_URL", default=None,
              help="Database URL (postgres://, mysql://, sqlite://). Defaults to $DATABASE_URL.")
@click.option("--provider", default=None, help="SQL generation provider: claude or openai.")
@click.option("--api-key", default=None, help="API key for the provider (otherwise read from the environment).")
@click.option("--confirm/--no-confirm", default=None, help="Ask before running every statement.")
@click.option("--theme", default=None, type=click.Choice(THEME_NAMES, case_sensitive=False),
              help="Color theme.")
@click.pass_context
def cli(ctx, db_url, provider, api_key, confirm, theme):
    """nlql: ask your database questions in plain language."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        db_url=(db_url or database_config.url or "").strip() or None,
        provider=provider,
        api_key=api_key,
        confirm=app_config.confirm_before_run if confirm is None else confirm,
        theme=resolve_theme_name(theme or app_config.theme or None),
    )
    if ctx.invoked_subcommand is None:
        launch_tui(ctx.obj)


@cli.command()
@click.pass_context
def tui(ctx):
    """Launch the full-screen session (default)."""
    launch_tui(ctx.obj)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print results as indented JSON.")
@click.option("--raw", is_flag=True, help="Print results as compact JSON.")
@click.pass_context
def simple(ctx, as_json, raw):
    """Launch the line-mode REPL."""
    launch_simple_cli(ctx.obj, as_json, raw)


@cli.command()
@click.option("--db", "db_url", envvar="DATABASE_URL", required=True, help="Database URL to inspect.")
def schema(db_url: str):
    """Print the schema text sent to the model."""
    run_schema(db_url)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Address to bind.")
@click.option("--port", "-p", default=3000, show_default=True, type=click.IntRange(1, 65535), help="Port to listen on.")
@click.pass_context
def serve(ctx, host, port):
    """Serve the HTTP API (needs a database URL)."""
    launch_server(ctx.obj, host, port)


@cli.command()
def version():
    """Display nlql version information."""
    show_version()


# ── Startup helpers ───────────────────────────────────────────

def _provider(name):
    try:
        return Provider.parse(name or ai_config.provider)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--provider")


def _generator(provider: Provider, api_key) -> SQLGenerator:
    try:
        return SQLGenerator(provider, api_key=api_key)
    except MissingCredentialError as e:
        raise click.ClickException(
            f"{e}; or run without --db to use the setup wizard"
        )


def _connect(url: str):
    try:
        database = Database.connect(url)
    except NlqlError as e:
        raise click.ClickException(f"connection failed: {e}")
    try:
        return database, database.schema()
    except NlqlError as e:
        database.close()
        raise click.ClickException(f"schema error: {e}")


# ── Launch Functions ──────────────────────────────────────────

def launch_tui(options: dict):
    """Start the full-screen Textual session."""
    setup_logger(app_config.log_file, app_config.log_level)
    logger.info(f"Starting nlql v{app_config.version} (TUI mode)")

    from core.session import Session, DbInfo, AgentInfo
    from ui.controller import SessionController
    from ui.tui import NlqlApp

    url = options["db_url"]
    if url:
        provider = _provider(options["provider"])
        generator = _generator(provider, options["api_key"])
        database, schema_text = _connect(url)
        session = Session.for_connection(
            DbInfo.from_connection(database.info, schema_text),
            AgentInfo(provider=provider.value, model=generator.model),
            confirm_before_run=options["confirm"],
            theme=options["theme"],
        )
        controller = SessionController(session, database, schema_text, generator)
    else:
        logger.info("No database URL, starting setup wizard")
        session = Session.for_setup(confirm_before_run=options["confirm"], theme=options["theme"])
        controller = SessionController(session)

    app = NlqlApp(controller)
    app.run()


def launch_simple_cli(options: dict, as_json: bool = False, raw: bool = False):
    """
    Line-mode REPL. Useful where a full-screen terminal isn't
    available, or for piping results out as JSON.
    """
    setup_logger(app_config.log_file, app_config.log_level)

    url = options["db_url"]
    if not url:
        raise click.UsageError("simple mode needs a database URL (--db or DATABASE_URL)")

    provider = _provider(options["provider"])
    generator = _generator(provider, options["api_key"])
    database, schema_text = _connect(url)

    from simple_cli import SimpleCLI
    cli_app = SimpleCLI(
        database,
        schema_text,
        generator,
        confirm_before_run=options["confirm"],
        output="raw" if raw else "json" if as_json else "table",
    )
    cli_app.run()


def launch_server(options: dict, host: str, port: int):
    """Connect once, then answer /query requests over HTTP."""
    setup_logger(app_config.log_file, app_config.log_level)

    url = options["db_url"]
    if not url:
        raise click.UsageError("serve mode needs a database URL (--db or DATABASE_URL)")

    provider = _provider(options["provider"])
    generator = _generator(provider, options["api_key"])
    database, schema_text = _connect(url)

    from server import create_app, run_server
    click.echo(f"server running at http://{host}:{port}")
    run_server(create_app(database, schema_text, generator), host, port, app_config.log_level)


def run_schema(url: str):
    """Connect, print the introspected schema, disconnect."""
    setup_logger(app_config.log_file, "WARNING")

    database, schema_text = _connect(url)
    try:
        click.echo(schema_text or "(no tables)")
    finally:
        database.close()


def show_version():
    click.echo(f"{app_config.name} {app_config.version}")


# ── Entry Point ───────────────────────────────────────────────

if __name__ == "__main__":
    cli()
