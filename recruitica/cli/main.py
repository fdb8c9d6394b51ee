"""CLI entry point for the Recruitica workflow.

Usage:
    recruitica create-list "IT London" --description "Tech hiring managers"
    recruitica add-client 1 --name "Jane Doe" --email jane@x.com --company Acme
    recruitica submit-candidate "John Smith" --list 1 --keynotes ./john.pdf
    recruitica draft --list 1
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from recruitica.clients.openrouter import OpenRouterClient
from recruitica.config import settings
from recruitica.errors import RecruiticaError, ValidationError
from recruitica.models import ClientIn, IntakeState
from recruitica.services.candidate_intake import CandidateIntake, validate_upload
from recruitica.services.client_directory import ClientDirectory
from recruitica.services.document_text import try_extract_text
from recruitica.services.email_refinement import available_models
from recruitica.services.webhook_gateway import WebhookGateway
from recruitica.store.database import get_session, init_db

console = Console()


def _setup_logging():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(exc: RecruiticaError):
    console.print(f"[red]{type(exc).__name__}: {exc.message}[/red]")
    sys.exit(1)


@click.group("recruitica")
@click.option("--user", "-u", "user_id", default=None, help="Owner id (defaults to DEFAULT_USER_ID)")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Verbose logging")
@click.pass_context
def cli(ctx: click.Context, user_id: str | None, verbose: bool):
    """Submit candidates, curate client lists and draft introduction emails."""
    if verbose:
        settings.log_level = "DEBUG"
    _setup_logging()
    init_db()
    session = get_session()
    ctx.call_on_close(session.close)
    ctx.obj = {"session": session, "user_id": user_id or settings.default_user_id}


def _directory(ctx: click.Context) -> ClientDirectory:
    return ClientDirectory(ctx.obj["session"], ctx.obj["user_id"])


def _intake(ctx: click.Context) -> CandidateIntake:
    return CandidateIntake(ctx.obj["session"], ctx.obj["user_id"])


@cli.command("init-db")
def init_db_command():
    """Create the database tables."""
    console.print(f"[green]Database ready:[/green] {settings.effective_database_url}")


@cli.command("lists")
@click.pass_context
def lists_command(ctx: click.Context):
    """Show client lists, newest first."""
    table = Table(title="Client lists")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Description")
    for record in _directory(ctx).list_lists():
        table.add_row(str(record.id), record.name, record.description or "")
    console.print(table)


@cli.command("create-list")
@click.argument("name")
@click.option("--description", "-d", default=None)
@click.pass_context
def create_list_command(ctx: click.Context, name: str, description: str | None):
    """Create a client list."""
    if len(name.strip()) < 2:
        _fail(ValidationError("Client list name must be at least 2 characters."))
    try:
        record = _directory(ctx).create_list(name.strip(), description)
    except RecruiticaError as exc:
        _fail(exc)
    console.print(f"[green]Created list {record.id}:[/green] {record.name}")


@cli.command("clients")
@click.argument("list_id", type=int)
@click.pass_context
def clients_command(ctx: click.Context, list_id: int):
    """Show the clients in a list and whether each is active."""
    try:
        entries = _directory(ctx).list_entries(list_id)
    except RecruiticaError as exc:
        _fail(exc)
    table = Table(title=f"List {list_id}")
    for col in ("ID", "Name", "Email", "Company", "Active"):
        table.add_column(col)
    for c in entries:
        active = "[green]yes[/green]" if c.is_active else "[dim]no[/dim]"
        table.add_row(str(c.id), c.name, c.email, c.company_name, active)
    console.print(table)


@cli.command("add-client")
@click.argument("list_id", type=int)
@click.option("--name", "-n", required=True)
@click.option("--email", "-e", required=True)
@click.option("--company", "-c", required=True)
@click.pass_context
def add_client_command(ctx: click.Context, list_id: int, name: str, email: str, company: str):
    """Add a client to a list, reusing the directory entry for a known email."""
    try:
        body = ClientIn(name=name, email=email, company_name=company)
    except ValueError as exc:
        console.print(f"[red]Invalid client:[/red] {exc}")
        sys.exit(1)
    try:
        client = _directory(ctx).add_or_attach(body.email, body.name, body.company_name, list_id)
    except RecruiticaError as exc:
        _fail(exc)
    console.print(f"[green]Client {client.id}[/green] {client.name} <{client.email}> is in list {list_id}")


@cli.command("search")
@click.argument("list_id", type=int)
@click.argument("query", default="")
@click.pass_context
def search_command(ctx: click.Context, list_id: int, query: str):
    """Find directory clients not yet in the list."""
    try:
        results = _directory(ctx).search(query, list_id)
    except RecruiticaError as exc:
        _fail(exc)
    table = Table(title=f"Available for list {list_id}")
    for col in ("ID", "Name", "Email", "Company"):
        table.add_column(col)
    for c in results:
        table.add_row(str(c.id), c.name, c.email, c.company_name)
    console.print(table)


@cli.command("toggle")
@click.argument("list_id", type=int)
@click.argument("client_id", type=int)
@click.pass_context
def toggle_command(ctx: click.Context, list_id: int, client_id: int):
    """Include or exclude a client from outreach for this list."""
    try:
        entry = _directory(ctx).toggle_active(client_id, list_id)
    except RecruiticaError as exc:
        _fail(exc)
    state = "active" if entry.is_active else "inactive"
    console.print(f"Client {client_id} is now [bold]{state}[/bold] in list {list_id}")


@cli.command("submit-candidate")
@click.argument("candidate_name")
@click.option("--list", "-l", "list_id", type=int, required=True, help="Client list id")
@click.option("--keynotes", "-k", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def submit_candidate_command(
    ctx: click.Context, candidate_name: str, list_id: int, keynotes: Path | None,
):
    """Submit a candidate with an optional PDF/Word keynotes document."""
    intake = _intake(ctx)
    try:
        flow = intake.begin()
        if flow.state is IntakeState.no_lists_yet:
            console.print("[yellow]No client lists yet.[/yellow] Create one with `recruitica create-list`.")
            sys.exit(1)
        upload = None
        if keynotes is not None:
            ctype = mimetypes.guess_type(keynotes.name)[0]
            upload = validate_upload(keynotes.name, ctype, keynotes.read_bytes())
        flow = intake.submit(candidate_name, list_id, upload, flow=flow)
    except RecruiticaError as exc:
        _fail(exc)
    c = flow.candidate
    console.print(
        Panel(
            f"[bold]{c.candidate_name}[/bold] submitted against list {c.client_list_id}\n"
            f"Keynotes: {c.keynotes_url or '—'}\n"
            f"Next: {flow.next_screen}",
            title="Candidate submitted",
            border_style="green",
        )
    )


@cli.command("show-candidate")
@click.pass_context
def show_candidate_command(ctx: click.Context):
    """Show the latest candidate and a preview of the keynotes text."""
    candidate = _intake(ctx).latest_candidate()
    if candidate is None:
        console.print("[yellow]No candidate submitted yet.[/yellow]")
        return
    text = try_extract_text(candidate.keynotes_url) if candidate.keynotes_url else None
    preview = (text[:400] + "…") if text and len(text) > 400 else (text or "—")
    console.print(
        Panel(
            f"[bold]{candidate.candidate_name}[/bold] (list {candidate.client_list_id})\n\n{preview}",
            title=f"Candidate {candidate.id}",
        )
    )


@cli.command("draft")
@click.option("--list", "-l", "list_id", type=int, required=True, help="Client list id")
@click.pass_context
def draft_command(ctx: click.Context, list_id: int):
    """Generate an introduction email for the latest candidate and active contacts."""
    intake = _intake(ctx)
    candidate = intake.latest_candidate()
    if candidate is None:
        _fail(ValidationError("No candidate data found. Please submit a candidate first."))
    try:
        contacts = intake.directory.active_contacts(list_id)
        if not contacts:
            _fail(ValidationError("Please select at least one client before continuing."))
        with console.status("[bold green]Waiting for the email workflow..."):
            draft = asyncio.run(
                WebhookGateway().generate_draft(
                    candidate.candidate_name, candidate.keynotes_url, contacts,
                )
            )
    except RecruiticaError as exc:
        _fail(exc)
    console.print(Panel(draft.email_body, title=draft.email_subject))
    console.print(f"[bold]Recipients:[/bold] {', '.join(c.email for c in draft.client_list)}")


@cli.command("models")
def models_command():
    """List AI models available for refinement."""
    models = asyncio.run(available_models(OpenRouterClient()))
    table = Table(title="AI models")
    table.add_column("Model")
    table.add_column("Label")
    for m in models:
        table.add_row(m["value"], m["label"])
    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
