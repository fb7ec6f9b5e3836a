"""CLI for the processes dashboard.

Commands::

    python -m processes_dashboard.cli                   # Run the Reflex dashboard
    python -m processes_dashboard.cli run               # Same as above
    python -m processes_dashboard.cli export 12 out.xlsx --system esaj
    python -m processes_dashboard.cli status 12
    python -m processes_dashboard.cli import-pdf lista.pdf --state SP --system esaj
    python -m processes_dashboard.cli search 1234567-89.2024.8.26.0100 --system esaj
    python -m processes_dashboard.cli set-session esaj 3f9a...
    python -m processes_dashboard.cli create-user ana@example.com s3cret --role admin
    python -m processes_dashboard.cli whoami

Commands that need a session log in first with ``--email`` / ``--password``
(or ``LAWSUIT_GRID_EMAIL`` / ``LAWSUIT_GRID_PASSWORD``).
"""

import os
from pathlib import Path
from typing import Annotated, Optional

import typer

from lawsuit_grid import ApiClient, ApiError
from lawsuit_grid.log import get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="dashboard",
    help="Lawsuit processes dashboard and batch helpers.",
    invoke_without_command=True,
)

SystemOption = Annotated[str, typer.Option("--system", "-s", help="eproc or esaj")]
EmailOption = Annotated[
    Optional[str], typer.Option("--email", envvar="LAWSUIT_GRID_EMAIL", help="Login e-mail")
]
PasswordOption = Annotated[
    Optional[str],
    typer.Option("--password", envvar="LAWSUIT_GRID_PASSWORD", help="Login password"),
]


def _make_client() -> ApiClient:
    return ApiClient()


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _login(client: ApiClient, email: Optional[str], password: Optional[str]) -> None:
    if email and password:
        client.auth.login(email, password)


def _run_app() -> None:
    """Start the Reflex dashboard."""
    app_dir = Path(__file__).resolve().parent.parent
    os.chdir(app_dir)

    from reflex.reflex import cli

    cli(["run"])


@app.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """Run the dashboard (default when no subcommand is given)."""
    if ctx.invoked_subcommand is None:
        _run_app()


@app.command()
def run() -> None:
    """Run the Reflex dashboard."""
    _run_app()


@app.command()
def export(
    batch_id: Annotated[int, typer.Argument(help="Import batch to export")],
    output: Annotated[Path, typer.Argument(help="Where to write the spreadsheet")],
    system: Annotated[Optional[str], typer.Option("--system", "-s", help="eproc or esaj")] = None,
) -> None:
    """Download the spreadsheet of one import batch."""
    with _make_client() as client:
        try:
            if system:
                content = client.court(system).export_batch(batch_id)
            else:
                content = client.processes.export_batch(batch_id)
        except (ApiError, ValueError) as exc:
            raise _fail(exc)
    output.write_bytes(content)
    typer.echo(f"Wrote {len(content):,} bytes to {output}")


@app.command()
def status(
    batch_id: Annotated[int, typer.Argument(help="Import batch to inspect")],
) -> None:
    """Print the progress of one import batch."""
    with _make_client() as client:
        try:
            batch = client.processes.batch_status(batch_id)
        except ApiError as exc:
            raise _fail(exc)
    typer.echo(
        f"Lote #{batch.batch_id}: {batch.processed}/{batch.total} "
        f"({batch.percent_complete:.1f}%) pendentes={batch.pending} erros={batch.errors}"
    )


@app.command("import-pdf")
def import_pdf(
    file: Annotated[Path, typer.Argument(help="PDF listing the lawsuits", exists=True, dir_okay=False)],
    state: Annotated[str, typer.Option("--state", help="Two-letter state of the court")] = "SP",
    system: SystemOption = "esaj",
    email: EmailOption = None,
    password: PasswordOption = None,
) -> None:
    """Upload a PDF and queue its lawsuits as a new import batch."""
    with _make_client() as client:
        try:
            _login(client, email, password)
            response = client.court(system).import_pdf(file, state.upper())
        except (ApiError, ValueError) as exc:
            raise _fail(exc)
    typer.echo(f"Lote #{response.batch_id} criado. {response.message}".rstrip())


@app.command()
def search(
    number: Annotated[str, typer.Argument(help="Lawsuit number")],
    system: SystemOption = "esaj",
    email: EmailOption = None,
    password: PasswordOption = None,
) -> None:
    """Look up one lawsuit in the court system."""
    with _make_client() as client:
        try:
            _login(client, email, password)
            court = client.court(system)
            data = court.lawsuit_data(number)
            url = court.lawsuit_url(number)
        except (ApiError, ValueError) as exc:
            raise _fail(exc)
    typer.echo(f"Requerido: {data.requerido or '-'}")
    typer.echo(f"Valor: {data.valor if data.valor is not None else '-'}")
    for key, value in data.extra.items():
        typer.echo(f"{key}: {value}")
    typer.echo(f"URL: {url}")


@app.command("set-session")
def set_session(
    service: Annotated[str, typer.Argument(help="Court system the session belongs to")],
    session_id: Annotated[str, typer.Argument(help="PHPSESSID cookie value")],
    email: EmailOption = None,
    password: PasswordOption = None,
) -> None:
    """Hand the scraper a court-system session cookie."""
    with _make_client() as client:
        try:
            _login(client, email, password)
            client.court(service).set_session(service.lower(), session_id)
        except (ApiError, ValueError) as exc:
            raise _fail(exc)
    logger.info("session for %s updated", service)
    typer.echo(f"Sessão de {service} atualizada")


@app.command("create-user")
def create_user(
    new_email: Annotated[str, typer.Argument(help="E-mail of the new user")],
    new_password: Annotated[str, typer.Argument(help="Password of the new user")],
    role: Annotated[str, typer.Option("--role", help="user or admin")] = "user",
    email: EmailOption = None,
    password: PasswordOption = None,
) -> None:
    """Create a user (admins only)."""
    with _make_client() as client:
        try:
            _login(client, email, password)
            user = client.auth.create_user(new_email, new_password, role)
        except ApiError as exc:
            raise _fail(exc)
    typer.echo(f"Usuário #{user.id} {user.email} ({user.role}) criado")


@app.command()
def whoami(
    email: EmailOption = None,
    password: PasswordOption = None,
) -> None:
    """Print the logged-in user."""
    with _make_client() as client:
        try:
            _login(client, email, password)
            user = client.auth.me()
        except ApiError as exc:
            raise _fail(exc)
    typer.echo(f"{user.email} ({user.role})")


if __name__ == "__main__":
    app()
