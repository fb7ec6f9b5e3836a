"""CLI for lawsuit-grid -- browse record files and debug Query Objects.

Usage::

    # Browse (and edit) a CSV / Parquet / JSON file in the grid
    lawsuit-grid view processos.parquet

    # Read-only, 100 rows per page, on another port
    lawsuit-grid view processos.csv --read-only --page-size 100 --port 3005

    # Print the SQL a relational backend would run for a query
    lawsuit-grid sql query.json processos.parquet --table process

    # Show the column definitions inferred from a file
    lawsuit-grid columns processos.parquet
"""

import json
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from lawsuit_grid.config import DEFAULT_PAGE_SIZE
from lawsuit_grid.frame_source import FrameSource, scan_file
from lawsuit_grid.log import configure_logging, get_logger
from lawsuit_grid.polars_utils import generate_sql_where
from lawsuit_grid.query import GridQuery

logger = get_logger(__name__)

VIEWER_APP_NAME = "viewer_app"

app = typer.Typer(
    name="lawsuit-grid",
    help="Browse lawsuit record files in an interactive grid and debug grid queries.",
    no_args_is_help=True,
)


def _literal_body(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _build_app_code(
    file_path: Path,
    page_size: int,
    title: str,
    editable: bool,
) -> str:
    """Source of the viewer's Reflex app module for *file_path*."""
    substitutions = {
        "__FILENAME__": file_path.name,
        "__SAFE_PATH__": _literal_body(str(file_path.resolve())),
        "__TITLE__": _literal_body(title),
        "__PAGE_SIZE__": str(page_size),
        "__EDITABLE__": str(editable),
    }
    code = _APP_TEMPLATE
    for token, value in substitutions.items():
        code = code.replace(token, value)
    return code


def _write_viewer_project(project_dir: Path, app_code: str, port: int) -> Path:
    """Lay out a Reflex project serving *app_code* and return its module path.

    An existing project is overwritten in place, so a ``.web`` directory
    left by an earlier run is reused.
    """
    package = project_dir / VIEWER_APP_NAME
    package.mkdir(parents=True, exist_ok=True)
    (package / "__init__.py").write_text("")
    module = package / f"{VIEWER_APP_NAME}.py"
    module.write_text(app_code, encoding="utf-8")
    (project_dir / "rxconfig.py").write_text(
        "import reflex as rx\n\n"
        f'config = rx.Config(app_name="{VIEWER_APP_NAME}", frontend_port={port})\n'
    )
    return module


# ---------------------------------------------------------------------------
# Viewer app module, filled in by _build_app_code()
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated viewer app for: __FILENAME__"""

from pathlib import Path
from typing import Any

import reflex as rx

from lawsuit_grid import (
    ColumnDef,
    FrameSource,
    GridQuery,
    LawsuitGridMixin,
    configure_logging,
    data_grid,
    grid_pagination,
    grid_query_panel,
    register_source,
    scan_file,
)

configure_logging()

SOURCE = register_source("viewer", FrameSource(scan_file(Path("__SAFE_PATH__"))))
COLUMNS = SOURCE.column_defs()


class ViewerState(LawsuitGridMixin, rx.State):
    """Viewer state serving pages from the scanned file."""

    grid_page_size: int = __PAGE_SIZE__
    grid_editable: bool = __EDITABLE__

    def _grid_columns(self) -> list[ColumnDef]:
        return COLUMNS

    def _fetch_grid_page(self, query: GridQuery) -> tuple[list[dict[str, Any]], int]:
        page = SOURCE.fetch(query)
        return page.items, page.total

    def _persist_grid_edit(self, row: dict[str, Any], field: str, value: Any) -> dict[str, Any]:
        return SOURCE.update(row[SOURCE.id_field], field, value)


def index() -> rx.Component:
    return rx.box(
        rx.heading("__TITLE__", size="6", margin_bottom="0.5em"),
        data_grid(ViewerState, COLUMNS, editable=__EDITABLE__),
        grid_pagination(ViewerState),
        grid_query_panel(ViewerState),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=ViewerState.load_grid)
'''


@app.command()
def view(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, NDJSON, IPC)")],
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Rows per page")] = DEFAULT_PAGE_SIZE,
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Page title")] = None,
    editable: Annotated[bool, typer.Option("--editable/--read-only", help="Allow inline edits")] = True,
    workdir: Annotated[
        Optional[Path],
        typer.Option("--workdir", help="Reflex project directory to (re)use; a temporary one by default"),
    ] = None,
) -> None:
    """Browse a data file in the lawsuit grid.

    Filtering, sorting and pagination run server-side on a polars
    LazyFrame; edits are kept in memory for the lifetime of the viewer.
    """
    file = file.resolve()
    try:
        FrameSource(scan_file(file))
    except (ValueError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    app_code = _build_app_code(file, page_size, title or f"{file.name} -- Lawsuit Grid", editable)
    project_dir = (workdir or Path(tempfile.mkdtemp(prefix="lawsuit_grid_viewer_"))).resolve()
    _write_viewer_project(project_dir, app_code, port)
    logger.info("[LawsuitGrid] viewer project for %s in %s", file, project_dir)

    typer.echo(f"Launching viewer for: {file}")
    typer.echo(f"Page size: {page_size} | Editable: {editable} | Port: {port}")
    os.chdir(project_dir)

    # reflex init exits the interpreter when done, so it gets its own process.
    if not (project_dir / ".web").is_dir():
        typer.echo("Initializing Reflex project...")
        subprocess.run([sys.executable, "-m", "reflex", "init"], cwd=project_dir, check=True)

    typer.echo("Starting viewer...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


def _load_query(query_json: str) -> GridQuery:
    """Parse *query_json*, which is either a JSON file path or inline JSON."""
    if query_json.lstrip().startswith(("{", "[")):
        text = query_json
    else:
        path = Path(query_json)
        if not path.is_file():
            raise FileNotFoundError(f"Query file not found: {path}")
        text = path.read_text(encoding="utf-8")
    data: Any = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Query JSON must be an object")
    return GridQuery.from_dict(data)


@app.command()
def sql(
    query_json: Annotated[str, typer.Argument(help="Query Object as a JSON file path or inline JSON")],
    file: Annotated[Path, typer.Argument(help="Data file whose schema types the columns")],
    table: Annotated[str, typer.Option("--table", help="Table name used in the FROM clause")] = "process",
    no_paginate: Annotated[bool, typer.Option("--no-paginate", help="Omit LIMIT/OFFSET")] = False,
) -> None:
    """Print the SQL equivalent of a serialized Query Object."""
    try:
        query = _load_query(query_json)
        schema = scan_file(file).collect_schema()
    except (ValueError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(generate_sql_where(query, schema, table_name=table, paginate=not no_paginate))


@app.command()
def columns(
    file: Annotated[Path, typer.Argument(help="Data file to inspect")],
) -> None:
    """List the column definitions the viewer would use for a file."""
    try:
        source = FrameSource(scan_file(file))
    except (ValueError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    for column in source.column_defs():
        flag = "editable" if column.editable else "read-only"
        typer.echo(f"{column.field}\t{column.type}\t{flag}\t{column.header}")


def main() -> None:
    """Entry point for the CLI."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
