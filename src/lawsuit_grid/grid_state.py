"""Reflex state mixin that drives a :class:`~lawsuit_grid.engine.GridEngine`.

The engine itself is a plain object; Reflex states must be JSON-safe.  Every
event handler therefore rebuilds the engine from the current page of rows and
a snapshot kept in a backend var, runs one engine operation, and writes the
snapshot (and the vars derived from it) back.

Hosts inherit from :class:`LawsuitGridMixin` **and** ``rx.State`` and fill in
three private hooks::

    class ProcessesState(LawsuitGridMixin, rx.State):
        def _grid_columns(self) -> list[ColumnDef]:
            return PROCESS_COLUMNS

        def _fetch_grid_page(self, query):
            page = api.processes.list_processes(query)
            return page.items, page.total

        def _persist_grid_edit(self, row, field, value):
            return api.processes.update_contact(row["id"], **{field: value})

    def index():
        return data_grid(ProcessesState, PROCESS_COLUMNS)

The hooks are private so Reflex does not register them as event handlers.
"""

import json
import time
from typing import Any

import reflex as rx

from lawsuit_grid.column_filter import ColumnFilterControl
from lawsuit_grid.config import DEFAULT_PAGE_SIZE, ROW_ID_FIELD
from lawsuit_grid.engine import (
    CheckboxCell,
    CustomCell,
    EditorCell,
    GridEngine,
    TextCell,
    draft_text,
)
from lawsuit_grid.formatting import format_cell_value
from lawsuit_grid.log import get_logger
from lawsuit_grid.models import ColumnDef
from lawsuit_grid.optimistic import (
    Failed,
    apply_optimistic_edit,
    persist_cell_edit,
    reconcile,
)
from lawsuit_grid.query import GridQuery

logger = get_logger(__name__)

ROW_KEY = "_id"


# ---------------------------------------------------------------------------
# Display rows
# ---------------------------------------------------------------------------

def raw_key(field: str) -> str:
    return f"{field}:raw"


def view_key(field: str) -> str:
    return f"{field}:view"


def display_row(engine: GridEngine, row: dict[str, Any]) -> dict[str, str]:
    """Flatten one row into the all-string dict the table component reads.

    For each column the dict holds the formatted text under ``field``, the
    raw value as text under ``"field:raw"`` and the cell kind
    (``"text"``, ``"custom"``, ``"checkbox"`` or ``"editor"``) under
    ``"field:view"``.  ``"_id"`` holds the row id as text.
    """
    flat: dict[str, str] = {ROW_KEY: str(row.get(engine.row_id_field))}
    for column in engine.columns:
        value = row.get(column.field)
        view = engine.cell_view(row, column)
        if isinstance(view, EditorCell):
            kind = "editor"
        elif isinstance(view, CheckboxCell):
            kind = "checkbox"
        elif isinstance(view, CustomCell):
            kind = "custom"
        else:
            kind = "text"
        flat[column.field] = (
            view.text if isinstance(view, TextCell) else format_cell_value(column.type, value)
        )
        flat[raw_key(column.field)] = draft_text(value)
        flat[view_key(column.field)] = kind
    return flat


def resolve_row_id(
    rows: list[dict[str, Any]],
    row_key: str,
    id_field: str = ROW_ID_FIELD,
) -> Any:
    """Map the text id sent by the browser back to the row's real id."""
    for row in rows:
        if str(row.get(id_field)) == row_key:
            return row.get(id_field)
    return None


def draft_state(control: ColumnFilterControl) -> dict[str, str]:
    """The popover draft as kept in ``grid_filter_drafts``."""
    draft = control.snapshot()
    return {"operator": draft["operator"], "value": draft["value"]}


def _json_text(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# LawsuitGridMixin
# ---------------------------------------------------------------------------

class LawsuitGridMixin(rx.State, mixin=True):
    """Reflex State mixin for a filterable, sortable, inline-editable grid.

    This is a Reflex **mixin** (``mixin=True``): the vars below are injected
    into each concrete subclass, so several grids on one page keep
    independent state.  All var names are prefixed with ``grid_``.
    """

    # -- Frontend state vars --
    grid_rows: list[dict[str, Any]] = []
    grid_display_rows: list[dict[str, str]] = []
    grid_loading: bool = False
    grid_editable: bool = True
    grid_filters: dict[str, dict[str, Any]] = {}
    grid_active_filter_fields: list[str] = []
    grid_sort: dict[str, str] = {}
    grid_sort_field: str = ""
    grid_sort_direction: str = ""
    grid_editing: dict[str, str] = {}
    grid_edit_draft: str = ""
    grid_filter_drafts: dict[str, dict[str, str]] = {}
    grid_open_filter: str = ""
    grid_summary: str = ""
    grid_query: str = ""
    grid_total: int = 0
    grid_page: int = 1
    grid_page_size: int = DEFAULT_PAGE_SIZE
    grid_total_pages: int = 1
    grid_toast: str = ""

    # -- Backend-only vars (not sent to frontend) --
    _grid_snapshot: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    def _grid_columns(self) -> list[ColumnDef]:
        raise NotImplementedError("LawsuitGridMixin hosts must define _grid_columns()")

    def _fetch_grid_page(self, query: GridQuery) -> tuple[list[dict[str, Any]], int]:
        raise NotImplementedError("LawsuitGridMixin hosts must define _fetch_grid_page()")

    def _persist_grid_edit(
        self,
        row: dict[str, Any],
        field: str,
        value: Any,
    ) -> dict[str, Any] | None:
        raise NotImplementedError("LawsuitGridMixin hosts must define _persist_grid_edit()")

    def _grid_edit_success_message(self, field: str) -> str:
        """Toast text after an edit of *field* is saved; empty for no toast."""
        return ""

    # ------------------------------------------------------------------
    # Loading and pagination
    # ------------------------------------------------------------------

    def load_grid(self):
        """Reset filters, sort and drafts, then load page 1."""
        self._grid_snapshot = {}  # type: ignore[assignment]
        self.grid_open_filter = ""  # type: ignore[assignment]
        engine = self._grid_engine()
        self.grid_filter_drafts = {  # type: ignore[assignment]
            column.field: draft_state(engine.filter_control(column.field))
            for column in engine.columns
        }
        yield from self._run_grid_query(engine, engine.build_query())

    def refresh_grid(self):
        """Re-fetch the current page with the current filters and sort."""
        yield from self._reload_grid(self.grid_page)

    def grid_next_page(self):
        if self.grid_loading or self.grid_page >= self.grid_total_pages:
            return
        yield from self._reload_grid(self.grid_page + 1)

    def grid_prev_page(self):
        if self.grid_loading or self.grid_page <= 1:
            return
        yield from self._reload_grid(self.grid_page - 1)

    def dismiss_grid_toast(self) -> None:
        self.grid_toast = ""  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Column filter popover
    # ------------------------------------------------------------------

    def open_grid_filter(self, field: str) -> None:
        """Open *field*'s popover, seeding the draft from its applied filter."""
        engine = self._grid_engine()
        control = engine.filter_control(field)
        control.open()
        self._save_grid_filter_draft(field, control)
        self.grid_open_filter = field  # type: ignore[assignment]

    def close_grid_filter(self) -> None:
        self.grid_open_filter = ""  # type: ignore[assignment]

    def set_grid_filter_open(self, field: str, is_open: bool) -> None:
        if is_open:
            self.open_grid_filter(field)
        elif self.grid_open_filter == field:
            self.close_grid_filter()

    def set_grid_filter_operator(self, field: str, operator: str):
        """Change the draft operator; on boolean columns this applies at once."""
        engine = self._grid_engine()
        control = self._grid_filter_control(engine, field)
        emitted: list[GridQuery] = []
        engine.on_query_change = emitted.append
        control.select_operator(operator)
        self._save_grid_filter_draft(field, control)
        if emitted:
            yield from self._run_grid_query(engine, emitted[-1])

    def set_grid_filter_value(self, field: str, value: str) -> None:
        engine = self._grid_engine()
        control = self._grid_filter_control(engine, field)
        control.set_value(value)
        self._save_grid_filter_draft(field, control)

    def grid_filter_key_down(self, field: str, key: str):
        if key == "Enter":
            yield from self.apply_grid_filter(field)

    def apply_grid_filter(self, field: str):
        engine = self._grid_engine()
        control = self._grid_filter_control(engine, field)
        control.apply()
        self._save_grid_filter_draft(field, control)
        self.grid_open_filter = ""  # type: ignore[assignment]
        yield from self._run_grid_query(engine, engine.build_query())

    def clear_grid_filter(self, field: str):
        engine = self._grid_engine()
        control = self._grid_filter_control(engine, field)
        control.clear()
        self._save_grid_filter_draft(field, control)
        yield from self._run_grid_query(engine, engine.build_query())

    def toggle_grid_sort(self, field: str, direction: str):
        engine = self._grid_engine()
        control = self._grid_filter_control(engine, field)
        control.toggle_sort(direction)
        yield from self._run_grid_query(engine, engine.build_query())

    def clear_grid_filters(self):
        engine = self._grid_engine()
        query = engine.clear_filters()
        self.grid_filter_drafts = {  # type: ignore[assignment]
            column.field: draft_state(engine.filter_control(column.field))
            for column in engine.columns
        }
        yield from self._run_grid_query(engine, query)

    # ------------------------------------------------------------------
    # Inline editing
    # ------------------------------------------------------------------

    def begin_grid_edit(self, row_key: str, field: str):
        row_id = resolve_row_id(self.grid_rows, row_key, self._grid_id_field())
        if row_id is None:
            return
        yield from self._run_grid_edit(lambda engine: engine.begin_edit(row_id, field))

    def change_grid_edit_draft(self, text: str) -> None:
        engine = self._grid_engine()
        engine.set_edit_draft(text)
        self._store_grid_engine(engine)

    def grid_edit_key_down(self, key: str):
        if key not in ("Enter", "Escape"):
            return
        yield from self._run_grid_edit(lambda engine: engine.key_down(key))

    def commit_grid_edit(self):
        yield from self._run_grid_edit(lambda engine: engine.commit_edit())

    def cancel_grid_edit(self) -> None:
        engine = self._grid_engine()
        engine.cancel_edit()
        self._store_grid_engine(engine)

    def toggle_grid_boolean(self, row_key: str, field: str, checked: bool):
        row_id = resolve_row_id(self.grid_rows, row_key, self._grid_id_field())
        if row_id is None:
            return
        yield from self._run_grid_edit(
            lambda engine: engine.toggle_boolean(row_id, field, checked)
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _grid_id_field(self) -> str:
        return ROW_ID_FIELD

    def _grid_engine(self) -> GridEngine:
        engine = GridEngine(
            self._grid_columns(),
            self.grid_rows,
            loading=self.grid_loading,
            editable=self.grid_editable,
            page_size=self.grid_page_size,
            row_id_field=self._grid_id_field(),
        )
        return engine.restore(self._grid_snapshot)

    def _grid_filter_control(self, engine: GridEngine, field: str) -> ColumnFilterControl:
        return engine.filter_control(field).restore(self.grid_filter_drafts.get(field))

    def _save_grid_filter_draft(self, field: str, control: ColumnFilterControl) -> None:
        self.grid_filter_drafts = {  # type: ignore[assignment]
            **self.grid_filter_drafts,
            field: draft_state(control),
        }

    def _store_grid_engine(self, engine: GridEngine) -> None:
        """Write the engine snapshot and every var derived from it."""
        snapshot = engine.snapshot()
        self._grid_snapshot = snapshot  # type: ignore[assignment]
        self.grid_filters = snapshot["filters"]  # type: ignore[assignment]
        self.grid_active_filter_fields = list(snapshot["filters"])  # type: ignore[assignment]
        self.grid_sort = snapshot["sort"] or {}  # type: ignore[assignment]
        self.grid_sort_field = engine.sort.field if engine.sort else ""  # type: ignore[assignment]
        self.grid_sort_direction = engine.sort.direction if engine.sort else ""  # type: ignore[assignment]
        self.grid_editing = (  # type: ignore[assignment]
            {"rowId": str(engine.editing.row_id), "field": engine.editing.field}
            if engine.editing
            else {}
        )
        self.grid_edit_draft = engine.edit_draft  # type: ignore[assignment]
        self.grid_summary = engine.summary_text()  # type: ignore[assignment]
        self.grid_display_rows = [display_row(engine, row) for row in engine.data]  # type: ignore[assignment]

    def _reload_grid(self, page: int = 1):
        """Fetch *page* with the current filters and sort.

        Hosts call this after changing their own page-level filters.
        """
        engine = self._grid_engine()
        yield from self._run_grid_query(engine, engine.build_query(page=page))

    def _run_grid_query(self, engine: GridEngine, query: GridQuery):
        """Store the engine, push the loading state, then fetch *query*."""
        self._store_grid_engine(engine)
        self.grid_query = _json_text(query.to_dict())  # type: ignore[assignment]
        self.grid_loading = True  # type: ignore[assignment]
        yield

        t0 = time.perf_counter()
        try:
            rows, total = self._fetch_grid_page(query)
        except Exception as exc:
            logger.error("[LawsuitGrid] page fetch failed: %s", exc)
            self.grid_loading = False  # type: ignore[assignment]
            self.grid_toast = f"Erro ao carregar registros: {exc}"  # type: ignore[assignment]
            yield rx.toast.error(self.grid_toast)
            return

        self.grid_rows = list(rows)  # type: ignore[assignment]
        self.grid_total = total  # type: ignore[assignment]
        self.grid_page = query.page  # type: ignore[assignment]
        self.grid_total_pages = max(1, -(-total // query.page_size))  # type: ignore[assignment]
        self.grid_loading = False  # type: ignore[assignment]
        engine.loading = False
        engine.set_data(self.grid_rows)
        self._store_grid_engine(engine)
        logger.info(
            "[LawsuitGrid] page refresh: page=%d/%d, slice=%d, total=%d, elapsed=%.1fms",
            query.page,
            self.grid_total_pages,
            len(rows),
            total,
            (time.perf_counter() - t0) * 1000,
        )

    def _run_grid_edit(self, action):
        """Run an editing *action* on the engine and persist what it commits.

        Committed values are applied to ``grid_rows`` and pushed to the
        browser before the host's ``_persist_grid_edit`` runs; a failure
        puts the original value back and raises an error toast, a success
        shows the host's ``_grid_edit_success_message`` when it has one.
        """
        engine = self._grid_engine()
        pending: list[tuple[Any, str, Any]] = []
        engine.on_cell_edit = lambda row, field, value: pending.append(
            (row.get(engine.row_id_field), field, value)
        )
        action(engine)
        self._store_grid_engine(engine)

        id_field = engine.row_id_field
        for row_id, field, value in pending:
            patched, original_value = apply_optimistic_edit(
                self.grid_rows, row_id, field, value, id_field=id_field
            )
            self.grid_rows = patched  # type: ignore[assignment]
            engine.set_data(patched)
            self._store_grid_engine(engine)
            yield

            row = next(r for r in patched if r.get(id_field) == row_id)
            result = persist_cell_edit(
                row, field, value, original_value, self._persist_grid_edit, id_field=id_field
            )
            reconciled = reconcile(self.grid_rows, row_id, field, result, id_field=id_field)
            self.grid_rows = reconciled  # type: ignore[assignment]
            engine.set_data(reconciled)
            self._store_grid_engine(engine)

            if isinstance(result, Failed):
                header = engine.column(field).header or field
                self.grid_toast = f"Erro ao salvar {header}: {result.error}"  # type: ignore[assignment]
                yield rx.toast.error(self.grid_toast)
                continue
            message = self._grid_edit_success_message(field)
            if message:
                self.grid_toast = message  # type: ignore[assignment]
                yield rx.toast.success(message)
