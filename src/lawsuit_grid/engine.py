"""Grid engine: aggregate filter/sort state, single-cell editing and cell dispatch.

The engine never fetches.  The host hands it the current page of rows and
receives two kinds of callbacks:

* ``on_query_change(query)`` with a full :class:`~lawsuit_grid.query.GridQuery`
  whenever a filter or the sort changes (always for page 1 -- a new filter
  or sort restarts pagination);
* ``on_cell_edit(row, field, value)`` when an edit is committed.  The
  return value (possibly an awaitable) is handed back to the caller and
  never awaited here; rollback on failure is the host's business, see
  :mod:`lawsuit_grid.optimistic`.

Only one cell is ever in edit mode.  Starting an edit on another cell first
commits the pending one, mirroring the browser, where the open input is
blurred before the next cell receives the click.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal

from lawsuit_grid.column_filter import ColumnFilterControl, parse_number
from lawsuit_grid.config import DEFAULT_PAGE_SIZE, ROW_ID_FIELD
from lawsuit_grid.formatting import format_cell_value
from lawsuit_grid.log import get_logger
from lawsuit_grid.models import ColumnDef, CustomRender, find_column, validate_columns
from lawsuit_grid.query import (
    FilterEntry,
    GridQuery,
    SortDescriptor,
    build_query,
    merge_filter,
)

logger = get_logger(__name__)

CellEditFn = Callable[[dict[str, Any], str, Any], Any]
QueryChangeFn = Callable[[GridQuery], Any]
ViewState = Literal["loading", "empty", "table"]


@dataclass(frozen=True)
class EditingCell:
    """Pointer to the one cell currently in text-edit mode."""

    row_id: Any
    field: str


# ---------------------------------------------------------------------------
# Cell views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextCell:
    """Default-formatted display.  ``clickable`` cells enter edit mode on click."""

    text: str
    clickable: bool = False


@dataclass(frozen=True)
class CustomCell:
    """Display produced by the column's custom renderer."""

    render: CustomRender
    value: Any
    row: dict[str, Any]
    clickable: bool = False

    def build(self) -> Any:
        return self.render(self.value, self.row)


@dataclass(frozen=True)
class CheckboxCell:
    """Interactive boolean cell; toggling commits immediately."""

    checked: bool


@dataclass(frozen=True)
class EditorCell:
    """Autofocused input seeded with the cell's current value."""

    draft: str
    input_type: Literal["text", "number"]


CellView = TextCell | CustomCell | CheckboxCell | EditorCell


def draft_text(value: Any) -> str:
    """Text an edit input is seeded with for *value*."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class GridEngine:
    """State holder and presentation logic for one grid instance.

    Args:
        columns: Column definitions, in display order.  Fields must be unique.
        data: Rows of the current window, each with a unique ``id``.
        loading: Show the loading placeholder instead of the table.
        editable: Global switch; when ``False`` every cell is read-only.
        on_cell_edit: ``(row, field, value)`` callback for committed edits.
        on_query_change: Receives the rebuilt query after filter/sort changes.
        page_size: Page size put into emitted queries.
        row_id_field: Name of the unique row identifier field.
    """

    def __init__(
        self,
        columns: Iterable[ColumnDef],
        data: Iterable[dict[str, Any]] = (),
        *,
        loading: bool = False,
        editable: bool = False,
        on_cell_edit: CellEditFn | None = None,
        on_query_change: QueryChangeFn | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        row_id_field: str = ROW_ID_FIELD,
    ) -> None:
        self.columns: list[ColumnDef] = validate_columns(columns)
        self.data: list[dict[str, Any]] = list(data)
        self.loading = loading
        self.editable = editable
        self.on_cell_edit = on_cell_edit
        self.on_query_change = on_query_change
        self.page_size = page_size
        self.row_id_field = row_id_field

        self.filters: dict[str, FilterEntry] = {}
        self.sort: SortDescriptor | None = None
        self.editing: EditingCell | None = None
        self.edit_draft: str = ""

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def column(self, field: str) -> ColumnDef:
        for column in self.columns:
            if column.field == field:
                return column
        raise KeyError(f"Unknown column field: {field!r}")

    def row(self, row_id: Any) -> dict[str, Any] | None:
        for row in self.data:
            if row.get(self.row_id_field) == row_id:
                return row
        return None

    def set_data(self, rows: Iterable[dict[str, Any]]) -> None:
        """Replace the row window.  An edit on a vanished row is dropped."""
        self.data = list(rows)
        if self.editing is not None and self.row(self.editing.row_id) is None:
            self.editing = None
            self.edit_draft = ""

    # ------------------------------------------------------------------
    # Filter / sort aggregation
    # ------------------------------------------------------------------

    def set_filter(self, field: str, entry: FilterEntry | None) -> GridQuery:
        """Set (or with ``None`` remove) the filter of *field* and emit the query."""
        self.column(field)
        self.filters = merge_filter(self.filters, field, entry)
        return self._notify_query_change()

    def set_sort(self, field: str, direction: str | None) -> GridQuery:
        """Sort by *field*, replacing any other column's sort; ``None`` unsorts."""
        self.column(field)
        if direction is None:
            self.sort = None
        else:
            self.sort = SortDescriptor(field, direction)
        return self._notify_query_change()

    def clear_filters(self) -> GridQuery:
        self.filters = {}
        return self._notify_query_change()

    def sort_direction_for(self, field: str) -> str | None:
        if self.sort is not None and self.sort.field == field:
            return self.sort.direction
        return None

    def build_query(self, page: int = 1) -> GridQuery:
        return build_query(self.filters, self.sort, page=page, page_size=self.page_size)

    def filter_control(self, field: str) -> ColumnFilterControl:
        """A popover control for *field*, wired back into this engine."""
        column = self.column(field)
        return ColumnFilterControl(
            column,
            filter=self.filters.get(field),
            sort_direction=self.sort_direction_for(field),
            on_filter_change=lambda entry: self.set_filter(field, entry),
            on_sort_change=lambda direction: self.set_sort(field, direction),
        )

    def _notify_query_change(self) -> GridQuery:
        query = self.build_query()
        if self.on_query_change is not None:
            self.on_query_change(query)
        return query

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def is_interactive(self, column: ColumnDef) -> bool:
        return self.editable and column.editable

    def is_editing(self, row_id: Any, field: str) -> bool:
        return self.editing == EditingCell(row_id, field)

    def begin_edit(self, row_id: Any, field: str) -> bool:
        """Put the cell in edit mode.  Returns ``False`` if it cannot be edited.

        A different cell already in edit mode is committed first.
        """
        column = self.column(field)
        if not self.is_interactive(column) or column.is_boolean:
            return False
        row = self.row(row_id)
        if row is None:
            return False
        if self.editing is not None and self.editing != EditingCell(row_id, field):
            self.commit_edit()
        self.editing = EditingCell(row_id, field)
        self.edit_draft = draft_text(row.get(field))
        return True

    def set_edit_draft(self, text: str) -> None:
        if self.editing is not None:
            self.edit_draft = text

    def commit_edit(self) -> Any:
        """Leave edit mode, invoking ``on_cell_edit`` if the value changed.

        Returns whatever the callback returned (``None`` when it was not
        called).  Number/currency drafts that do not parse are dropped with a
        warning instead of being sent as NaN.
        """
        editing = self.editing
        if editing is None:
            return None
        self.editing = None
        draft = self.edit_draft
        self.edit_draft = ""

        row = self.row(editing.row_id)
        if row is None:
            return None
        column = self.column(editing.field)
        original = row.get(editing.field)

        if column.is_numeric:
            new_value: Any = parse_number(draft)
            if math.isnan(new_value):
                logger.warning(
                    "[LawsuitGrid] discarded non-numeric edit %r for %s.%s",
                    draft,
                    editing.row_id,
                    editing.field,
                )
                return None
            previous = parse_number(draft_text(original))
            changed = original is None or math.isnan(previous) or new_value != previous
        else:
            new_value = draft
            changed = draft != draft_text(original)

        if not changed:
            return None
        return self._emit_cell_edit(row, editing.field, new_value)

    def cancel_edit(self) -> None:
        """Leave edit mode without a callback; the draft is discarded."""
        self.editing = None
        self.edit_draft = ""

    def key_down(self, key: str) -> Any:
        """``Enter`` commits, ``Escape`` cancels; other keys are ignored."""
        if key == "Enter":
            return self.commit_edit()
        if key == "Escape":
            self.cancel_edit()
        return None

    def toggle_boolean(self, row_id: Any, field: str, checked: bool) -> Any:
        """Checkbox toggle: commit *checked* right away, no edit mode."""
        column = self.column(field)
        if not self.is_interactive(column) or not column.is_boolean:
            return None
        row = self.row(row_id)
        if row is None:
            return None
        return self._emit_cell_edit(row, field, bool(checked))

    def _emit_cell_edit(self, row: dict[str, Any], field: str, value: Any) -> Any:
        logger.debug(
            "[LawsuitGrid] cell edit: id=%s field=%s value=%r",
            row.get(self.row_id_field),
            field,
            value,
        )
        if self.on_cell_edit is None:
            return None
        return self.on_cell_edit(row, field, value)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def cell_view(self, row: dict[str, Any], column: ColumnDef) -> CellView:
        """Decide how one cell is shown.

        Read-only cells use the custom renderer when present, else default
        formatting.  Editable boolean cells are always checkboxes, even with
        a custom renderer.  Other editable cells show an editor while the
        editing pointer targets them and a clickable display otherwise.
        """
        value = row.get(column.field)
        interactive = self.is_interactive(column)

        if interactive and column.is_boolean:
            return CheckboxCell(bool(value))

        if interactive and self.is_editing(row.get(self.row_id_field), column.field):
            return EditorCell(self.edit_draft, "number" if column.is_numeric else "text")

        render = column.render
        if isinstance(render, CustomRender):
            return CustomCell(render, value, row, clickable=interactive)
        return TextCell(format_cell_value(column.type, value), clickable=interactive)

    def view_state(self) -> ViewState:
        if self.loading:
            return "loading"
        if not self.data:
            return "empty"
        return "table"

    def active_filter_count(self) -> int:
        return len(self.filters)

    def sort_summary(self) -> tuple[str, str] | None:
        """``(header, direction)`` of the sorted column, if any."""
        if self.sort is None:
            return None
        try:
            header = self.column(self.sort.field).header or self.sort.field
        except KeyError:
            header = self.sort.field
        return header, self.sort.direction

    def summary_text(self) -> str:
        """Header line, e.g. ``"2 filtros ativos • Ordenado por Valor (decrescente)"``."""
        if self.view_state() != "table":
            return ""
        parts: list[str] = []
        count = self.active_filter_count()
        if count:
            parts.append(f"{count} {'filtro ativo' if count == 1 else 'filtros ativos'}")
        summary = self.sort_summary()
        if summary is not None:
            header, direction = summary
            label = "crescente" if direction == "asc" else "decrescente"
            parts.append(f"Ordenado por {header} ({label})")
        return " • ".join(parts)

    # ------------------------------------------------------------------
    # Snapshot (JSON-safe, for Reflex state vars)
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "filters": {
                field: {"operator": entry.operator, "value": _json_value(entry.value)}
                for field, entry in self.filters.items()
            },
            "sort": self.sort.to_dict() if self.sort else None,
            "editing": (
                {"rowId": self.editing.row_id, "field": self.editing.field}
                if self.editing
                else None
            ),
            "editDraft": self.edit_draft,
        }

    def restore(self, snapshot: dict[str, Any] | None) -> "GridEngine":
        if not snapshot:
            return self
        self.filters = {
            field: FilterEntry(item["operator"], self._restore_value(field, item["value"]))
            for field, item in (snapshot.get("filters") or {}).items()
        }
        sort = snapshot.get("sort")
        self.sort = SortDescriptor(sort["field"], sort["direction"]) if sort else None
        editing = snapshot.get("editing")
        self.editing = EditingCell(editing["rowId"], editing["field"]) if editing else None
        self.edit_draft = snapshot.get("editDraft", "")
        return self

    def _restore_value(self, field: str, value: Any) -> Any:
        column = find_column(self.columns, field)
        if value == "NaN" and column is not None and column.is_numeric:
            return float("nan")
        return value


def _json_value(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return "NaN"
    return value


