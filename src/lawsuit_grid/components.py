"""Reflex UI for a :class:`~lawsuit_grid.grid_state.LawsuitGridMixin` state.

Columns are passed as Python objects at page-build time, so custom renderers
(:class:`~lawsuit_grid.models.CustomRender`) are called with ``rx.Var``
arguments and may return any component.  Everything that changes at run
time (rows, filters, sort, editing pointer) is read from the state vars.
"""

from typing import Any

import reflex as rx

from lawsuit_grid.column_filter import operators_for
from lawsuit_grid.grid_state import ROW_KEY, raw_key, view_key
from lawsuit_grid.models import ColumnDef, CustomRender, validate_columns


# ---------------------------------------------------------------------------
# Column filter popover
# ---------------------------------------------------------------------------

def _sort_button(state_cls: type, field: str, direction: str, label: str) -> rx.Component:
    active = (state_cls.grid_sort_field == field) & (state_cls.grid_sort_direction == direction)
    return rx.button(
        rx.icon("arrow_up" if direction == "asc" else "arrow_down", size=14),
        label,
        size="1",
        variant=rx.cond(active, "solid", "outline"),
        on_click=state_cls.toggle_grid_sort(field, direction),
        flex="1",
    )


def _operator_select(state_cls: type, column: ColumnDef) -> rx.Component:
    field = column.field
    return rx.select.root(
        rx.select.trigger(width="100%"),
        rx.select.content(
            *[
                rx.select.item(label, value=token)
                for token, label in operators_for(column.type)
            ]
        ),
        value=state_cls.grid_filter_drafts[field]["operator"],
        on_change=lambda operator: state_cls.set_grid_filter_operator(field, operator),
        size="1",
    )


def column_filter_popover(state_cls: type, column: ColumnDef) -> rx.Component:
    """Header popover with sort buttons and the column's filter draft.

    Boolean columns apply as soon as an option is picked; other columns
    apply on "Aplicar Filtro" or Enter in the value input.
    """
    field = column.field
    active_filter = state_cls.grid_active_filter_fields.contains(field)  # type: ignore[attr-defined]
    sections: list[rx.Component] = []

    if column.sortable:
        sections.append(
            rx.vstack(
                rx.text("Ordenar", size="1", weight="bold"),
                rx.hstack(
                    _sort_button(state_cls, field, "asc", "Crescente"),
                    _sort_button(state_cls, field, "desc", "Decrescente"),
                    width="100%",
                    spacing="2",
                ),
                width="100%",
                spacing="1",
            )
        )

    if column.filterable:
        controls: list[rx.Component] = [
            rx.text("Filtrar", size="1", weight="bold"),
            _operator_select(state_cls, column),
        ]
        if not column.is_boolean:
            controls.append(
                rx.input(
                    value=state_cls.grid_filter_drafts[field]["value"],
                    placeholder="Valor...",
                    type="number" if column.is_numeric else "text",
                    on_change=lambda value: state_cls.set_grid_filter_value(field, value),
                    on_key_down=lambda key: state_cls.grid_filter_key_down(field, key),
                    size="1",
                    width="100%",
                )
            )
        buttons: list[rx.Component] = []
        if not column.is_boolean:
            buttons.append(
                rx.button(
                    "Aplicar Filtro",
                    size="1",
                    on_click=state_cls.apply_grid_filter(field),
                    flex="1",
                )
            )
        buttons.append(
            rx.button(
                rx.icon("x", size=12),
                "Limpar",
                size="1",
                variant="outline",
                color_scheme="gray",
                on_click=state_cls.clear_grid_filter(field),
                flex="1",
            )
        )
        controls.append(rx.hstack(*buttons, width="100%", spacing="2"))
        sections.append(rx.vstack(*controls, width="100%", spacing="2"))

    return rx.popover.root(
        rx.popover.trigger(
            rx.icon_button(
                rx.icon("list_filter", size=14),
                size="1",
                variant=rx.cond(active_filter, "solid", "ghost"),
                color_scheme=rx.cond(active_filter, "blue", "gray"),
            ),
        ),
        rx.popover.content(
            rx.vstack(*sections, spacing="3", width="100%"),
            width="240px",
        ),
        open=state_cls.grid_open_filter == field,
        on_open_change=lambda is_open: state_cls.set_grid_filter_open(field, is_open),
    )


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

def _header_cell(state_cls: type, column: ColumnDef) -> rx.Component:
    field = column.field
    sort_icon = rx.cond(
        state_cls.grid_sort_field == field,
        rx.cond(
            state_cls.grid_sort_direction == "asc",
            rx.icon("arrow_up", size=12),
            rx.icon("arrow_down", size=12),
        ),
    )
    children: list[rx.Component] = [rx.text(column.header, weight="medium"), sort_icon]
    if column.filterable or column.sortable:
        children.append(rx.spacer())
        children.append(column_filter_popover(state_cls, column))
    header = rx.hstack(*children, align="center", spacing="1")
    if column.description:
        header = rx.tooltip(header, content=column.description)
    return rx.table.column_header_cell(header, width=column.width)


def _editor(state_cls: type, column: ColumnDef) -> rx.Component:
    return rx.input(
        value=state_cls.grid_edit_draft,
        type="number" if column.is_numeric else "text",
        auto_focus=True,
        on_change=state_cls.change_grid_edit_draft,
        on_blur=lambda _value: state_cls.commit_grid_edit(),
        on_key_down=state_cls.grid_edit_key_down,
        size="1",
        width="100%",
    )


def _body_cell(state_cls: type, column: ColumnDef, row: rx.Var, editable: bool) -> rx.Component:
    field = column.field
    kind = row[view_key(field)]

    if isinstance(column.render, CustomRender):
        display: rx.Component = column.render(row[raw_key(field)], row)
    else:
        display = rx.text(row[field], size="2")

    if not (editable and column.editable):
        return rx.table.cell(display)

    if column.is_boolean:
        return rx.table.cell(
            rx.cond(
                kind == "checkbox",
                rx.checkbox(
                    checked=row[raw_key(field)] == "true",
                    on_change=lambda checked: state_cls.toggle_grid_boolean(
                        row[ROW_KEY], field, checked
                    ),
                ),
                display,
            )
        )

    return rx.table.cell(
        rx.cond(
            kind == "editor",
            _editor(state_cls, column),
            rx.box(
                display,
                on_click=state_cls.begin_grid_edit(row[ROW_KEY], field),
                cursor="pointer",
                min_height="1.5em",
                width="100%",
                _hover={"background": "var(--gray-a3)"},
            ),
        )
    )


def _placeholder(message: str, *extra: rx.Component) -> rx.Component:
    return rx.center(
        rx.vstack(
            rx.text(message, color="var(--gray-9)"),
            *extra,
            align="center",
        ),
        padding_y="2em",
        width="100%",
    )


def data_grid(
    state_cls: type,
    columns: list[ColumnDef],
    *,
    editable: bool = True,
    **table_props: Any,
) -> rx.Component:
    """Return the grid bound to a :class:`LawsuitGridMixin` state.

    Shows "Carregando..." while a page is loading, "Nenhum registro
    encontrado" when the page is empty, and otherwise the summary line and
    the table with one filter popover per column header.

    Args:
        state_cls: The ``rx.State`` subclass that also inherits from
            :class:`~lawsuit_grid.grid_state.LawsuitGridMixin`.
        columns: The same column definitions the state's ``_grid_columns``
            returns.
        editable: Render editors and checkboxes for editable columns.
        **table_props: Forwarded to ``rx.table.root``.
    """
    columns = validate_columns(columns)
    table_props.setdefault("variant", "surface")
    table_props.setdefault("size", "1")
    table_props.setdefault("width", "100%")

    table = rx.table.root(
        rx.table.header(
            rx.table.row(*[_header_cell(state_cls, column) for column in columns]),
        ),
        rx.table.body(
            rx.foreach(
                state_cls.grid_display_rows,
                lambda row: rx.table.row(
                    *[_body_cell(state_cls, column, row, editable) for column in columns]
                ),
            )
        ),
        **table_props,
    )

    return rx.vstack(
        rx.cond(
            state_cls.grid_loading,
            _placeholder("Carregando..."),
            rx.cond(
                state_cls.grid_display_rows.length() == 0,  # type: ignore[attr-defined]
                _placeholder(
                    "Nenhum registro encontrado",
                    rx.cond(
                        state_cls.grid_active_filter_fields.length() > 0,  # type: ignore[attr-defined]
                        rx.button(
                            "Limpar filtros",
                            size="1",
                            variant="outline",
                            on_click=state_cls.clear_grid_filters,
                        ),
                    ),
                ),
                rx.vstack(
                    rx.cond(
                        state_cls.grid_summary != "",
                        rx.text(state_cls.grid_summary, size="1", color="var(--gray-10)"),
                    ),
                    table,
                    width="100%",
                    spacing="2",
                ),
            ),
        ),
        width="100%",
    )


# ---------------------------------------------------------------------------
# Pagination and debug panel
# ---------------------------------------------------------------------------

def grid_pagination(state_cls: type) -> rx.Component:
    """Anterior / Página x de y / Próxima, plus the filtered row count."""
    return rx.hstack(
        rx.text(state_cls.grid_total.to(str), " registros", size="2", color="var(--gray-10)"),  # type: ignore[attr-defined]
        rx.spacer(),
        rx.button(
            rx.icon("chevron_left", size=14),
            "Anterior",
            size="1",
            variant="outline",
            disabled=(state_cls.grid_page <= 1) | state_cls.grid_loading,
            on_click=state_cls.grid_prev_page,
        ),
        rx.text(
            "Página ",
            state_cls.grid_page.to(str),  # type: ignore[attr-defined]
            " de ",
            state_cls.grid_total_pages.to(str),  # type: ignore[attr-defined]
            size="2",
        ),
        rx.button(
            "Próxima",
            rx.icon("chevron_right", size=14),
            size="1",
            variant="outline",
            disabled=(state_cls.grid_page >= state_cls.grid_total_pages) | state_cls.grid_loading,
            on_click=state_cls.grid_next_page,
        ),
        align="center",
        spacing="2",
        width="100%",
    )


def grid_query_panel(state_cls: type) -> rx.Component:
    """Collapsible view of the last Query Object sent to the backend."""
    return rx.cond(
        state_cls.grid_query != "",
        rx.accordion.root(
            rx.accordion.item(
                header=rx.hstack(
                    rx.icon("braces", size=14),
                    rx.text("Query", size="1", weight="bold"),
                    align="center",
                    spacing="2",
                ),
                content=rx.vstack(
                    rx.button(
                        rx.icon("clipboard_copy", size=12),
                        "Copiar",
                        size="1",
                        variant="ghost",
                        on_click=rx.set_clipboard(state_cls.grid_query),  # type: ignore[arg-type]
                    ),
                    rx.code_block(
                        state_cls.grid_query,
                        language="json",
                        show_line_numbers=False,
                        wrap_long_lines=True,
                    ),
                    width="100%",
                ),
                value="query",
            ),
            collapsible=True,
            type="single",
            variant="ghost",
            width="100%",
        ),
    )
