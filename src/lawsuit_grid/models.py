"""Column definitions, operator tokens and the tagged cell-renderer variant."""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Union

import reflex as rx

ColumnType = Literal["string", "number", "boolean", "date", "currency"]
SortDirection = Literal["asc", "desc"]

COLUMN_TYPES: tuple[str, ...] = ("string", "number", "boolean", "date", "currency")
SORT_DIRECTIONS: tuple[str, ...] = ("asc", "desc")
NUMERIC_TYPES: frozenset[str] = frozenset({"number", "currency"})


# ---------------------------------------------------------------------------
# Operator tokens (shared with any backend implementing compatible filtering)
# ---------------------------------------------------------------------------

STRING_OPERATORS: tuple[tuple[str, str], ...] = (
    ("equals", "Igual a"),
    ("notEquals", "Diferente de"),
    ("contains", "Contém"),
    ("startsWith", "Começa com"),
    ("endsWith", "Termina com"),
)

NUMBER_OPERATORS: tuple[tuple[str, str], ...] = (
    ("equals", "Igual a"),
    ("notEquals", "Diferente de"),
    ("greaterThan", "Maior que"),
    ("lessThan", "Menor que"),
    ("greaterOrEqual", "Maior ou igual"),
    ("lessOrEqual", "Menor ou igual"),
)

BOOLEAN_OPERATORS: tuple[tuple[str, str], ...] = (
    ("all", "Todos"),
    ("true", "Sim"),
    ("false", "Não"),
)

ALL_OPERATORS: frozenset[str] = frozenset(
    token for family in (STRING_OPERATORS, NUMBER_OPERATORS, BOOLEAN_OPERATORS)
    for token, _ in family
)


# ---------------------------------------------------------------------------
# Cell renderers
# ---------------------------------------------------------------------------

CellRendererFn = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class DefaultRender:
    """Type-driven formatting (see :mod:`lawsuit_grid.formatting`)."""

    type: ColumnType


@dataclass(frozen=True)
class CustomRender:
    """Host-supplied ``renderer(value, row)`` producing the cell's display.

    In a Reflex page the renderer receives ``rx.Var`` objects (the raw cell
    value and the whole row) and returns a component.
    """

    renderer: CellRendererFn

    def __call__(self, value: Any, row: Any) -> Any:
        return self.renderer(value, row)


CellRender = Union[DefaultRender, CustomRender]


def monospace_renderer(size: str = "1") -> CustomRender:
    """Render the raw value in a small monospace font (process numbers)."""

    def _render(value: Any, row: Any) -> rx.Component:
        return rx.text(value, font_family="monospace", size=size)

    return CustomRender(_render)


def url_renderer(
    base_url: str = "",
    label_field: str | None = None,
    target: str = "_blank",
) -> CustomRender:
    """Render the cell as a link.

    Args:
        base_url: Optional prefix; the cell value is appended to it.
        label_field: Row field shown as the link text.  Defaults to the
            cell value itself.
        target: Anchor ``target`` attribute.
    """

    def _render(value: Any, row: Any) -> rx.Component:
        href = base_url + value.to(str) if base_url else value
        label = row[label_field] if label_field else value
        return rx.link(label, href=href, is_external=target == "_blank")

    return CustomRender(_render)


# ---------------------------------------------------------------------------
# Column definition
# ---------------------------------------------------------------------------

@dataclass
class ColumnDef:
    """Static description of one grid column, supplied by the host page.

    Attributes:
        field: Key into the row dicts.  Must be unique across columns.
        header: Label shown in the header.  Defaults to ``field``.
        type: Governs the default filter operator, the input widget and
            the default formatting.
        width: Optional CSS width hint (e.g. ``"240px"``).
        editable: Whether cells of this column can be edited.
        filterable: Whether the header popover shows filter controls.
        sortable: Whether the header popover shows sort buttons.
        render: Either :class:`DefaultRender` or :class:`CustomRender`.  A
            bare callable is accepted and wrapped in ``CustomRender``.
    """

    field: str
    header: str | None = None
    type: ColumnType = "string"
    width: str | None = None
    editable: bool = True
    filterable: bool = True
    sortable: bool = True
    render: CellRender | CellRendererFn | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if self.type not in COLUMN_TYPES:
            raise ValueError(
                f"Unknown column type {self.type!r} for field {self.field!r}. "
                f"Expected one of: {', '.join(COLUMN_TYPES)}"
            )
        if self.header is None:
            self.header = self.field
        if self.render is None:
            self.render = DefaultRender(self.type)
        elif not isinstance(self.render, (DefaultRender, CustomRender)):
            self.render = CustomRender(self.render)

    @property
    def is_numeric(self) -> bool:
        return self.type in NUMERIC_TYPES

    @property
    def is_boolean(self) -> bool:
        return self.type == "boolean"

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation for Reflex state (renderer excluded)."""
        data: dict[str, Any] = {
            "field": self.field,
            "header": self.header,
            "type": self.type,
            "editable": self.editable,
            "filterable": self.filterable,
            "sortable": self.sortable,
            "customRender": isinstance(self.render, CustomRender),
        }
        if self.width is not None:
            data["width"] = self.width
        if self.description is not None:
            data["description"] = self.description
        return data


def validate_columns(columns: Iterable[ColumnDef]) -> list[ColumnDef]:
    """Return *columns* as a list, rejecting duplicate ``field`` names."""
    result = list(columns)
    seen: set[str] = set()
    for column in result:
        if column.field in seen:
            raise ValueError(f"Duplicate column field: {column.field!r}")
        seen.add(column.field)
    return result


def find_column(columns: Iterable[ColumnDef], field_name: str) -> ColumnDef | None:
    for column in columns:
        if column.field == field_name:
            return column
    return None
