"""Per-column filter/sort popover logic.

A :class:`ColumnFilterControl` owns only the popover's open flag and the
unapplied operator/value draft.  Every user action results in at most one
call to ``on_filter_change`` or ``on_sort_change``; the aggregate grid state
is never touched directly.
"""

import math
from typing import Any, Callable

from lawsuit_grid.log import get_logger
from lawsuit_grid.models import (
    BOOLEAN_OPERATORS,
    NUMBER_OPERATORS,
    STRING_OPERATORS,
    ColumnDef,
)
from lawsuit_grid.query import FilterEntry, FilterValue

logger = get_logger(__name__)

FilterChangeFn = Callable[[FilterEntry | None], Any]
SortChangeFn = Callable[[str | None], Any]


def default_operator(column_type: str) -> str:
    """Operator the popover starts with (and returns to on clear)."""
    if column_type == "string":
        return "contains"
    if column_type in ("number", "currency"):
        return "equals"
    if column_type == "boolean":
        return "all"
    return "equals"


def operators_for(column_type: str) -> tuple[tuple[str, str], ...]:
    """``(token, label)`` pairs offered for *column_type*."""
    if column_type in ("number", "currency"):
        return NUMBER_OPERATORS
    if column_type == "boolean":
        return BOOLEAN_OPERATORS
    return STRING_OPERATORS


def parse_number(text: str) -> float:
    """Parse a numeric draft; anything unparseable becomes NaN."""
    try:
        return float(text.strip())
    except ValueError:
        return float("nan")


def _noop(_: Any) -> None:
    return None


class ColumnFilterControl:
    """Filter and sort controls for a single column.

    Args:
        column: The column this control belongs to.
        filter: The column's currently applied filter, if any.  Seeds the
            draft operator and value.
        sort_direction: ``"asc"``, ``"desc"`` or ``None`` when this column
            is not the sorted one.
        on_filter_change: Receives a :class:`FilterEntry` or ``None``
            (``None`` means "remove this column's filter").
        on_sort_change: Receives ``"asc"``, ``"desc"`` or ``None``.
    """

    def __init__(
        self,
        column: ColumnDef,
        filter: FilterEntry | None = None,
        sort_direction: str | None = None,
        on_filter_change: FilterChangeFn | None = None,
        on_sort_change: SortChangeFn | None = None,
    ) -> None:
        self.column = column
        self.filter = filter
        self.sort_direction = sort_direction
        self.on_filter_change = on_filter_change or _noop
        self.on_sort_change = on_sort_change or _noop

        self.operator: str = filter.operator if filter else default_operator(column.type)
        self.value: str = _draft_text(filter.value) if filter else ""
        self.is_open: bool = False

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def has_active_filter(self) -> bool:
        return self.filter is not None

    @property
    def has_active_sort(self) -> bool:
        return self.sort_direction is not None

    @property
    def operators(self) -> tuple[tuple[str, str], ...]:
        return operators_for(self.column.type)

    # ------------------------------------------------------------------
    # Popover
    # ------------------------------------------------------------------

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    def select_operator(self, operator: str) -> None:
        """Change the draft operator.

        Boolean columns have no value to type, so picking an operator there
        emits the filter change immediately.

        Raises:
            ValueError: If *operator* does not belong to the column's family.
        """
        valid = {token for token, _ in self.operators}
        if operator not in valid:
            raise ValueError(
                f"Operator {operator!r} is not valid for {self.column.type} "
                f"column {self.column.field!r}"
            )
        self.operator = operator
        if self.column.is_boolean:
            self._emit_filter(self._boolean_entry())

    def set_value(self, text: str) -> None:
        self.value = text

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def apply(self) -> FilterEntry | None:
        """Emit the draft as the column's filter and close the popover."""
        if self.column.is_boolean:
            entry = self._boolean_entry()
        elif self.value.strip() == "":
            entry = None
        else:
            entry = FilterEntry(self.operator, self._coerce(self.value))
        self._emit_filter(entry)
        self.close()
        return entry

    def clear(self) -> None:
        """Reset the draft to the column default and remove the filter."""
        self.value = ""
        self.operator = default_operator(self.column.type)
        self._emit_filter(None)

    def toggle_sort(self, direction: str) -> str | None:
        """Clicking the active direction clears the sort, otherwise selects it."""
        new_direction = None if self.sort_direction == direction else direction
        self.sort_direction = new_direction
        self.on_sort_change(new_direction)
        return new_direction

    # ------------------------------------------------------------------
    # Snapshot (draft state kept in Reflex state between events)
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {"operator": self.operator, "value": self.value, "open": self.is_open}

    def restore(self, draft: dict[str, Any] | None) -> "ColumnFilterControl":
        if draft:
            self.operator = draft.get("operator", self.operator)
            self.value = draft.get("value", self.value)
            self.is_open = bool(draft.get("open", False))
        return self

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _boolean_entry(self) -> FilterEntry | None:
        if self.operator == "all":
            return None
        return FilterEntry(self.operator, self.operator == "true")

    def _coerce(self, text: str) -> FilterValue:
        if not self.column.is_numeric:
            return text
        number = parse_number(text)
        if math.isnan(number):
            logger.warning(
                "[LawsuitGrid] non-numeric filter value %r for column %r passed through as NaN",
                text,
                self.column.field,
            )
        return number

    def _emit_filter(self, entry: FilterEntry | None) -> None:
        self.filter = entry
        self.on_filter_change(entry)


def _draft_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
