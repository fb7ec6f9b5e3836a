"""Optimistic cell edits with an explicit result type.

Every host applies the same discipline: patch the local row first, persist,
then either adopt the server's row (:class:`Committed`) or put the original
value back (:class:`Failed`).
"""

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from lawsuit_grid.config import ROW_ID_FIELD
from lawsuit_grid.log import get_logger

logger = get_logger(__name__)

PersistFn = Callable[[dict[str, Any], str, Any], dict[str, Any] | None]


@dataclass(frozen=True)
class Committed:
    """The backend accepted the edit; ``row`` is the authoritative row."""

    row: dict[str, Any]


@dataclass(frozen=True)
class Failed:
    """The backend rejected the edit; the cell goes back to ``original_value``."""

    original_value: Any
    error: BaseException


CellEditResult = Committed | Failed


def _replace_row(
    rows: Sequence[dict[str, Any]],
    row_id: Any,
    patch: Callable[[dict[str, Any]], dict[str, Any]],
    id_field: str,
) -> list[dict[str, Any]]:
    return [patch(row) if row.get(id_field) == row_id else row for row in rows]


def apply_optimistic_edit(
    rows: Sequence[dict[str, Any]],
    row_id: Any,
    field: str,
    value: Any,
    *,
    id_field: str = ROW_ID_FIELD,
) -> tuple[list[dict[str, Any]], Any]:
    """Return ``(new_rows, original_value)`` with *field* of *row_id* set to *value*.

    *rows* and its dicts are left untouched.

    Raises:
        KeyError: If no row has *row_id*.
    """
    original = next((row for row in rows if row.get(id_field) == row_id), None)
    if original is None:
        raise KeyError(f"No row with {id_field}={row_id!r}")
    new_rows = _replace_row(rows, row_id, lambda row: {**row, field: value}, id_field)
    return new_rows, original.get(field)


def reconcile(
    rows: Sequence[dict[str, Any]],
    row_id: Any,
    field: str,
    result: CellEditResult,
    *,
    id_field: str = ROW_ID_FIELD,
) -> list[dict[str, Any]]:
    """Apply a :data:`CellEditResult` to an optimistically patched row set."""
    if isinstance(result, Committed):
        return _replace_row(rows, row_id, lambda row: {**row, **result.row}, id_field)
    return _replace_row(
        rows, row_id, lambda row: {**row, field: result.original_value}, id_field
    )


def persist_cell_edit(
    row: dict[str, Any],
    field: str,
    value: Any,
    original_value: Any,
    persist: PersistFn,
    *,
    id_field: str = ROW_ID_FIELD,
) -> CellEditResult:
    """Call ``persist(row, field, value)`` and wrap the outcome.

    *persist* may return the server's version of the row (``None`` keeps
    *row*).  Any exception it raises becomes :class:`Failed`.
    """
    try:
        server_row = persist(row, field, value)
    except Exception as exc:
        logger.warning(
            "[LawsuitGrid] edit of %s.%s failed, rolled back: %s",
            row.get(id_field),
            field,
            exc,
        )
        return Failed(original_value, exc)
    return Committed(server_row if server_row is not None else row)


def commit_cell_edit(
    rows: Sequence[dict[str, Any]],
    row_id: Any,
    field: str,
    value: Any,
    persist: PersistFn,
    *,
    id_field: str = ROW_ID_FIELD,
) -> tuple[list[dict[str, Any]], CellEditResult]:
    """Optimistically edit, persist and reconcile in one step.

    Returns the reconciled rows and the :data:`CellEditResult`.
    """
    patched, original_value = apply_optimistic_edit(
        rows, row_id, field, value, id_field=id_field
    )
    row = next(r for r in patched if r.get(id_field) == row_id)
    result = persist_cell_edit(row, field, value, original_value, persist, id_field=id_field)
    return reconcile(patched, row_id, field, result, id_field=id_field), result
