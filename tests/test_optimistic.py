import pytest

from lawsuit_grid.optimistic import (
    Committed,
    Failed,
    apply_optimistic_edit,
    commit_cell_edit,
    persist_cell_edit,
    reconcile,
)


def _rows() -> list[dict]:
    return [
        {"id": 1, "contato": "", "contatoRealizado": False},
        {"id": 2, "contato": "tel", "contatoRealizado": True},
    ]


def test_optimistic_edit_leaves_input_untouched() -> None:
    rows = _rows()
    patched, original = apply_optimistic_edit(rows, 1, "contato", "email")
    assert patched[0]["contato"] == "email"
    assert original == ""
    assert rows[0]["contato"] == ""
    assert patched[1] is rows[1]


def test_unknown_row_raises() -> None:
    with pytest.raises(KeyError):
        apply_optimistic_edit(_rows(), 99, "contato", "x")


class TestPersist:
    def test_server_row_is_adopted(self) -> None:
        def persist(row, field, value):
            return {**row, field: value, "updatedAt": "2024-05-01"}

        rows, result = commit_cell_edit(_rows(), 2, "contatoRealizado", False, persist)
        assert isinstance(result, Committed)
        assert rows[1]["contatoRealizado"] is False
        assert rows[1]["updatedAt"] == "2024-05-01"

    def test_none_keeps_the_optimistic_row(self) -> None:
        rows, result = commit_cell_edit(_rows(), 1, "contato", "email", lambda *args: None)
        assert result == Committed({"id": 1, "contato": "email", "contatoRealizado": False})
        assert rows[0]["contato"] == "email"

    def test_failure_rolls_back(self) -> None:
        def persist(row, field, value):
            raise RuntimeError("backend down")

        rows, result = commit_cell_edit(_rows(), 2, "contato", "novo", persist)
        assert isinstance(result, Failed)
        assert result.original_value == "tel"
        assert str(result.error) == "backend down"
        assert rows[1]["contato"] == "tel"

    def test_persist_cell_edit_wraps_exceptions(self) -> None:
        def persist(row, field, value):
            raise ValueError("read-only")

        result = persist_cell_edit({"id": 1}, "requerido", "x", "Silva", persist)
        assert result == Failed("Silva", result.error)
        assert isinstance(result.error, ValueError)


def test_reconcile_only_touches_the_edited_row() -> None:
    patched, _ = apply_optimistic_edit(_rows(), 1, "contato", "x")
    rows = reconcile(patched, 1, "contato", Failed("", RuntimeError()))
    assert rows == _rows()
