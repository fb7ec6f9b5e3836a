from lawsuit_grid.engine import GridEngine
from lawsuit_grid.grid_state import (
    ROW_KEY,
    display_row,
    draft_state,
    raw_key,
    resolve_row_id,
    view_key,
)
from lawsuit_grid.models import ColumnDef, monospace_renderer
from lawsuit_grid.query import FilterEntry


def _engine() -> GridEngine:
    return GridEngine(
        [
            ColumnDef("processo", editable=False, render=monospace_renderer()),
            ColumnDef("contato"),
            ColumnDef("contatoRealizado", type="boolean"),
            ColumnDef("valor", type="currency", editable=False),
        ],
        [
            {"id": 1, "processo": "0001", "contato": "tel", "contatoRealizado": True, "valor": 1500},
            {"id": 2, "processo": "0002", "contato": None, "contatoRealizado": False, "valor": None},
        ],
        editable=True,
    )


def test_display_row_is_all_text() -> None:
    engine = _engine()
    flat = display_row(engine, engine.row(1))
    assert all(isinstance(value, str) for value in flat.values())
    assert flat[ROW_KEY] == "1"
    assert flat["valor"] == "R$ 1.500,00"
    assert flat[raw_key("valor")] == "1500"
    assert flat["contatoRealizado"] == "Sim"
    assert flat[raw_key("contatoRealizado")] == "true"


def test_display_row_cell_kinds() -> None:
    engine = _engine()
    engine.begin_edit(1, "contato")
    flat = display_row(engine, engine.row(1))
    assert flat[view_key("processo")] == "custom"
    assert flat[view_key("contato")] == "editor"
    assert flat[view_key("contatoRealizado")] == "checkbox"
    assert flat[view_key("valor")] == "text"

    other = display_row(engine, engine.row(2))
    assert other[view_key("contato")] == "text"
    assert other["contato"] == "-"
    assert other[raw_key("contato")] == ""


def test_resolve_row_id_maps_text_back() -> None:
    rows = [{"id": 1}, {"id": 22}]
    assert resolve_row_id(rows, "22") == 22
    assert resolve_row_id(rows, "3") is None
    assert resolve_row_id([{"key": "a"}], "a", id_field="key") == "a"


def test_draft_state_drops_open_flag() -> None:
    engine = _engine()
    engine.set_filter("contato", FilterEntry("startsWith", "t"))
    control = engine.filter_control("contato")
    control.open()
    assert draft_state(control) == {"operator": "startsWith", "value": "t"}
