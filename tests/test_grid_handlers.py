"""Event handlers of LawsuitGridMixin driven on a plain host object."""

import inspect
from typing import Any

import polars as pl
import pytest

from lawsuit_grid.frame_source import FrameSource
from lawsuit_grid.grid_state import LawsuitGridMixin
from lawsuit_grid.models import ColumnDef
from lawsuit_grid.query import GridQuery

COLUMNS = [
    ColumnDef("processo", header="Processo", editable=False),
    ColumnDef("requerido", header="Requerido"),
    ColumnDef("valor", header="Valor", type="currency"),
    ColumnDef("contatoRealizado", header="Contato realizado", type="boolean"),
]


class GridHost:
    """Carries the mixin's vars as plain attributes."""

    def __init__(self) -> None:
        self.grid_rows: list[dict[str, Any]] = []
        self.grid_display_rows: list[dict[str, str]] = []
        self.grid_loading = False
        self.grid_editable = True
        self.grid_filters: dict[str, Any] = {}
        self.grid_active_filter_fields: list[str] = []
        self.grid_sort: dict[str, str] = {}
        self.grid_sort_field = ""
        self.grid_sort_direction = ""
        self.grid_editing: dict[str, str] = {}
        self.grid_edit_draft = ""
        self.grid_filter_drafts: dict[str, dict[str, str]] = {}
        self.grid_open_filter = ""
        self.grid_summary = ""
        self.grid_query = ""
        self.grid_total = 0
        self.grid_page = 1
        self.grid_page_size = 2
        self.grid_total_pages = 1
        self.grid_toast = ""
        self._grid_snapshot: dict[str, Any] = {}

        self.source = FrameSource(
            pl.LazyFrame(
                {
                    "processo": ["0001", "0002", "0003"],
                    "requerido": ["Silva", "Souza", "Silveira"],
                    "valor": [100.0, 2500.5, 40.0],
                    "contatoRealizado": [False, True, True],
                }
            )
        )
        self.queries: list[GridQuery] = []
        self.persisted: list[tuple[Any, str, Any]] = []
        self.fail_fetch = False
        self.fail_persist = False
        self.success_message = ""

    def _grid_columns(self) -> list[ColumnDef]:
        return COLUMNS

    def _fetch_grid_page(self, query: GridQuery) -> tuple[list[dict[str, Any]], int]:
        self.queries.append(query)
        if self.fail_fetch:
            raise RuntimeError("offline")
        page = self.source.fetch(query)
        return page.items, page.total

    def _persist_grid_edit(self, row: dict[str, Any], field: str, value: Any) -> dict[str, Any]:
        self.persisted.append((row["id"], field, value))
        if self.fail_persist:
            raise RuntimeError("boom")
        return self.source.update(row["id"], field, value)

    def _grid_edit_success_message(self, field: str) -> str:
        return self.success_message


for _name, _attr in vars(LawsuitGridMixin).items():
    _fn = getattr(_attr, "fn", _attr)
    if inspect.isfunction(_fn) and not _name.startswith("__") and _name not in vars(GridHost):
        setattr(GridHost, _name, _fn)


def run(events) -> list:
    return list(events or ())


@pytest.fixture
def host() -> GridHost:
    host = GridHost()
    run(host.load_grid())
    return host


def _valor(host: GridHost, row_id: int) -> Any:
    return next(row["valor"] for row in host.grid_rows if row["id"] == row_id)


def test_load_grid_fetches_first_page(host: GridHost) -> None:
    assert host.queries == [GridQuery(page=1, page_size=2)]
    assert [row["processo"] for row in host.grid_rows] == ["0001", "0002"]
    assert (host.grid_total, host.grid_total_pages) == (3, 2)
    assert host.grid_loading is False
    assert host.grid_display_rows[0]["valor"] == "R$ 100,00"
    assert set(host.grid_filter_drafts) == {c.field for c in COLUMNS}


def test_filter_then_sort_sends_both(host: GridHost) -> None:
    host.open_grid_filter("requerido")
    assert host.grid_open_filter == "requerido"
    host.set_grid_filter_value("requerido", "Sil")
    run(host.grid_filter_key_down("requerido", "Enter"))
    assert host.grid_open_filter == ""
    assert host.grid_active_filter_fields == ["requerido"]

    run(host.toggle_grid_sort("valor", "desc"))
    query = host.queries[-1]
    assert [(f.field, f.operator, f.value) for f in query.filters] == [
        ("requerido", "contains", "Sil")
    ]
    assert (query.sort.field, query.sort.direction) == ("valor", "desc")
    assert (host.grid_sort_field, host.grid_sort_direction) == ("valor", "desc")
    assert [row["processo"] for row in host.grid_rows] == ["0001", "0003"]


def test_boolean_operator_applies_immediately(host: GridHost) -> None:
    fetched = len(host.queries)
    run(host.set_grid_filter_operator("contatoRealizado", "true"))
    assert len(host.queries) == fetched + 1
    [item] = host.queries[-1].filters
    assert (item.field, item.operator, item.value) == ("contatoRealizado", "true", True)
    assert host.grid_filter_drafts["contatoRealizado"]["operator"] == "true"
    assert [row["processo"] for row in host.grid_rows] == ["0002", "0003"]


def test_string_operator_waits_for_apply(host: GridHost) -> None:
    fetched = len(host.queries)
    run(host.set_grid_filter_operator("requerido", "startsWith"))
    assert len(host.queries) == fetched
    assert host.grid_filter_drafts["requerido"]["operator"] == "startsWith"


def test_failed_persist_rolls_back(host: GridHost) -> None:
    host.fail_persist = True
    run(host.begin_grid_edit("1", "valor"))
    assert host.grid_editing == {"rowId": "1", "field": "valor"}
    assert host.grid_edit_draft == "100"
    host.change_grid_edit_draft("150.5")

    events = host.grid_edit_key_down("Enter")
    next(events)
    assert _valor(host, 1) == 150.5
    assert host.grid_editing == {}
    rest = run(events)

    assert host.persisted == [(1, "valor", 150.5)]
    assert _valor(host, 1) == 100.0
    assert host.grid_toast == "Erro ao salvar Valor: boom"
    assert len([event for event in rest if event is not None]) == 1


def test_committed_edit_shows_success_message(host: GridHost) -> None:
    host.success_message = "Processo atualizado com sucesso"
    run(host.begin_grid_edit("2", "requerido"))
    host.change_grid_edit_draft("Souza Lima")
    run(host.commit_grid_edit())
    assert host.persisted == [(2, "requerido", "Souza Lima")]
    assert host.grid_toast == "Processo atualizado com sucesso"
    assert host.source.get(2)["requerido"] == "Souza Lima"


def test_switching_cells_commits_pending_edit(host: GridHost) -> None:
    run(host.begin_grid_edit("1", "valor"))
    host.change_grid_edit_draft("99")
    run(host.begin_grid_edit("2", "requerido"))
    assert host.persisted == [(1, "valor", 99.0)]
    assert _valor(host, 1) == 99.0
    assert host.grid_editing == {"rowId": "2", "field": "requerido"}
    assert host.grid_edit_draft == "Souza"
    assert host.grid_toast == ""


def test_escape_discards_draft(host: GridHost) -> None:
    run(host.begin_grid_edit("1", "requerido"))
    host.change_grid_edit_draft("Outro")
    run(host.grid_edit_key_down("Escape"))
    assert host.persisted == []
    assert host.grid_editing == {}


def test_boolean_toggle_persists(host: GridHost) -> None:
    run(host.toggle_grid_boolean("1", "contatoRealizado", True))
    assert host.persisted == [(1, "contatoRealizado", True)]
    assert host.grid_rows[0]["contatoRealizado"] is True


def test_fetch_failure_sets_toast(host: GridHost) -> None:
    host.fail_fetch = True
    run(host.refresh_grid())
    assert host.grid_loading is False
    assert host.grid_toast == "Erro ao carregar registros: offline"
    assert [row["processo"] for row in host.grid_rows] == ["0001", "0002"]


def test_paging(host: GridHost) -> None:
    run(host.grid_next_page())
    assert host.grid_page == 2
    assert [row["processo"] for row in host.grid_rows] == ["0003"]
    fetched = len(host.queries)
    run(host.grid_next_page())
    assert len(host.queries) == fetched
    run(host.grid_prev_page())
    assert host.grid_page == 1


def test_clear_grid_filters_resets_drafts(host: GridHost) -> None:
    host.set_grid_filter_value("requerido", "Sil")
    run(host.apply_grid_filter("requerido"))
    run(host.clear_grid_filters())
    assert host.queries[-1].filters == ()
    assert host.grid_active_filter_fields == []
    assert host.grid_filter_drafts["requerido"]["value"] == ""
