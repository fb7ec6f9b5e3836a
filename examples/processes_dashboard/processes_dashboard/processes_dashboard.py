"""Lawsuit processes dashboard built on lawsuit-grid.

Two pages:
  1. ``/`` Processos -- the lawsuit records grid with page-level filters
     (processed flag, court system, import batch), per-column filter/sort
     popovers, pagination and inline edits of the contact fields.  Edits
     are optimistic: the cell changes at once and is rolled back with a
     toast when the backend rejects it.
  2. ``/processing`` Processamento -- progress of the import batches,
     refreshed every 5 seconds.

The backend URL comes from ``LAWSUIT_GRID_API_URL``.
"""

import asyncio
from typing import Any

import reflex as rx

from lawsuit_grid import (
    ApiClient,
    ApiError,
    ColumnDef,
    GridQuery,
    LawsuitGridMixin,
    configure_logging,
    data_grid,
    get_logger,
    grid_pagination,
    grid_query_panel,
    monospace_renderer,
)
from lawsuit_grid.config import CONTACT_FIELDS

configure_logging()
configure_logging(name="processes_dashboard")
logger = get_logger(__name__)

# One client for the whole app, handed to the states that need it.
API = ApiClient()


PROCESS_COLUMNS: list[ColumnDef] = [
    ColumnDef(
        field="processo",
        header="Processo",
        width="240px",
        editable=False,
        render=monospace_renderer(),
    ),
    # Shown but not editable: the backend only accepts the contact fields.
    ColumnDef(field="requerido", header="Requerido", width="240px", editable=False),
    ColumnDef(field="valor", header="Valor", type="currency", width="140px", editable=False),
    ColumnDef(field="comarca", header="Comarca", width="150px", editable=False),
    ColumnDef(field="contato", header="Contato", width="150px"),
    ColumnDef(field="contatoRealizado", header="Contatado", type="boolean", width="120px"),
    ColumnDef(field="observacoes", header="Observações"),
]


# ---------------------------------------------------------------------------
# Processes page
# ---------------------------------------------------------------------------

class ProcessesState(LawsuitGridMixin, rx.State):
    """Grid state plus the page-level filters of the processes page."""

    filter_processed: str = "all"
    filter_system: str = "all"
    filter_batch_id: str = "all"
    batch_options: list[dict[str, str]] = []
    loading_batches: bool = False

    def _grid_columns(self) -> list[ColumnDef]:
        return PROCESS_COLUMNS

    def _fetch_grid_page(self, query: GridQuery) -> tuple[list[dict[str, Any]], int]:
        processed = None if self.filter_processed == "all" else self.filter_processed == "true"
        batch_id = None if self.filter_batch_id == "all" else int(self.filter_batch_id)
        page = API.processes.list_processes(query, processed=processed, batch_id=batch_id)
        return page.items, page.total

    def _persist_grid_edit(self, row: dict[str, Any], field: str, value: Any) -> dict[str, Any]:
        if field not in CONTACT_FIELDS:
            raise ValueError(f"{field} cannot be edited")
        return API.processes.update_contact(row["id"], **{field: value})

    def _grid_edit_success_message(self, field: str) -> str:
        return "Processo atualizado com sucesso"

    def choose_processed(self, value: str):
        self.filter_processed = value
        yield from self._reload_grid()

    def choose_batch(self, value: str):
        self.filter_batch_id = value
        yield from self._reload_grid()

    def choose_system(self, value: str):
        self.filter_system = value
        self.filter_batch_id = "all"
        self.batch_options = []
        if value == "all":
            return
        self.loading_batches = True
        yield
        try:
            batches = API.court(value).all_batches()
        except ApiError as exc:
            logger.error("[LawsuitGrid] batch list for %s failed: %s", value, exc)
            yield rx.toast.error("Falha ao carregar lotes")
        else:
            self.batch_options = [
                {"id": str(batch.id), "description": batch.description} for batch in batches
            ]
        finally:
            self.loading_batches = False

    def reset_page_filters(self):
        self.filter_processed = "all"
        self.filter_system = "all"
        self.filter_batch_id = "all"
        self.batch_options = []
        yield from self._reload_grid()


def _labeled(label: str, control: rx.Component, **props: Any) -> rx.Component:
    return rx.vstack(rx.text(label, size="2", weight="medium"), control, spacing="1", **props)


def _page_filters() -> rx.Component:
    return rx.card(
        rx.heading("Filtros Globais", size="4"),
        rx.text(
            "Filtre por status de processamento, sistema e lote",
            size="2",
            color="var(--gray-10)",
            margin_bottom="1em",
        ),
        rx.hstack(
            _labeled(
                "Processado",
                rx.select.root(
                    rx.select.trigger(),
                    rx.select.content(
                        rx.select.item("Todos", value="all"),
                        rx.select.item("Sim", value="true"),
                        rx.select.item("Não", value="false"),
                    ),
                    value=ProcessesState.filter_processed,
                    on_change=ProcessesState.choose_processed,
                ),
            ),
            _labeled(
                "Sistema",
                rx.select.root(
                    rx.select.trigger(),
                    rx.select.content(
                        rx.select.item("Todos", value="all"),
                        rx.select.item("EPROC", value="eproc"),
                        rx.select.item("ESAJ", value="esaj"),
                    ),
                    value=ProcessesState.filter_system,
                    on_change=ProcessesState.choose_system,
                ),
            ),
            _labeled(
                "Lote (Batch)",
                rx.select.root(
                    rx.select.trigger(
                        placeholder="Selecione um sistema primeiro",
                        width="100%",
                    ),
                    rx.select.content(
                        rx.select.item("Todos", value="all"),
                        rx.foreach(
                            ProcessesState.batch_options,
                            lambda batch: rx.select.item(batch["description"], value=batch["id"]),
                        ),
                    ),
                    value=ProcessesState.filter_batch_id,
                    on_change=ProcessesState.choose_batch,
                    disabled=(ProcessesState.filter_system == "all") | ProcessesState.loading_batches,
                ),
                flex="1",
            ),
            rx.button(
                "Limpar Filtros",
                variant="outline",
                on_click=ProcessesState.reset_page_filters,
            ),
            align="end",
            spacing="4",
            width="100%",
        ),
        width="100%",
    )


def processes_page() -> rx.Component:
    return rx.box(
        rx.heading("Processos", size="7"),
        rx.text(
            "Gerenciamento completo com filtros e ordenação por coluna",
            color="var(--gray-10)",
            margin_bottom="1em",
        ),
        _page_filters(),
        rx.card(
            rx.heading("Lista de Processos", size="4"),
            rx.text(
                "Total: ",
                ProcessesState.grid_total.to(str),
                " processos • Clique nos ícones de filtro para configurar"
                " • Clique nas células para editar",
                size="2",
                color="var(--gray-10)",
                margin_bottom="1em",
            ),
            data_grid(ProcessesState, PROCESS_COLUMNS, editable=True),
            rx.cond(
                ProcessesState.grid_total > ProcessesState.grid_page_size,
                grid_pagination(ProcessesState),
            ),
            grid_query_panel(ProcessesState),
            width="100%",
            margin_top="1em",
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


# ---------------------------------------------------------------------------
# Processing page
# ---------------------------------------------------------------------------

_STATUS_LABELS: dict[str, tuple[str, str]] = {
    "completed": ("Concluído", "green"),
    "processing": ("Processando", "blue"),
    "error": ("Erro", "red"),
}


class ProcessingState(rx.State):
    """Import batches and their progress."""

    batches: list[dict[str, Any]] = []
    loading: bool = True

    @rx.event(background=True)
    async def poll_batches(self):
        while True:
            async with self:
                if self.router.page.path != "/processing":
                    return
                self._load_batches()
            await asyncio.sleep(5)

    def refresh(self):
        self._load_batches()

    def delete_batch(self, batch_id: int):
        try:
            API.processes.delete_batch(batch_id)
        except ApiError as exc:
            logger.error("[LawsuitGrid] delete of batch %s failed: %s", batch_id, exc)
            return rx.toast.error("Falha ao excluir lote")
        self._load_batches()
        return rx.toast.success("Lote excluído")

    def _load_batches(self) -> None:
        try:
            batches = API.processes.processing_batches()
        except ApiError as exc:
            logger.error("[LawsuitGrid] batch list failed: %s", exc)
            self.loading = False
            return
        rows: list[dict[str, Any]] = []
        for batch in batches:
            label, color = _STATUS_LABELS.get(
                batch.status.status if batch.status else "", ("Aguardando", "gray")
            )
            rows.append(
                {
                    "id": batch.id,
                    "description": batch.description,
                    "subtitle": f"{batch.system} • {batch.state} • Lote #{batch.id}",
                    "label": label,
                    "color": color,
                    "has_status": batch.status is not None,
                    "processed": batch.status.processed if batch.status else 0,
                    "total": batch.status.total if batch.status else 0,
                    "pending": batch.status.pending if batch.status else 0,
                    "errors": batch.status.errors if batch.status else 0,
                    "percent": batch.status.percent_complete if batch.status else 0.0,
                }
            )
        self.batches = rows
        self.loading = False


def _batch_card(batch: rx.Var) -> rx.Component:
    return rx.card(
        rx.hstack(
            rx.vstack(
                rx.hstack(
                    rx.heading(batch["description"], size="3"),
                    rx.badge(batch["label"], color_scheme=batch["color"]),
                    align="center",
                ),
                rx.text(batch["subtitle"], size="2", color="var(--gray-10)"),
                spacing="1",
            ),
            rx.spacer(),
            rx.alert_dialog.root(
                rx.alert_dialog.trigger(
                    rx.icon_button(rx.icon("trash_2", size=14), variant="ghost", color_scheme="red"),
                ),
                rx.alert_dialog.content(
                    rx.alert_dialog.title("Excluir lote?"),
                    rx.alert_dialog.description(
                        "Esta ação não pode ser desfeita. "
                        "Todos os processos deste lote serão removidos."
                    ),
                    rx.hstack(
                        rx.alert_dialog.cancel(rx.button("Cancelar", variant="soft", color_scheme="gray")),
                        rx.alert_dialog.action(
                            rx.button(
                                "Excluir",
                                color_scheme="red",
                                on_click=ProcessingState.delete_batch(batch["id"]),
                            )
                        ),
                        justify="end",
                        spacing="3",
                        margin_top="1em",
                    ),
                ),
            ),
            width="100%",
        ),
        rx.cond(
            batch["has_status"],
            rx.vstack(
                rx.hstack(
                    rx.text("Progresso", size="2", color="var(--gray-10)"),
                    rx.spacer(),
                    rx.text(batch["processed"], "/", batch["total"], size="2", weight="medium"),
                    width="100%",
                ),
                rx.progress(value=batch["percent"].to(int)),
                rx.text(batch["percent"], "% concluído", size="1", color="var(--gray-10)"),
                rx.hstack(
                    rx.vstack(rx.text("Processados", size="2"), rx.heading(batch["processed"], color="green")),
                    rx.vstack(rx.text("Pendentes", size="2"), rx.heading(batch["pending"], color="blue")),
                    rx.vstack(rx.text("Erros", size="2"), rx.heading(batch["errors"], color="red")),
                    spacing="6",
                ),
                width="100%",
                margin_top="1em",
            ),
            rx.text("Aguardando início do processamento...", size="2", color="var(--gray-10)"),
        ),
        width="100%",
    )


def processing_page() -> rx.Component:
    return rx.box(
        rx.hstack(
            rx.vstack(
                rx.heading("Processamento", size="7"),
                rx.text("Acompanhe o status dos lotes em processamento", color="var(--gray-10)"),
                spacing="1",
            ),
            rx.spacer(),
            rx.button(
                rx.icon("refresh_cw", size=14),
                "Atualizar",
                variant="outline",
                size="2",
                on_click=ProcessingState.refresh,
            ),
            width="100%",
            margin_bottom="1em",
        ),
        rx.cond(
            ProcessingState.loading,
            rx.card(rx.text("Carregando...", align="center")),
            rx.cond(
                ProcessingState.batches.length() == 0,
                rx.card(
                    rx.text(
                        "Nenhum lote em processamento. Importe um PDF para começar.",
                        align="center",
                    )
                ),
                rx.vstack(rx.foreach(ProcessingState.batches, _batch_card), spacing="4"),
            ),
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(processes_page, route="/", title="Processos", on_load=ProcessesState.load_grid)
app.add_page(
    processing_page,
    route="/processing",
    title="Processamento",
    on_load=ProcessingState.poll_batches,
)
