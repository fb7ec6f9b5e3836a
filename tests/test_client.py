import json
from urllib.parse import unquote

import httpx
import pytest

from lawsuit_grid.client import (
    ApiClient,
    ApiError,
    BatchStatus,
    ProcessPage,
    UnauthorizedError,
)
from lawsuit_grid.query import GridQuery, QueryFilter, SortDescriptor


def _client(handler) -> ApiClient:
    return ApiClient("http://backend.test", transport=httpx.MockTransport(handler))


def test_list_processes_sends_query_parameters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"items": [{"id": 1}], "total": 120, "page": 1, "limit": 50}
        )

    query = GridQuery(
        filters=(QueryFilter("requerido", "contains", "Silva"),),
        sort=SortDescriptor("valor", "desc"),
    )
    with _client(handler) as client:
        page = client.processes.list_processes(query, processed=True)

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/process"
    params = request.url.params
    assert params["page"] == "1"
    assert params["limit"] == "50"
    assert params["sortBy"] == "valor"
    assert params["sortOrder"] == "desc"
    assert params["processed"] == "true"
    assert "batchId" not in params
    assert json.loads(unquote(params["filters"]))[0]["value"] == "Silva"

    assert page.items == [{"id": 1}]
    assert page.total_pages == 3


def test_update_contact_patches_contact_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 7, "contato": "tel"})

    client = _client(handler)
    row = client.processes.update_contact(7, contato="tel")
    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/process/7/contact"
    assert json.loads(seen[0].content) == {"contato": "tel"}
    assert row == {"id": 7, "contato": "tel"}


def test_update_contact_rejects_other_fields() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(handler)
    with pytest.raises(ValueError):
        client.processes.update_contact(7, requerido="Silva")


class TestErrors:
    def test_unauthorized_clears_current_user(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth/login":
                return httpx.Response(200, json={"user": {"id": 1, "email": "a@b.c", "role": "admin"}})
            return httpx.Response(401)

        client = _client(handler)
        user = client.auth.login("a@b.c", "secret")
        assert user.is_admin
        with pytest.raises(UnauthorizedError) as excinfo:
            client.processes.list_processes(GridQuery())
        assert excinfo.value.status_code == 401
        assert client.auth.current_user is None

    def test_server_error(self) -> None:
        client = _client(lambda request: httpx.Response(500))
        with pytest.raises(ApiError) as excinfo:
            client.processes.batch_status(3)
        assert excinfo.value.status_code == 500
        assert not isinstance(excinfo.value, UnauthorizedError)

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(ApiError) as excinfo:
            client.auth.me()
        assert excinfo.value.status_code is None


class TestCourtSystems:
    def test_court_lookup_is_case_insensitive(self) -> None:
        client = _client(lambda request: httpx.Response(200))
        assert client.court("ESAJ") is client.esaj
        assert client.court("eproc") is client.eproc
        with pytest.raises(ValueError):
            client.court("pje")

    def test_processing_batch_paths(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(
                200,
                json=[{"id": 4, "system": "esaj", "state": "SP", "description": "lista", "processed": False}],
            )

        client = _client(handler)
        batches = client.esaj.processing_batches()
        client.eproc.processing_batches()
        assert paths == ["/esaj/batch/processing", "/eproc/batch"]
        assert batches[0].id == 4
        assert batches[0].status is None

    def test_export_returns_bytes(self) -> None:
        client = _client(lambda request: httpx.Response(200, content=b"xlsx-bytes"))
        assert client.eproc.export_batch(2) == b"xlsx-bytes"


def test_batch_status_progress() -> None:
    status = BatchStatus.from_dict(
        {"batchId": 9, "totalProcesses": 8, "processedProcesses": 2, "pendingProcesses": 6}
    )
    assert status.percent_complete == 25.0
    assert not status.done
    assert BatchStatus(batch_id=1).percent_complete == 0.0


def test_process_page_uses_total_pages_when_present() -> None:
    page = ProcessPage.from_dict({"items": [], "total": 10, "page": 1, "limit": 5, "totalPages": 7})
    assert page.total_pages == 7
