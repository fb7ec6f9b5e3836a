"""HTTP client for the lawsuit backend.

One :class:`ApiClient` is built when the app starts and handed to whatever
needs it (Reflex states, scripts, tests).  It groups the endpoint families
the dashboard talks to::

    client = ApiClient("http://localhost:3001")
    client.auth.login("admin@example.com", "secret")
    page = client.processes.list_processes(query, processed=False)
    client.esaj.import_pdf(Path("lista.pdf"), state="SP")

Authentication is cookie based: the login response sets a cookie that the
underlying ``httpx.Client`` sends on every following request.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from lawsuit_grid.config import API_BASE_URL, CONTACT_FIELDS, HTTP_TIMEOUT_SECONDS
from lawsuit_grid.log import get_logger
from lawsuit_grid.query import GridQuery

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ApiError(Exception):
    """Non-success response (or transport failure, ``status_code=None``)."""

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}" if status_code else message)
        self.status_code = status_code
        self.message = message


class UnauthorizedError(ApiError):
    """401/403 -- the session is gone and the user must log in again."""


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------

@dataclass
class User:
    id: int
    email: str
    role: str = "user"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(id=data["id"], email=data["email"], role=data.get("role", "user"))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass
class ProcessPage:
    """One page of ``GET /process``.  ``items`` are plain row dicts."""

    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcessPage":
        limit = int(data.get("limit") or 1)
        total = int(data.get("total", 0))
        return cls(
            items=list(data.get("items", [])),
            total=total,
            page=int(data.get("page", 1)),
            limit=limit,
            total_pages=int(data.get("totalPages") or -(-total // limit)),
        )


@dataclass
class BatchStatus:
    """Aggregate progress of one import batch."""

    batch_id: int
    total: int = 0
    processed: int = 0
    pending: int = 0
    errors: int = 0
    status: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchStatus":
        processed = data.get("processedProcesses", data.get("processedCount", 0))
        return cls(
            batch_id=int(data.get("batchId", data.get("id", 0))),
            total=int(data.get("totalProcesses", 0)),
            processed=int(processed or 0),
            pending=int(data.get("pendingProcesses", 0)),
            errors=int(data.get("errorProcesses", 0)),
            status=str(data.get("status", "")),
        )

    @property
    def percent_complete(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(100.0 * self.processed / self.total, 1)

    @property
    def done(self) -> bool:
        return self.total > 0 and self.pending == 0


@dataclass
class BatchWithStatus:
    id: int
    system: str
    state: str
    description: str
    processed: bool
    process_date: str | None = None
    status: BatchStatus | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchWithStatus":
        raw_status = data.get("status")
        return cls(
            id=int(data["id"]),
            system=str(data.get("system", "")),
            state=str(data.get("state", "")),
            description=str(data.get("description", "")),
            processed=bool(data.get("processed", False)),
            process_date=data.get("processDate"),
            status=BatchStatus.from_dict(raw_status) if raw_status else None,
        )


@dataclass
class ImportPdfResponse:
    batch_id: int
    message: str = ""


@dataclass
class LawsuitData:
    requerido: str | None = None
    valor: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LawsuitData":
        rest = {k: v for k, v in data.items() if k not in ("requerido", "valor")}
        return cls(requerido=data.get("requerido"), valor=data.get("valor"), extra=rest)


# ---------------------------------------------------------------------------
# Endpoint families
# ---------------------------------------------------------------------------

class _Endpoint:
    def __init__(self, client: "ApiClient", prefix: str) -> None:
        self._client = client
        self._prefix = prefix

    def _json(self, method: str, path: str = "", **kwargs: Any) -> Any:
        response = self._client.request(method, f"{self._prefix}{path}", **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


class AuthService(_Endpoint):
    """``/auth`` -- login, logout and user management."""

    def __init__(self, client: "ApiClient") -> None:
        super().__init__(client, "/auth")
        self.current_user: User | None = None

    def login(self, email: str, password: str) -> User:
        data = self._json("POST", "/login", json={"email": email, "password": password})
        self.current_user = User.from_dict(data["user"])
        logger.info("[LawsuitGrid] logged in as %s", self.current_user.email)
        return self.current_user

    def logout(self) -> None:
        try:
            self._json("POST", "/logout")
        finally:
            self.current_user = None

    def me(self) -> User:
        self.current_user = User.from_dict(self._json("GET", "/me"))
        return self.current_user

    def create_user(self, email: str, password: str, role: str = "user") -> User:
        data = self._json(
            "POST", "/create-user", json={"email": email, "password": password, "role": role}
        )
        return User.from_dict(data)


class ProcessService(_Endpoint):
    """``/process`` -- listing, contact edits, batch bookkeeping and export."""

    def __init__(self, client: "ApiClient") -> None:
        super().__init__(client, "/process")

    def list_processes(
        self,
        query: GridQuery,
        *,
        processed: bool | None = None,
        batch_id: int | None = None,
    ) -> ProcessPage:
        params = query.to_params(processed=processed, batchId=batch_id)
        return ProcessPage.from_dict(self._json("GET", params=params))

    def update_contact(self, process_id: int, **fields: Any) -> dict[str, Any]:
        """PATCH the contact fields of one process and return the stored row.

        Raises:
            ValueError: If a field other than ``contato``,
                ``contatoRealizado`` or ``observacoes`` is given.
        """
        unknown = set(fields) - set(CONTACT_FIELDS)
        if unknown:
            raise ValueError(f"Not editable through the contact endpoint: {sorted(unknown)}")
        return self._json("PATCH", f"/{process_id}/contact", json=fields)

    def batch_status(self, batch_id: int, system: str | None = None) -> BatchStatus:
        params = {"system": system} if system else None
        return BatchStatus.from_dict(self._json("GET", f"/batch/{batch_id}", params=params))

    def delete_batch(self, batch_id: int, system: str | None = None) -> None:
        params = {"system": system} if system else None
        self._json("DELETE", f"/batch/{batch_id}", params=params)

    def processing_batches(self) -> list[BatchWithStatus]:
        return [BatchWithStatus.from_dict(b) for b in self._json("GET", "/batch") or []]

    def export_batch(self, batch_id: int) -> bytes:
        return self._client.request("GET", f"{self._prefix}/export/batch/{batch_id}").content


class CourtSystemService(_Endpoint):
    """``/eproc`` or ``/esaj`` -- lawsuit lookup, PDF import and batches."""

    def __init__(
        self,
        client: "ApiClient",
        system: str,
        *,
        processing_path: str = "/batch",
    ) -> None:
        super().__init__(client, f"/{system}")
        self.system = system
        self._processing_path = processing_path

    def lawsuit_data(self, number: str) -> LawsuitData:
        return LawsuitData.from_dict(self._json("GET", f"/lawsuit/{number}"))

    def lawsuit_url(self, number: str) -> str:
        return self._json("GET", f"/lawsuit-url/{number}")["url"]

    def import_pdf(self, path: Path, state: str) -> ImportPdfResponse:
        path = Path(path)
        with path.open("rb") as handle:
            data = self._json(
                "POST",
                "/import-pdf",
                files={"file": (path.name, handle, "application/pdf")},
                data={"state": state},
            )
        logger.info(
            "[LawsuitGrid] %s import of %s queued as batch %s",
            self.system,
            path.name,
            data.get("batchId"),
        )
        return ImportPdfResponse(batch_id=int(data["batchId"]), message=data.get("message", ""))

    def batch_status(self, batch_id: int) -> BatchStatus:
        return BatchStatus.from_dict(self._json("GET", f"/batch/{batch_id}"))

    def delete_batch(self, batch_id: int) -> None:
        self._json("DELETE", f"/batch/{batch_id}")

    def processing_batches(self) -> list[BatchWithStatus]:
        data = self._json("GET", self._processing_path) or []
        return [BatchWithStatus.from_dict(b) for b in data]

    def all_batches(self) -> list[BatchWithStatus]:
        return [BatchWithStatus.from_dict(b) for b in self._json("GET", "/batch") or []]

    def export_batch(self, batch_id: int) -> bytes:
        return self._client.request("GET", f"{self._prefix}/export/batch/{batch_id}").content

    def set_session(self, service_name: str, session_id: str) -> None:
        """Hand the scraper a court-system session cookie (``PHPSESSID``)."""
        self._json(
            "POST",
            "/set-session",
            json={"service_name": service_name, "session_id": session_id},
        )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ApiClient:
    """Explicit client context replacing per-service singletons.

    Args:
        base_url: Backend root URL.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport (``httpx.MockTransport`` in
            tests).
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self.auth = AuthService(self)
        self.processes = ProcessService(self)
        self.eproc = CourtSystemService(self, "eproc")
        self.esaj = CourtSystemService(self, "esaj", processing_path="/batch/processing")

    def court(self, system: str) -> CourtSystemService:
        """``client.court("ESAJ")`` -> :attr:`esaj`."""
        key = system.lower()
        if key == "eproc":
            return self.eproc
        if key == "esaj":
            return self.esaj
        raise ValueError(f"Unknown court system: {system!r}")

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and translate failures into :class:`ApiError`."""
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise ApiError(None, f"{method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            self.auth.current_user = None
            raise UnauthorizedError(response.status_code, "Unauthorized")
        if response.is_error:
            raise ApiError(response.status_code, response.reason_phrase or "Request failed")
        return response

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
