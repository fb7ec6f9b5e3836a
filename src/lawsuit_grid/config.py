"""Runtime settings, all overridable through environment variables."""

import os

# --- Backend API ---
API_BASE_URL: str = os.environ.get("LAWSUIT_GRID_API_URL", "http://localhost:3001")
HTTP_TIMEOUT_SECONDS: float = float(os.environ.get("LAWSUIT_GRID_HTTP_TIMEOUT", "30"))

# --- Grid ---
DEFAULT_PAGE_SIZE: int = int(os.environ.get("LAWSUIT_GRID_PAGE_SIZE", "50"))
ROW_ID_FIELD: str = "id"

# --- Logging ---
LOG_LEVEL: str = os.environ.get("LAWSUIT_GRID_LOG_LEVEL", "INFO")

# --- Court systems served by the backend ---
COURT_SYSTEMS: tuple[str, ...] = ("eproc", "esaj")

# Fields of a process record the backend accepts on PATCH /process/{id}/contact.
CONTACT_FIELDS: tuple[str, ...] = ("contato", "contatoRealizado", "observacoes")
