"""Local listing backend: serve grid queries from a polars LazyFrame.

A :class:`FrameSource` answers the same :class:`~lawsuit_grid.query.GridQuery`
the HTTP backend answers, which makes it the data source of the
``lawsuit-grid view`` command and of tests::

    source = FrameSource(scan_file(Path("processos.parquet")))
    page = source.fetch(GridQuery(page=2))
    source.update(42, "contatoRealizado", True)

LazyFrames are not JSON-serialisable, so Reflex states keep only a
registry key and look the source up with :func:`get_source`.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

import polars as pl

from lawsuit_grid.config import ROW_ID_FIELD
from lawsuit_grid.log import get_logger
from lawsuit_grid.models import ColumnDef
from lawsuit_grid.polars_utils import (
    apply_query,
    build_column_defs_from_schema,
    dataframe_to_rows,
)
from lawsuit_grid.query import GridQuery

logger = get_logger(__name__)


@dataclass
class FramePage:
    """One page of rows plus the filtered row count."""

    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 1
        return max(1, -(-self.total // self.page_size))


class FrameSource:
    """Filter, sort, paginate and edit rows of a LazyFrame.

    Args:
        lf: The frame to serve.  When it has no *id_field* column a 1-based
            row index is added under that name.
        id_field: Name of the unique row identifier.
    """

    def __init__(self, lf: pl.LazyFrame, id_field: str = ROW_ID_FIELD) -> None:
        schema = lf.collect_schema()
        if id_field not in schema:
            lf = lf.with_row_index(id_field, offset=1)
            schema = lf.collect_schema()
        self.lf = lf
        self.id_field = id_field
        self.schema: pl.Schema = schema

    def column_defs(
        self,
        *,
        editable_fields: set[str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[ColumnDef]:
        """Column definitions derived from the frame's schema."""
        return build_column_defs_from_schema(
            self.schema,
            id_field=self.id_field,
            editable_fields=editable_fields,
            headers=headers,
        )

    def fetch(self, query: GridQuery) -> FramePage:
        """Run *query*: filter -> count -> sort -> slice, collecting only the page."""
        t0 = time.perf_counter()
        page_lf, total = apply_query(self.lf, query, self.schema)
        rows = dataframe_to_rows(page_lf.collect())
        logger.debug(
            "[LawsuitGrid] fetch page=%d size=%d filters=%d -> %d/%d rows (%.1fms)",
            query.page,
            query.page_size,
            len(query.filters),
            len(rows),
            total,
            (time.perf_counter() - t0) * 1000,
        )
        return FramePage(items=rows, total=total, page=query.page, page_size=query.page_size)

    def get(self, row_id: Any) -> dict[str, Any]:
        """Return the row with *row_id*.

        Raises:
            KeyError: If no row has that id.
        """
        df = self.lf.filter(pl.col(self.id_field) == row_id).head(1).collect()
        if df.height == 0:
            raise KeyError(f"No row with {self.id_field}={row_id!r}")
        return dataframe_to_rows(df)[0]

    def update(self, row_id: Any, field: str, value: Any) -> dict[str, Any]:
        """Set *field* of row *row_id* to *value* and return the stored row.

        The update is recorded lazily on top of the source frame.

        Raises:
            KeyError: On an unknown field, an attempt to change the
                identifier, or an unknown row id.
        """
        if field not in self.schema or field == self.id_field:
            raise KeyError(f"Field {field!r} cannot be updated")
        self.get(row_id)

        dtype = self.schema[field]
        self.lf = self.lf.with_columns(
            pl.when(pl.col(self.id_field) == row_id)
            .then(pl.lit(value).cast(dtype))
            .otherwise(pl.col(field))
            .alias(field)
        )
        logger.info("[LawsuitGrid] updated %s=%r: %s=%r", self.id_field, row_id, field, value)
        return self.get(row_id)


# ---------------------------------------------------------------------------
# Registry (LazyFrames live outside Reflex state)
# ---------------------------------------------------------------------------

_source_registry: dict[str, FrameSource] = {}


def register_source(key: str, source: FrameSource) -> FrameSource:
    _source_registry[key] = source
    return source


def get_source(key: str) -> FrameSource:
    """Return the source registered under *key*.

    Raises:
        KeyError: If nothing was registered under *key*.
    """
    try:
        return _source_registry[key]
    except KeyError:
        raise KeyError(f"No frame source registered as {key!r}") from None


# ---------------------------------------------------------------------------
# File scanner
# ---------------------------------------------------------------------------

# A leading zero marks an identifier ("0001", CEP codes), never a quantity.
_LEADING_ZERO = r"^-?0\d"
_INTEGER = r"^-?\d{1,18}$"

_SUPPORTED_SUFFIXES = (
    ".parquet", ".pq", ".csv", ".tsv", ".json", ".ndjson", ".jsonl", ".ipc", ".arrow", ".feather",
)


def _type_text_columns(lf: pl.LazyFrame, skip: Iterable[str] = ()) -> pl.LazyFrame:
    """Give all-text columns of a delimited file their numeric or boolean type.

    A column becomes ``Int64``/``Float64`` only when every non-empty value
    parses as a number and none has a leading zero, and ``Boolean`` when
    every value is ``true``/``false``.  Everything else stays ``String``.
    """
    skip = set(skip)
    names = [
        name for name, dtype in lf.collect_schema().items()
        if dtype == pl.String and name not in skip
    ]
    if not names:
        return lf

    stats: list[pl.Expr] = []
    for i, name in enumerate(names):
        text = pl.col(name).str.strip_chars()
        present = text.is_not_null() & (text != "")
        stats += [
            present.sum().alias(f"{i}:present"),
            (present & text.cast(pl.Float64, strict=False).is_null()).any().alias(f"{i}:text"),
            (present & text.str.contains(_LEADING_ZERO)).any().alias(f"{i}:zero"),
            (present & ~text.str.contains(_INTEGER)).any().alias(f"{i}:fraction"),
            (present & ~text.str.to_lowercase().is_in(["true", "false"])).any().alias(f"{i}:nonbool"),
        ]
    row = lf.select(stats).collect().row(0, named=True)

    casts: list[pl.Expr] = []
    for i, name in enumerate(names):
        if not row[f"{i}:present"]:
            continue
        text = pl.col(name).str.strip_chars()
        cleaned = pl.when(text != "").then(text).otherwise(None)
        if not row[f"{i}:nonbool"]:
            casts.append((cleaned.str.to_lowercase() == "true").alias(name))
        elif not row[f"{i}:text"] and not row[f"{i}:zero"]:
            dtype = pl.Float64 if row[f"{i}:fraction"] else pl.Int64
            casts.append(cleaned.cast(dtype).alias(name))
    return lf.with_columns(casts) if casts else lf


def _scan_delimited(
    path: Path,
    separator: str,
    schema_overrides: Mapping[str, pl.DataType] | None,
) -> pl.LazyFrame:
    lf = pl.scan_csv(path, separator=separator, infer_schema_length=0)
    overrides = dict(schema_overrides or {})
    lf = _type_text_columns(lf, skip=overrides)
    if overrides:
        lf = lf.with_columns([pl.col(name).cast(dtype) for name, dtype in overrides.items()])
    return lf


def scan_file(
    path: Path,
    *,
    schema_overrides: Mapping[str, pl.DataType] | None = None,
) -> pl.LazyFrame:
    """Scan a data file into a LazyFrame, picking the reader by extension.

    * ``.parquet`` / ``.pq`` / ``.ipc`` / ``.arrow`` / ``.feather`` keep
      their stored types.
    * ``.csv`` / ``.tsv`` are read as text first so identifiers such as
      process numbers (``"0001"``) stay strings; see
      :func:`_type_text_columns` for how numbers and booleans are typed.
      *schema_overrides* pins the dtype of named columns.
    * ``.json`` is read eagerly (no streaming scan); ``.ndjson`` /
      ``.jsonl`` are scanned.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".csv", ".tsv"):
        return _scan_delimited(path, "\t" if suffix == ".tsv" else ",", schema_overrides)
    if suffix in (".parquet", ".pq"):
        lf = pl.scan_parquet(path)
    elif suffix in (".ipc", ".arrow", ".feather"):
        lf = pl.scan_ipc(path)
    elif suffix == ".json":
        lf = pl.read_json(path).lazy()
    elif suffix in (".ndjson", ".jsonl"):
        lf = pl.scan_ndjson(path)
    else:
        raise ValueError(
            f"Unsupported file extension: {suffix!r}. Supported: {', '.join(_SUPPORTED_SUFFIXES)}"
        )
    if schema_overrides:
        lf = lf.with_columns([pl.col(name).cast(dtype) for name, dtype in schema_overrides.items()])
    return lf
