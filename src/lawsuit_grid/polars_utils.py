"""Listing semantics of the grid's Query Object over polars LazyFrames.

This is the reference reading of the operator tokens for any backend that
wants to be compatible with the grid:

* **string / date**: ``equals``, ``notEquals``, ``contains``,
  ``startsWith``, ``endsWith`` -- case-sensitive, literal (no regex), on
  the column cast to String;
* **number / currency**: ``equals``, ``notEquals``, ``greaterThan``,
  ``lessThan``, ``greaterOrEqual``, ``lessOrEqual``;
* **boolean**: ``true`` / ``false`` (``all`` never reaches the backend).

Filters on unknown fields, unknown operators and non-numeric values for
numeric columns are ignored rather than failing the whole listing.
"""

import math
from typing import Any

import polars as pl

from lawsuit_grid.models import ColumnDef
from lawsuit_grid.query import GridQuery, QueryFilter, SortDescriptor


def polars_dtype_to_column_type(dtype: pl.DataType) -> str:
    """Map a polars DataType to the closest grid column type.

    ``Decimal`` columns are treated as money (``"currency"``); everything
    that is neither numeric, boolean nor temporal is a ``"string"``.
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if isinstance(dtype, pl.Decimal):
        return "currency"
    if dtype.is_numeric():
        return "number"
    if isinstance(dtype, (pl.Date, pl.Datetime)):
        return "date"
    return "string"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or raw field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"contatoRealizado"`` -> ``"Contatorealizado"``
        ``"__row_id__"`` -> ``"Row Id"``
    """
    return field.strip("_").replace("_", " ").title()


def build_column_defs_from_schema(
    schema: pl.Schema,
    *,
    id_field: str = "id",
    show_id_field: bool = False,
    editable_fields: set[str] | None = None,
    headers: dict[str, str] | None = None,
) -> list[ColumnDef]:
    """Build :class:`ColumnDef` objects from a polars Schema (no data scan).

    Args:
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        id_field: The unique row identifier column.
        show_id_field: Whether the identifier gets a column of its own.
        editable_fields: Columns that accept inline edits.  ``None`` makes
            every column except the identifier editable.
        headers: Optional ``{field: header}`` overrides.

    Returns:
        One read-only or editable column per schema entry.
    """
    headers = headers or {}
    column_defs: list[ColumnDef] = []
    for col_name, dtype in schema.items():
        if col_name == id_field and not show_id_field:
            continue
        editable = col_name != id_field and (
            editable_fields is None or col_name in editable_fields
        )
        column_defs.append(
            ColumnDef(
                field=col_name,
                header=headers.get(col_name, _humanize_field_name(col_name)),
                type=polars_dtype_to_column_type(dtype),
                editable=editable,
            )
        )
    return column_defs


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def _coerce_numeric(value: Any) -> int | float | None:
    """Try to coerce *value* to a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        for conv in (int, float):
            try:  # noqa: SIM105
                number = conv(value)
            except ValueError:
                continue
            return None if isinstance(number, float) and math.isnan(number) else number
    return None


def _build_filter_expr(item: QueryFilter, schema: pl.Schema) -> pl.Expr | None:
    """Translate one query filter into a polars expression (``None`` = skip)."""
    if item.field not in schema:
        return None

    col = pl.col(item.field)
    column_type = polars_dtype_to_column_type(schema[item.field])
    operator = item.operator

    if column_type == "boolean":
        if operator == "true":
            return col == True  # noqa: E712
        if operator == "false":
            return col == False  # noqa: E712
        return None

    if item.value is None:
        return None

    if column_type in ("number", "currency"):
        number = _coerce_numeric(item.value)
        if number is None:
            return None
        if operator == "equals":
            return col == number
        if operator == "notEquals":
            return col != number
        if operator == "greaterThan":
            return col > number
        if operator == "lessThan":
            return col < number
        if operator == "greaterOrEqual":
            return col >= number
        if operator == "lessOrEqual":
            return col <= number
        return None

    str_col = col.cast(pl.String)
    text = str(item.value)
    if operator == "equals":
        return str_col == text
    if operator == "notEquals":
        return str_col != text
    if operator == "contains":
        return str_col.str.contains(text, literal=True)
    if operator == "startsWith":
        return str_col.str.starts_with(text)
    if operator == "endsWith":
        return str_col.str.ends_with(text)
    return None


def apply_query_filters(
    lf: pl.LazyFrame,
    filters: tuple[QueryFilter, ...] | list[QueryFilter],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """AND all translatable filters together -- **no collect**."""
    if not filters:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    exprs = [e for e in (_build_filter_expr(item, schema) for item in filters) if e is not None]
    if not exprs:
        return lf

    combined = exprs[0]
    for expr in exprs[1:]:
        combined = combined & expr
    return lf.filter(combined)


def apply_query_sort(lf: pl.LazyFrame, sort: SortDescriptor | None) -> pl.LazyFrame:
    """Sort by the single active sort; nulls always go last."""
    if sort is None:
        return lf
    return lf.sort(sort.field, descending=sort.direction == "desc", nulls_last=True)


def apply_query(
    lf: pl.LazyFrame,
    query: GridQuery,
    schema: pl.Schema | None = None,
) -> tuple[pl.LazyFrame, int]:
    """Filter, count, sort and slice *lf* for *query* (pages are 1-based).

    Returns:
        ``(page_lf, total)`` where *total* counts the filtered rows and
        *page_lf* is still lazy.
    """
    if schema is None:
        schema = lf.collect_schema()
    filtered = apply_query_filters(lf, query.filters, schema)
    if query.sort is not None and query.sort.field not in schema:
        sort = None
    else:
        sort = query.sort
    total: int = filtered.select(pl.len()).collect().item()
    offset = (max(query.page, 1) - 1) * query.page_size
    page_lf = apply_query_sort(filtered, sort).slice(offset, query.page_size)
    return page_lf, total


# ---------------------------------------------------------------------------
# SQL generation (copy-paste debugging)
# ---------------------------------------------------------------------------

_SQL_NUMBER_OPS: dict[str, str] = {
    "equals": "=",
    "notEquals": "!=",
    "greaterThan": ">",
    "lessThan": "<",
    "greaterOrEqual": ">=",
    "lessOrEqual": "<=",
}


def _filter_item_to_sql(item: QueryFilter, schema: pl.Schema) -> str | None:
    """Translate a single query filter to a SQL condition string."""
    if item.field not in schema:
        return None

    col = f'"{item.field}"'
    column_type = polars_dtype_to_column_type(schema[item.field])

    if column_type == "boolean":
        if item.operator in ("true", "false"):
            return f"{col} = {item.operator.upper()}"
        return None

    if item.value is None:
        return None

    if column_type in ("number", "currency"):
        number = _coerce_numeric(item.value)
        sql_op = _SQL_NUMBER_OPS.get(item.operator)
        if number is None or sql_op is None:
            return None
        return f"{col} {sql_op} {number}"

    escaped = str(item.value).replace("'", "''")
    if item.operator == "equals":
        return f"CAST({col} AS TEXT) = '{escaped}'"
    if item.operator == "notEquals":
        return f"CAST({col} AS TEXT) != '{escaped}'"

    # LIKE operands match literally, as the polars reading does.
    pattern = escaped.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    if item.operator == "contains":
        return f"CAST({col} AS TEXT) LIKE '%{pattern}%' ESCAPE '\\'"
    if item.operator == "startsWith":
        return f"CAST({col} AS TEXT) LIKE '{pattern}%' ESCAPE '\\'"
    if item.operator == "endsWith":
        return f"CAST({col} AS TEXT) LIKE '%{pattern}' ESCAPE '\\'"
    return None


def generate_sql_where(
    query: GridQuery,
    schema: pl.Schema,
    *,
    table_name: str = "process",
    paginate: bool = True,
) -> str:
    """Generate the SQL a relational backend would run for *query*.

    Returns:
        ``SELECT ... [WHERE ...] [ORDER BY ...] [LIMIT ... OFFSET ...];``
    """
    parts: list[str] = [f"SELECT * FROM {table_name}"]

    conditions = [c for c in (_filter_item_to_sql(f, schema) for f in query.filters) if c]
    if conditions:
        parts.append("WHERE " + " AND ".join(conditions))

    if query.sort is not None and query.sort.field in schema:
        parts.append(f'ORDER BY "{query.sort.field}" {query.sort.direction.upper()}')

    if paginate:
        offset = (max(query.page, 1) - 1) * query.page_size
        parts.append(f"LIMIT {query.page_size} OFFSET {offset}")

    return "\n".join(parts) + ";"


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------

def dataframe_to_rows(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of JSON-safe dicts.

    Temporal columns become ISO-8601 strings and Decimal columns floats;
    other types are left as polars returns them.
    """
    exprs: list[pl.Expr] = []
    needs_cast = False
    for name, dtype in df.schema.items():
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration)):
            exprs.append(pl.col(name).cast(pl.String))
            needs_cast = True
        elif isinstance(dtype, pl.Decimal):
            exprs.append(pl.col(name).cast(pl.Float64))
            needs_cast = True
        else:
            exprs.append(pl.col(name))
    if not needs_cast:
        return df.to_dicts()
    return df.select(exprs).to_dicts()
