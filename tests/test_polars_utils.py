from datetime import date
from decimal import Decimal

import polars as pl
import pytest

from lawsuit_grid.polars_utils import (
    apply_query,
    apply_query_filters,
    apply_query_sort,
    build_column_defs_from_schema,
    dataframe_to_rows,
    generate_sql_where,
    polars_dtype_to_column_type,
)
from lawsuit_grid.query import GridQuery, QueryFilter, SortDescriptor


@pytest.fixture
def processes() -> pl.LazyFrame:
    return pl.LazyFrame(
        {
            "id": [1, 2, 3, 4],
            "processo": ["0001-A", "0002-B", "0003-A", "0004-C"],
            "requerido": ["Silva", "Souza", None, "Silva Jr"],
            "valor": [100.0, 2500.5, None, 900.0],
            "contatoRealizado": [True, False, False, True],
        }
    )


def _ids(lf: pl.LazyFrame) -> list[int]:
    return lf.collect()["id"].to_list()


def test_dtype_mapping() -> None:
    assert polars_dtype_to_column_type(pl.Boolean()) == "boolean"
    assert polars_dtype_to_column_type(pl.Int64()) == "number"
    assert polars_dtype_to_column_type(pl.Float64()) == "number"
    assert polars_dtype_to_column_type(pl.Decimal(10, 2)) == "currency"
    assert polars_dtype_to_column_type(pl.Date()) == "date"
    assert polars_dtype_to_column_type(pl.Datetime()) == "date"
    assert polars_dtype_to_column_type(pl.String()) == "string"


class TestFilters:
    def test_contains_is_literal_and_case_sensitive(self, processes: pl.LazyFrame) -> None:
        lf = apply_query_filters(processes, [QueryFilter("requerido", "contains", "Silva")])
        assert _ids(lf) == [1, 4]
        lf = apply_query_filters(processes, [QueryFilter("requerido", "contains", "silva")])
        assert _ids(lf) == []

    def test_starts_and_ends_with(self, processes: pl.LazyFrame) -> None:
        assert _ids(apply_query_filters(processes, [QueryFilter("processo", "endsWith", "-A")])) == [1, 3]
        assert _ids(apply_query_filters(processes, [QueryFilter("processo", "startsWith", "0002")])) == [2]

    def test_numeric_comparison_skips_nulls(self, processes: pl.LazyFrame) -> None:
        lf = apply_query_filters(processes, [QueryFilter("valor", "greaterThan", 500)])
        assert _ids(lf) == [2, 4]
        lf = apply_query_filters(processes, [QueryFilter("valor", "lessOrEqual", "900")])
        assert _ids(lf) == [1, 4]

    def test_boolean(self, processes: pl.LazyFrame) -> None:
        assert _ids(apply_query_filters(processes, [QueryFilter("contatoRealizado", "true", True)])) == [1, 4]
        assert _ids(apply_query_filters(processes, [QueryFilter("contatoRealizado", "false", False)])) == [2, 3]

    def test_filters_are_combined_with_and(self, processes: pl.LazyFrame) -> None:
        lf = apply_query_filters(
            processes,
            [
                QueryFilter("requerido", "contains", "Silva"),
                QueryFilter("valor", "greaterThan", 500),
            ],
        )
        assert _ids(lf) == [4]

    def test_untranslatable_filters_are_ignored(self, processes: pl.LazyFrame) -> None:
        lf = apply_query_filters(
            processes,
            [
                QueryFilter("valor", "equals", float("nan")),
                QueryFilter("nope", "equals", "x"),
                QueryFilter("valor", "contains", 1),
            ],
        )
        assert _ids(lf) == [1, 2, 3, 4]


def test_sort_puts_nulls_last(processes: pl.LazyFrame) -> None:
    assert _ids(apply_query_sort(processes, SortDescriptor("valor", "desc"))) == [2, 4, 1, 3]
    assert _ids(apply_query_sort(processes, SortDescriptor("valor", "asc"))) == [1, 4, 2, 3]


class TestApplyQuery:
    def test_pagination_and_total(self, processes: pl.LazyFrame) -> None:
        query = GridQuery(sort=SortDescriptor("id", "desc"), page=2, page_size=3)
        page_lf, total = apply_query(processes, query)
        assert total == 4
        assert _ids(page_lf) == [1]

    def test_total_counts_filtered_rows(self, processes: pl.LazyFrame) -> None:
        query = GridQuery(filters=(QueryFilter("contatoRealizado", "true", True),), page_size=1)
        page_lf, total = apply_query(processes, query)
        assert total == 2
        assert _ids(page_lf) == [1]

    def test_unknown_sort_field_is_ignored(self, processes: pl.LazyFrame) -> None:
        page_lf, _ = apply_query(processes, GridQuery(sort=SortDescriptor("nope", "asc")))
        assert _ids(page_lf) == [1, 2, 3, 4]


class TestGenerateSql:
    def test_full_statement(self, processes: pl.LazyFrame) -> None:
        query = GridQuery(
            filters=(
                QueryFilter("requerido", "contains", "Silva"),
                QueryFilter("valor", "greaterThan", 500),
                QueryFilter("contatoRealizado", "true", True),
            ),
            sort=SortDescriptor("valor", "desc"),
            page=2,
            page_size=2,
        )
        sql = generate_sql_where(query, processes.collect_schema())
        assert sql == (
            "SELECT * FROM process\n"
            "WHERE CAST(\"requerido\" AS TEXT) LIKE '%Silva%' ESCAPE '\\' AND \"valor\" > 500"
            " AND \"contatoRealizado\" = TRUE\n"
            "ORDER BY \"valor\" DESC\n"
            "LIMIT 2 OFFSET 2;"
        )

    def test_quotes_are_escaped(self, processes: pl.LazyFrame) -> None:
        query = GridQuery(filters=(QueryFilter("requerido", "equals", "O'Brien"),))
        sql = generate_sql_where(query, processes.collect_schema(), table_name="processos", paginate=False)
        assert sql == "SELECT * FROM processos\nWHERE CAST(\"requerido\" AS TEXT) = 'O''Brien';"

    def test_like_wildcards_match_literally(self, processes: pl.LazyFrame) -> None:
        query = GridQuery(filters=(QueryFilter("requerido", "contains", "50%_o\\ff"),))
        sql = generate_sql_where(query, processes.collect_schema(), paginate=False)
        assert sql == (
            "SELECT * FROM process\n"
            "WHERE CAST(\"requerido\" AS TEXT) LIKE '%50\\%\\_o\\\\ff%' ESCAPE '\\';"
        )


def test_column_defs_from_schema(processes: pl.LazyFrame) -> None:
    columns = build_column_defs_from_schema(
        processes.collect_schema(),
        editable_fields={"contatoRealizado"},
        headers={"requerido": "Requerido"},
    )
    assert [c.field for c in columns] == ["processo", "requerido", "valor", "contatoRealizado"]
    by_field = {c.field: c for c in columns}
    assert by_field["valor"].type == "number"
    assert by_field["contatoRealizado"].type == "boolean"
    assert by_field["contatoRealizado"].editable
    assert not by_field["processo"].editable
    assert by_field["requerido"].header == "Requerido"
    assert by_field["processo"].header == "Processo"


def test_dataframe_to_rows_is_json_safe() -> None:
    df = pl.DataFrame(
        {
            "id": [1],
            "distribuicao": [date(2024, 1, 2)],
            "valor": pl.Series([Decimal("10.50")], dtype=pl.Decimal(10, 2)),
        }
    )
    assert dataframe_to_rows(df) == [{"id": 1, "distribuicao": "2024-01-02", "valor": 10.5}]
