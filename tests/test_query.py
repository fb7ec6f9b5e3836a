import json
from urllib.parse import unquote

import pytest

from lawsuit_grid.query import (
    FilterEntry,
    GridQuery,
    QueryFilter,
    SortDescriptor,
    build_query,
    encode_uri_component,
    merge_filter,
)


def _query() -> GridQuery:
    return GridQuery(
        filters=(
            QueryFilter("processo", "contains", "0001"),
            QueryFilter("valor", "greaterThan", 1000.0),
        ),
        sort=SortDescriptor("valor", "desc"),
        page=2,
        page_size=25,
    )


def test_sort_direction_is_validated() -> None:
    with pytest.raises(ValueError):
        SortDescriptor("valor", "up")


def test_to_dict_from_dict() -> None:
    query = _query()
    data = query.to_dict()
    assert data == {
        "filters": [
            {"field": "processo", "operator": "contains", "value": "0001"},
            {"field": "valor", "operator": "greaterThan", "value": 1000.0},
        ],
        "sort": {"field": "valor", "direction": "desc"},
        "page": 2,
        "pageSize": 25,
    }
    assert GridQuery.from_dict(json.loads(json.dumps(data))) == query


def test_unsorted_query_omits_sort() -> None:
    assert "sort" not in GridQuery().to_dict()


class TestFromDictErrors:
    def test_unknown_operator(self) -> None:
        with pytest.raises(ValueError):
            GridQuery.from_dict({"filters": [{"field": "a", "operator": "like", "value": 1}]})

    def test_missing_field(self) -> None:
        with pytest.raises(ValueError):
            GridQuery.from_dict({"filters": [{"operator": "equals", "value": 1}]})

    def test_bad_direction(self) -> None:
        with pytest.raises(ValueError):
            GridQuery.from_dict({"sort": {"field": "a", "direction": "sideways"}})


class TestToParams:
    def test_listing_parameters(self) -> None:
        params = _query().to_params(processed=False, batchId=None)
        assert params["page"] == 2
        assert params["limit"] == 25
        assert json.loads(unquote(params["filters"])) == [
            {"field": "processo", "operator": "contains", "value": "0001"},
            {"field": "valor", "operator": "greaterThan", "value": 1000.0},
        ]
        assert params["search"] == "0001"
        assert (params["sortBy"], params["sortOrder"]) == ("valor", "desc")
        assert params["processed"] == "false"
        assert "batchId" not in params

    def test_empty_query(self) -> None:
        assert GridQuery().to_params() == {"page": 1, "limit": 50}

    def test_filters_are_uri_component_encoded(self) -> None:
        query = GridQuery(filters=(QueryFilter("requerido", "contains", "50% ação"),))
        encoded = query.to_params()["filters"]
        assert "%" in encoded and " " not in encoded and "\"" not in encoded
        assert encoded.startswith("%5B%7B%22field%22%3A%22requerido%22")
        assert json.loads(unquote(encoded))[0]["value"] == "50% ação"

    def test_nan_is_sent_as_null(self) -> None:
        query = GridQuery(filters=(QueryFilter("valor", "equals", float("nan")),))
        assert json.loads(unquote(query.to_params()["filters"])) == [
            {"field": "valor", "operator": "equals", "value": None}
        ]


def test_with_page_never_goes_below_one() -> None:
    assert _query().with_page(0).page == 1
    assert _query().with_page(3).page == 3


def test_merge_filter_keeps_one_entry_per_column() -> None:
    filters = merge_filter({}, "a", FilterEntry("equals", 1))
    filters = merge_filter(filters, "a", FilterEntry("equals", 2))
    assert filters == {"a": FilterEntry("equals", 2)}
    assert merge_filter(filters, "a", None) == {}


def test_build_query_skips_empty_entries() -> None:
    query = build_query({"a": FilterEntry("equals", 1), "b": None}, None, page=3, page_size=10)
    assert query.filters == (QueryFilter("a", "equals", 1),)
    assert (query.page, query.page_size) == (3, 10)


def test_encode_uri_component_keeps_unreserved_marks() -> None:
    assert encode_uri_component("a-b_c.d!e~f*g'h(i)") == "a-b_c.d!e~f*g'h(i)"
    assert encode_uri_component("a b/c?d&e=f") == "a%20b%2Fc%3Fd%26e%3Df"
    assert encode_uri_component("ç") == "%C3%A7"
