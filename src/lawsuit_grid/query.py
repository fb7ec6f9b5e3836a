"""Filter entries, the sort descriptor and the Query Object sent to listing endpoints.

The grid keeps its filters as a mapping ``{field: FilterEntry}`` (at most one
entry per column) plus at most one :class:`SortDescriptor`.  Whenever either
changes it projects them into a :class:`GridQuery`::

    {
        "filters": [
            {"field": "requerido", "operator": "contains", "value": "Silva"},
            {"field": "valor", "operator": "greaterThan", "value": 1000.0},
        ],
        "sort": {"field": "valor", "direction": "desc"},
        "page": 1,
        "pageSize": 50,
    }

:meth:`GridQuery.to_dict` / :meth:`GridQuery.from_dict` are the JSON shape,
:meth:`GridQuery.to_params` the query-string shape of ``GET /process``.
"""

import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping
from urllib.parse import quote

from lawsuit_grid.config import DEFAULT_PAGE_SIZE
from lawsuit_grid.models import ALL_OPERATORS, SORT_DIRECTIONS

FilterValue = str | int | float | bool

# Filtering on this field is mirrored into the legacy ``search`` parameter.
SEARCH_FIELD = "processo"


@dataclass(frozen=True)
class FilterEntry:
    """One column's active filter constraint."""

    operator: str
    value: FilterValue


@dataclass(frozen=True)
class SortDescriptor:
    """The single active sort."""

    field: str
    direction: str

    def __post_init__(self) -> None:
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(
                f"Invalid sort direction {self.direction!r}; expected 'asc' or 'desc'"
            )

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "direction": self.direction}


@dataclass(frozen=True)
class QueryFilter:
    """A filter entry projected into the query, carrying its field name."""

    field: str
    operator: str
    value: FilterValue

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class GridQuery:
    """Combined filters, sort and pagination for a listing request."""

    filters: tuple[QueryFilter, ...] = field(default_factory=tuple)
    sort: SortDescriptor | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def with_page(self, page: int) -> "GridQuery":
        return replace(self, page=max(1, page))

    def filter_for(self, field_name: str) -> QueryFilter | None:
        for item in self.filters:
            if item.field == field_name:
                return item
        return None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON shape of the Query Object.  ``sort`` is omitted when unsorted."""
        data: dict[str, Any] = {"filters": [f.to_dict() for f in self.filters]}
        if self.sort is not None:
            data["sort"] = self.sort.to_dict()
        data["page"] = self.page
        data["pageSize"] = self.page_size
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GridQuery":
        """Parse the JSON shape produced by :meth:`to_dict`.

        Raises:
            ValueError: On unknown operator tokens, bad sort directions or a
                filter item without a field.
        """
        filters: list[QueryFilter] = []
        for item in data.get("filters") or []:
            field_name = item.get("field")
            operator = item.get("operator")
            if not field_name:
                raise ValueError(f"Filter item without a field: {item!r}")
            if operator not in ALL_OPERATORS:
                raise ValueError(f"Unknown filter operator {operator!r} for field {field_name!r}")
            filters.append(QueryFilter(field_name, operator, item.get("value")))

        sort: SortDescriptor | None = None
        raw_sort = data.get("sort")
        if raw_sort:
            sort = SortDescriptor(raw_sort["field"], raw_sort["direction"])

        return cls(
            filters=tuple(filters),
            sort=sort,
            page=int(data.get("page", 1)),
            page_size=int(data.get("pageSize", DEFAULT_PAGE_SIZE)),
        )

    def to_params(self, **extra: Any) -> dict[str, Any]:
        """Query-string parameters for ``GET /process``.

        ``filters`` is sent as percent-encoded JSON (``encodeURIComponent``
        of the JSON text, which the HTTP layer then encodes again as a
        query value, so the backend decodes twice), the sort as
        ``sortBy`` / ``sortOrder``, and a filter on ``processo`` is mirrored into
        ``search`` for backends that only understand the plain search
        parameter.  *extra* host-level parameters (``processed``,
        ``batchId``, ...) are merged in; ``None`` values are dropped.
        """
        params: dict[str, Any] = {"page": self.page, "limit": self.page_size}
        if self.filters:
            params["filters"] = encode_uri_component(
                json.dumps(
                    [_json_safe(f.to_dict()) for f in self.filters],
                    ensure_ascii=False,
                )
            )
            search = self.filter_for(SEARCH_FIELD)
            if search is not None:
                params["search"] = search.value
        if self.sort is not None:
            params["sortBy"] = self.sort.field
            params["sortOrder"] = self.sort.direction
        params.update(extra)
        return {
            key: _param_value(value) for key, value in params.items() if value is not None
        }


_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(text: str) -> str:
    """Percent-encode *text* the way JavaScript's ``encodeURIComponent`` does."""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def _json_safe(item: dict[str, Any]) -> dict[str, Any]:
    # NaN is not valid JSON; send it as null so the backend ignores the filter.
    value = item.get("value")
    if isinstance(value, float) and math.isnan(value):
        return {**item, "value": None}
    return item


def _param_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


# ---------------------------------------------------------------------------
# Aggregate state helpers
# ---------------------------------------------------------------------------

def merge_filter(
    filters: Mapping[str, FilterEntry],
    field_name: str,
    entry: FilterEntry | None,
) -> dict[str, FilterEntry]:
    """Return a copy of *filters* with *field_name* set to *entry*.

    ``None`` removes the key entirely, so the mapping never holds more
    than one entry per column and never holds an "empty" entry.
    """
    merged = dict(filters)
    if entry is None:
        merged.pop(field_name, None)
    else:
        merged[field_name] = entry
    return merged


def build_query(
    filters: Mapping[str, FilterEntry | None],
    sort: SortDescriptor | None,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> GridQuery:
    """Project the aggregate filter mapping and sort into a :class:`GridQuery`."""
    items = tuple(
        QueryFilter(field_name, entry.operator, entry.value)
        for field_name, entry in filters.items()
        if entry is not None
    )
    return GridQuery(filters=items, sort=sort, page=page, page_size=page_size)
