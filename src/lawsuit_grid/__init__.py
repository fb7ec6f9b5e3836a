"""lawsuit-grid – filterable, sortable, inline-editable data grid for lawsuit records.

The pure core (column definitions, filter popover logic, grid engine, Query
Object, optimistic edits) has no UI dependency.  The Reflex layer
(:class:`LawsuitGridMixin`, :func:`data_grid`) renders it, and
:class:`ApiClient` talks to the lawsuit backend::

    pip install lawsuit-grid
"""

from lawsuit_grid.client import (
    ApiClient,
    ApiError,
    BatchStatus,
    BatchWithStatus,
    ProcessPage,
    UnauthorizedError,
    User,
)
from lawsuit_grid.column_filter import ColumnFilterControl, default_operator, operators_for
from lawsuit_grid.components import (
    column_filter_popover,
    data_grid,
    grid_pagination,
    grid_query_panel,
)
from lawsuit_grid.engine import GridEngine
from lawsuit_grid.formatting import format_cell_value, format_currency, format_date, format_number
from lawsuit_grid.frame_source import FramePage, FrameSource, get_source, register_source, scan_file
from lawsuit_grid.grid_state import LawsuitGridMixin
from lawsuit_grid.log import configure_logging, get_logger
from lawsuit_grid.models import (
    ColumnDef,
    CustomRender,
    DefaultRender,
    monospace_renderer,
    url_renderer,
)
from lawsuit_grid.optimistic import Committed, Failed, apply_optimistic_edit, commit_cell_edit
from lawsuit_grid.polars_utils import (
    apply_query,
    apply_query_filters,
    apply_query_sort,
    build_column_defs_from_schema,
    generate_sql_where,
)
from lawsuit_grid.query import FilterEntry, GridQuery, QueryFilter, SortDescriptor
