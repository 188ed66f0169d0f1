"""Data provider contract and result shaping.

a provider is one backend: it knows how to list columns, pick values for a
dimension, run an aggregation and (optionally) show the query it would run.
errors from the backend are not translated - they propagate as-is.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from aggforge.models.config import AggConfig
from aggforge.models.page import PageQuery
from aggforge.models.result import NULL_STRING, AggregateResult, ColumnIndex

logger = structlog.get_logger(__name__)

NOT_SUPPORTED = "Not Support"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def transform_to_agg_result(config: AggConfig, rows: Iterable[Sequence[Any]]) -> AggregateResult:
    """Shape raw backend rows into an AggregateResult.

    rows must already be in select order: dimensions, then values. null
    dimension cells become NULL_STRING so they can be picked as filter
    operands, null aggregates become empty strings.
    """
    columns = [ColumnIndex.from_dimension_config(d) for d in config.dimensions]
    dim_count = len(columns)
    columns.extend(ColumnIndex.from_value_config(v) for v in config.values)
    columns = [c.model_copy(update={"index": i}) for i, c in enumerate(columns)]

    data = []
    for row in rows:
        cells = [NULL_STRING if v is None else str(v) for v in row[:dim_count]]
        cells.extend(_cell(v) for v in row[dim_count:])
        data.append(cells)

    # AggregateResult checks that every row matches the column count
    return AggregateResult(column_list=columns, data=data)


def page_rows(
    config: AggConfig, rows: Iterable[Sequence[Any]], page: PageQuery
) -> list[Sequence[Any]]:
    """Sort and slice raw rows in memory.

    for backends that can't push paging down. sidx is matched against the
    request's dimension and value columns (an unknown sidx leaves the
    backend's order alone), nulls sort last either way.
    """
    rows = list(rows)
    if page.sidx:
        names = [d.column_name.lower() for d in config.dimensions]
        names.extend(v.column.lower() for v in config.values)
        if page.sidx in names:
            i = names.index(page.sidx)
            present = sorted(
                (r for r in rows if r[i] is not None),
                key=lambda r: r[i],
                reverse=page.order == "desc",
            )
            rows = present + [r for r in rows if r[i] is None]
    return rows[page.offset : page.offset + page.limit]


class DataProvider(ABC):
    """Capability interface every backend implements.

    column discovery is cached. reload swaps the cache in one assignment
    under a lock, so a concurrent reader sees either the old list or the new
    one, never something in between.
    """

    def __init__(self) -> None:
        self._columns: list[str] | None = None
        self._columns_lock = threading.Lock()

    @abstractmethod
    def query_dim_vals(self, column_name: str, config: AggConfig | None = None) -> list[str]:
        """Distinct values of a column, for value pickers."""

    @abstractmethod
    def query_agg_data(self, config: AggConfig, page: PageQuery | None = None) -> AggregateResult:
        """Run the aggregation and return the shaped result, one page of it if asked."""

    @abstractmethod
    def discover_columns(self) -> list[str]:
        """Read the column names from the backend, bypassing the cache."""

    def get_column(self, reload: bool = False) -> list[str]:
        """Known column names, re-read from the backend when reload is set."""
        columns = self._columns
        if columns is not None and not reload:
            return list(columns)

        # discovery runs outside the lock - it may be slow and it's idempotent
        discovered = self.discover_columns()
        with self._columns_lock:
            self._columns = discovered
        logger.info("columns_discovered", provider=type(self).__name__, count=len(discovered))
        return list(discovered)

    def view_agg_data_query(self, config: AggConfig) -> str:
        """Human readable form of the query, for diagnostics.

        optional - providers that can't show their query return NOT_SUPPORTED.
        """
        return NOT_SUPPORTED
