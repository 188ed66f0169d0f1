"""Data provider for document/search stores.

we don't own the http client - `search` is any callable taking an index name
and a request body and returning the decoded response. that keeps this
module testable with a fake and lets callers bring their own auth, retries,
timeouts.

response flattening walks the nested dim_N buckets depth first, so the row
order is the backend's bucket order.
"""

import json
from collections.abc import Callable
from typing import Any

import structlog

from aggforge.compiler.aggregation_builder import (
    DIM_AGG_PREFIX,
    VALUE_AGG_PREFIX,
    DocumentQueryCompiler,
)
from aggforge.models.config import AggConfig
from aggforge.models.page import PageQuery
from aggforge.models.result import NULL_STRING, AggregateResult
from aggforge.providers.base import DataProvider, page_rows, transform_to_agg_result

logger = structlog.get_logger(__name__)

SearchFn = Callable[[str, dict[str, Any]], dict[str, Any]]
MappingFn = Callable[[str], dict[str, Any]]


def _bucket_key(bucket: dict[str, Any]) -> Any:
    # date histograms give epoch millis in key and the formatted date here
    return bucket.get("key_as_string", bucket.get("key"))


def _metric_value(bucket: dict[str, Any], name: str) -> Any:
    metric = bucket.get(name)
    if metric is None:
        return None
    return metric.get("value")


def flatten_buckets(
    aggs: dict[str, Any], dim_count: int, value_count: int
) -> list[list[Any]]:
    """Turn a nested aggregation response into rows.

    each row is the bucket keys along one path, then that leaf's metric
    values. with no dimensions there's a single row of top level metrics.
    """
    values = [f"{VALUE_AGG_PREFIX}{i}" for i in range(value_count)]

    if dim_count == 0:
        return [[_metric_value(aggs, name) for name in values]]

    rows: list[list[Any]] = []

    def walk(level: dict[str, Any], depth: int, prefix: list[Any]) -> None:
        buckets = level.get(f"{DIM_AGG_PREFIX}{depth}", {}).get("buckets", [])
        for bucket in buckets:
            keys = [*prefix, _bucket_key(bucket)]
            if depth + 1 < dim_count:
                walk(bucket, depth + 1, keys)
            else:
                rows.append(keys + [_metric_value(bucket, name) for name in values])

    walk(aggs, 0, [])
    return rows


class DocumentDataProvider(DataProvider):
    """Aggregations against a document/search store index."""

    def __init__(
        self,
        search: SearchFn,
        index: str,
        mapping: MappingFn | None = None,
        compiler: DocumentQueryCompiler | None = None,
    ) -> None:
        super().__init__()
        self.search = search
        self.index = index
        self.mapping = mapping
        self.compiler = compiler or DocumentQueryCompiler()

    def discover_columns(self) -> list[str]:
        """Field names from the index mapping, nested objects dotted."""
        if self.mapping is None:
            return []
        response = self.mapping(self.index)
        properties: dict[str, Any] = {}
        for index_mapping in response.values():
            properties.update(index_mapping.get("mappings", {}).get("properties", {}))
        return _flatten_properties(properties)

    def query_dim_vals(self, column_name: str, config: AggConfig | None = None) -> list[str]:
        body = self.compiler.compile_dim_values(column_name, config)
        response = self.search(self.index, body)
        rows = flatten_buckets(response.get("aggregations", {}), 1, 0)
        return [NULL_STRING if row[0] is None else str(row[0]) for row in rows]

    def query_agg_data(self, config: AggConfig, page: PageQuery | None = None) -> AggregateResult:
        """Run the aggregation. bucket aggs don't page, so a page is cut from the rows."""
        body = self.compiler.compile(config)
        response = self.search(self.index, body)
        rows = flatten_buckets(
            response.get("aggregations", {}), len(config.dimensions), len(config.values)
        )
        logger.info("agg_query_executed", index=self.index, rows=len(rows))
        if page is not None:
            rows = page_rows(config, rows, page)
        return transform_to_agg_result(config, rows)

    def view_agg_data_query(self, config: AggConfig) -> str:
        return json.dumps(self.compiler.compile(config), indent=2, ensure_ascii=False)


def _flatten_properties(properties: dict[str, Any], prefix: str = "") -> list[str]:
    names = []
    for name, spec in properties.items():
        full = f"{prefix}{name}"
        if "properties" in spec:
            names.extend(_flatten_properties(spec["properties"], f"{full}."))
        else:
            names.append(full)
    return names
