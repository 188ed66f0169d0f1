"""Aggregation clauses for document/search stores.

these backends don't speak sql - they take a json body with bucket
aggregations (terms, date_histogram) nested inside each other and metric
aggregations at the leaves. everything here builds plain dicts; turning them
into json and sending them is the provider's job.

none of this validates anything. a bad interval string goes to the backend
as-is and the backend complains at execution time.
"""

import os
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from aggforge.compiler.expressions import expand_filter_values
from aggforge.models.config import AggConfig, AggType, ConfigGroup, DimensionConfig, ValueConfig
from aggforge.models.result import NULL_STRING

logger = structlog.get_logger(__name__)

# the format string goes into the request body too, so it stays in the
# backend's (java style) syntax. BOUND_STRFTIME is the python equivalent
BOUND_FORMAT = "yyyy-MM-dd HH:mm"
BOUND_STRFTIME = "%Y-%m-%d %H:%M"

LOCALTIME_PATH = "/etc/localtime"
TIMEZONE_PATH = "/etc/timezone"
ZONEINFO_MARKER = "zoneinfo/"

DIM_AGG_PREFIX = "dim_"
VALUE_AGG_PREFIX = "value_"

METRIC_AGGS = {
    AggType.SUM: "sum",
    AggType.AVG: "avg",
    AggType.MAX: "max",
    AggType.MIN: "min",
    AggType.DISTINCT: "cardinality",
    AggType.COUNT: "value_count",
}


def _system_zone_key() -> str | None:
    """IANA name of the os timezone, from /etc/localtime or /etc/timezone."""
    localtime = Path(LOCALTIME_PATH)
    if localtime.is_symlink():
        target = str(localtime.resolve())
        if ZONEINFO_MARKER in target:
            key = target.split(ZONEINFO_MARKER, 1)[1]
            for prefix in ("posix/", "right/"):
                key = key.removeprefix(prefix)
            return key
    timezone_file = Path(TIMEZONE_PATH)
    if timezone_file.is_file():
        return timezone_file.read_text(encoding="utf-8").strip() or None
    return None


def _zone(key: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def local_timezone() -> ZoneInfo | None:
    """The process's timezone as an IANA zone.

    $TZ wins, then the os setting. None when neither names a zone we can
    load - bounds are then formatted in the libc local time, which still
    follows dst.
    """
    tz_name = os.environ.get("TZ", "").lstrip(":")
    if tz_name:
        zone = _zone(tz_name)
        if zone is not None:
            return zone
        logger.warning("invalid_tz_env", tz=tz_name)

    key = _system_zone_key()
    return _zone(key) if key else None


def _timezone_id(tz: tzinfo | None, at_millis: int | None = None) -> str:
    """ID for the time_zone field: the IANA key, else a numeric offset.

    the offset is taken at at_millis (or now), so it matches the bound it
    was used to format.
    """
    if isinstance(tz, ZoneInfo):
        return tz.key
    if at_millis is None:
        moment = datetime.now(timezone.utc)
    else:
        moment = datetime.fromtimestamp(at_millis / 1000, timezone.utc)
    offset = moment.astimezone(tz).utcoffset() or timedelta(0)

    minutes = int(offset.total_seconds() // 60)
    if minutes == 0:
        return "UTC"
    sign = "+" if minutes > 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def format_bound(epoch_millis: int, tz: tzinfo | None) -> str:
    """Epoch millis as a bound string. tz None means libc local time."""
    return datetime.fromtimestamp(epoch_millis / 1000, tz).strftime(BOUND_STRFTIME)


def terms_aggregation(field: str, size: int, missing: Any) -> dict[str, Any]:
    """Bucket by distinct values of a field.

    missing is the bucket key used for documents without the field.
    """
    return {"terms": {"field": field, "size": size, "missing": missing}}


def date_hist_aggregation(
    field: str,
    interval: str,
    min_doc_count: int = 0,
    min: int | None = None,
    max: int | None = None,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """Bucket by a fixed time interval.

    min/max are epoch millis and end up in extended_bounds as local time
    strings. the timezone used for that is written into the clause, so the
    bounds only mean the same thing elsewhere if the same tz is passed in.
    defaults to the process's timezone.
    """
    if tz is None:
        tz = local_timezone()
    tz_id = _timezone_id(tz, min if min is not None else max)

    extended_bounds: dict[str, str] = {}
    if min is not None:
        extended_bounds["min"] = format_bound(min, tz)
    if max is not None:
        extended_bounds["max"] = format_bound(max, tz)

    return {
        "date_histogram": {
            "field": field,
            "format": BOUND_FORMAT,
            "time_zone": tz_id,
            "interval": interval,
            "min_doc_count": min_doc_count,
            "extended_bounds": extended_bounds,
        }
    }


# --- query clauses ---


def term_query(field: str, value: Any) -> dict[str, Any]:
    return {"term": {field: value}}


def terms_query(field: str, values: list[Any]) -> dict[str, Any]:
    return {"terms": {field: list(values)}}


def null_query(field: str, is_null: bool) -> dict[str, Any]:
    """Match documents where the field is absent (is_null) or present."""
    return bool_filter("must_not" if is_null else "must", {"exists": {"field": field}})


def range_query(
    field: str,
    gt: Any = None,
    lt: Any = None,
    include_lower: bool = False,
    include_upper: bool = False,
) -> dict[str, Any]:
    content: dict[str, Any] = {}
    if gt is not None:
        content["gte" if include_lower else "gt"] = gt
    if lt is not None:
        content["lte" if include_upper else "lt"] = lt
    return {"range": {field: content}}


def bool_filter(bool_type: str, clauses: dict[str, Any] | list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap clauses in a bool query. bool_type: must, must_not, filter, should."""
    return {"bool": {bool_type: clauses}}


class DocumentQueryCompiler:
    """Compiles AggConfig requests into a search body.

    dimensions nest as dim_0 -> dim_1 -> ... and the innermost level holds
    one metric aggregation per value, named value_0, value_1, ... the
    provider relies on these names when flattening the response.
    """

    def __init__(
        self,
        terms_size: int = 1000,
        missing: str = NULL_STRING,
        tz: tzinfo | None = None,
    ) -> None:
        self.terms_size = terms_size
        self.missing = missing
        self.tz = tz

    def compile(self, config: AggConfig) -> dict[str, Any]:
        body: dict[str, Any] = {"size": 0}

        query = self.compile_filter(config)
        if query is not None:
            body["query"] = query

        aggs = self._metric_aggs(config.values)
        for i in reversed(range(len(config.dimensions))):
            bucket = self._bucket_agg(config, config.dimensions[i])
            if aggs:
                bucket["aggs"] = aggs
            aggs = {f"{DIM_AGG_PREFIX}{i}": bucket}

        if aggs:
            body["aggs"] = aggs
        return body

    def compile_dim_values(self, column_name: str, config: AggConfig | None = None) -> dict[str, Any]:
        """Body for the distinct values of one field, its own filter left out."""
        body: dict[str, Any] = {"size": 0}
        if config is not None:
            nodes = [
                n
                for n in config.filter_nodes()
                if not (isinstance(n, DimensionConfig) and n.column_name == column_name)
            ]
            clauses = self._filter_clauses(nodes)
            if clauses:
                body["query"] = bool_filter("filter", clauses)
        body["aggs"] = {
            f"{DIM_AGG_PREFIX}0": terms_aggregation(column_name, self.terms_size, self.missing)
        }
        return body

    def compile_filter(self, config: AggConfig) -> dict[str, Any] | None:
        clauses = self._filter_clauses(config.filter_nodes())
        if not clauses:
            return None
        return bool_filter("filter", clauses)

    def _bucket_agg(self, config: AggConfig, dim: DimensionConfig) -> dict[str, Any]:
        tr = config.time_range
        if tr is not None and tr.field == dim.column_name:
            return date_hist_aggregation(
                dim.column_name, tr.interval, tr.min_doc_count, tr.min, tr.max, self.tz
            )
        return terms_aggregation(dim.column_name, self.terms_size, self.missing)

    def _metric_aggs(self, values: list[ValueConfig]) -> dict[str, Any]:
        return {
            f"{VALUE_AGG_PREFIX}{i}": {METRIC_AGGS[v.agg]: {"field": v.column}}
            for i, v in enumerate(values)
        }

    def _filter_clauses(self, nodes: list[DimensionConfig | ConfigGroup]) -> list[dict[str, Any]]:
        clauses = []
        for node in nodes:
            clause = self._node_to_clause(node)
            if clause is not None:
                clauses.append(clause)
        return clauses

    def _node_to_clause(self, node: DimensionConfig | ConfigGroup) -> dict[str, Any] | None:
        if isinstance(node, DimensionConfig):
            return self._filter_clause(node)

        children = [c for c in node.iter_children() if isinstance(c, (DimensionConfig, ConfigGroup))]
        clauses = self._filter_clauses(children)
        if not clauses:
            return None
        return bool_filter("should" if node.type == "OR" else "filter", clauses)

    def _filter_clause(self, config: DimensionConfig) -> dict[str, Any] | None:
        if not config.values or config.filter_type is None:
            return None

        config = expand_filter_values(config)
        field = config.column_name
        ft = config.filter_type
        values = config.values
        non_null = [v for v in values if v != NULL_STRING]
        has_null = len(non_null) != len(values)

        if ft in ("=", "eq"):
            clauses = []
            if non_null:
                clauses.append(terms_query(field, non_null))
            if has_null:
                clauses.append(null_query(field, True))
            return clauses[0] if len(clauses) == 1 else bool_filter("should", clauses)
        if ft in ("≠", "ne"):
            clauses = []
            if non_null:
                clauses.append(bool_filter("must_not", terms_query(field, non_null)))
            if has_null:
                clauses.append(null_query(field, False))
            return clauses[0] if len(clauses) == 1 else bool_filter("filter", clauses)

        v0 = values[0]
        v1 = values[1] if len(values) > 1 else None
        if ft == ">":
            return range_query(field, gt=v0)
        if ft == "<":
            return range_query(field, lt=v0)
        if ft == "≥":
            return range_query(field, gt=v0, include_lower=True)
        if ft == "≤":
            return range_query(field, lt=v0, include_upper=True)
        if ft in ("(a,b]", "[a,b)", "(a,b)", "[a,b]"):
            return range_query(
                field, gt=v0, lt=v1, include_lower=ft[0] == "[", include_upper=ft[-1] == "]"
            )

        logger.warning("unknown_filter_type", column=field, filter_type=ft)
        return None
