"""Pydantic models for AggForge."""

from aggforge.models.config import (
    AggConfig,
    AggType,
    ConfigGroup,
    DimensionConfig,
    FilterType,
    TimeRange,
    ValueConfig,
    describe,
    reduce_tree,
    render_tree,
)
from aggforge.models.page import PageQuery, Pagination
from aggforge.models.result import NULL_STRING, AggregateResult, ColumnIndex

__all__ = [
    "NULL_STRING",
    "AggConfig",
    "AggType",
    "AggregateResult",
    "ColumnIndex",
    "ConfigGroup",
    "DimensionConfig",
    "FilterType",
    "PageQuery",
    "Pagination",
    "TimeRange",
    "ValueConfig",
    "describe",
    "reduce_tree",
    "render_tree",
]
