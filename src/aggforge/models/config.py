"""Pydantic models for aggregation requests.

a request is described as a small tree of config nodes - dimensions, values
and groups - and then reduced to a flat AggConfig before any rendering happens.
the tree exists mostly for the ui (nested filter groups, print-outs), the
renderers only ever see the flat form.
"""

from enum import Enum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aggforge.errors import CapabilityNotImplementedError


class AggType(str, Enum):
    """Aggregate kinds every dialect knows how to render.

    ValueConfig keeps agg_type as a plain string so unknown spellings survive
    round trips - they just render as COUNT.
    """

    SUM = "sum"
    AVG = "avg"
    MAX = "max"
    MIN = "min"
    DISTINCT = "distinct"
    COUNT = "count"


class FilterType(str, Enum):
    """Filter operators understood by the sql and document compilers.

    the symbols are what the front end sends, eq/ne are aliases some older
    saved reports still carry.
    """

    EQ = "="
    EQ_ALIAS = "eq"
    NE = "≠"
    NE_ALIAS = "ne"
    GT = ">"
    LT = "<"
    GTE = "≥"
    LTE = "≤"
    # interval notation - bracket means inclusive
    RANGE_LEFT_OPEN = "(a,b]"
    RANGE_RIGHT_OPEN = "[a,b)"
    RANGE_OPEN = "(a,b)"
    RANGE_CLOSED = "[a,b]"


class DimensionConfig(BaseModel):
    """A grouping dimension, optionally carrying a filter.

    values are the filter operands - empty means the dimension only groups.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["dimension"] = "dimension"
    id: str | None = None
    column_name: str
    filter_type: str | None = None
    values: list[str] = Field(default_factory=list)
    custom: str | None = None  # backend specific hint, never interpreted here

    @field_validator("column_name")
    @classmethod
    def column_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("column_name must not be empty")
        return v

    @property
    def has_filter(self) -> bool:
        return bool(self.values) and self.filter_type is not None

    @property
    def label(self) -> str:
        return self.column_name


class ValueConfig(BaseModel):
    """A column combined with an aggregate function."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["value"] = "value"
    column: str
    agg_type: str = AggType.COUNT.value

    @field_validator("column")
    @classmethod
    def column_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("column must not be empty")
        return v

    @property
    def agg(self) -> AggType:
        """The aggregate this value renders as.

        anything we don't recognise is treated as count. this keeps rendering
        total but also hides typos like "summ" - see DESIGN.md.
        """
        try:
            return AggType(self.agg_type)
        except ValueError:
            return AggType.COUNT

    @property
    def label(self) -> str:
        return f"{self.agg_type}({self.column})"


class ConfigGroup(BaseModel):
    """A composite node holding other config nodes.

    type AND/OR turns the group into a composite filter. a group without a
    type is presentational only and gets flattened into its parent.
    """

    kind: Literal["group"] = "group"
    type: Literal["AND", "OR"] | None = None
    children: list["ConfigNode"] = Field(default_factory=list)

    def add(self, node: "ConfigNode") -> "ConfigGroup":
        self.children.append(node)
        return self

    def remove(self, node: "ConfigNode") -> None:
        """Remove a child node. raises ValueError if it isn't a child."""
        self.children.remove(node)

    def iter_children(self) -> Iterator["ConfigNode"]:
        return iter(self.children)


ConfigNode = Annotated[
    Union[DimensionConfig, ValueConfig, ConfigGroup],
    Field(discriminator="kind"),
]
ConfigGroup.model_rebuild()

FilterNode = Annotated[Union[DimensionConfig, ConfigGroup], Field(discriminator="kind")]


class TimeRange(BaseModel):
    """Time bucketing hints for document stores.

    only consumed by the date histogram renderer. bounds are epoch millis -
    that's what the ui date pickers hand us.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    interval: str  # passed through verbatim, e.g. "1d", "1h"
    min_doc_count: int = 0
    min: int | None = None
    max: int | None = None


class AggConfig(BaseModel):
    """A flat aggregation request.

    dimensions come out first in the result, then values - both in the
    order given here. that order is the contract the ui relies on.
    """

    model_config = ConfigDict(frozen=True)

    dimensions: list[DimensionConfig] = Field(default_factory=list)
    values: list[ValueConfig] = Field(default_factory=list)
    filters: list[FilterNode] = Field(default_factory=list)
    time_range: TimeRange | None = None

    def filter_nodes(self) -> list[DimensionConfig | ConfigGroup]:
        """All nodes that may contribute a filter condition.

        dimensions double as filters when they carry values, so they go first.
        """
        return [*self.dimensions, *self.filters]


def reduce_tree(root: ConfigGroup, time_range: TimeRange | None = None) -> AggConfig:
    """Reduce a config tree to a flat AggConfig.

    dimension leaves group, value leaves aggregate, AND/OR groups are kept
    whole as composite filters. untyped groups are walked recursively.
    """
    dimensions: list[DimensionConfig] = []
    values: list[ValueConfig] = []
    filters: list[DimensionConfig | ConfigGroup] = []

    def walk(group: ConfigGroup) -> None:
        for node in group.iter_children():
            if isinstance(node, DimensionConfig):
                dimensions.append(node)
            elif isinstance(node, ValueConfig):
                values.append(node)
            elif node.type is None:
                walk(node)
            else:
                filters.append(node)

    walk(root)
    return AggConfig(
        dimensions=dimensions, values=values, filters=filters, time_range=time_range
    )


def describe(node: DimensionConfig | ValueConfig | ConfigGroup) -> str:
    """Informational label for a config node.

    groups have no label of their own - asking for one is a programming error.
    """
    if isinstance(node, ConfigGroup):
        raise CapabilityNotImplementedError("config groups have no label")
    return node.label


def render_tree(node: DimensionConfig | ValueConfig | ConfigGroup, depth: int = 0) -> list[str]:
    """Indented text lines for a config tree, used by the cli."""
    indent = "  " * depth
    if isinstance(node, ConfigGroup):
        lines = [f"{indent}group[{node.type or '-'}]"]
        for child in node.iter_children():
            lines.extend(render_tree(child, depth + 1))
        return lines
    if isinstance(node, DimensionConfig) and node.has_filter:
        return [f"{indent}{node.label} {node.filter_type} {', '.join(node.values)}"]
    return [f"{indent}{node.label}"]
