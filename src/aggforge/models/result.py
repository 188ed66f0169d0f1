"""Pydantic models for aggregate results.

every backend's result ends up in this one shape: a list of column
descriptors and a row-major matrix of strings. the field names are what the
ui reads, so treat them as a wire format.
"""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from aggforge.models.config import DimensionConfig, ValueConfig

# placeholder for sql NULL in dimension cells and filter operands
NULL_STRING = "#NULL"


class ColumnIndex(BaseModel):
    """Descriptor of one output column.

    agg_type is only set for value columns - that's how consumers tell
    dimensions and aggregates apart.
    """

    model_config = ConfigDict(frozen=True)

    index: int = 0
    agg_type: str | None = None
    name: str

    @classmethod
    def from_dimension_config(cls, config: DimensionConfig, index: int = 0) -> "ColumnIndex":
        return cls(index=index, name=config.column_name)

    @classmethod
    def from_value_config(cls, config: ValueConfig, index: int = 0) -> "ColumnIndex":
        return cls(index=index, name=config.column, agg_type=config.agg_type)


class AggregateResult(BaseModel):
    """Uniform tabular output of an aggregation query."""

    column_list: list[ColumnIndex] = Field(default_factory=list)
    data: list[list[str]] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_row_width(self) -> Self:
        width = len(self.column_list)
        for i, row in enumerate(self.data):
            if len(row) != width:
                raise ValueError(f"Row {i} has {len(row)} cells, expected {width}")
        return self

    @property
    def row_count(self) -> int:
        return len(self.data)

    def column_names(self) -> list[str]:
        return [c.name for c in self.column_list]

    def to_records(self) -> list[dict[str, str]]:
        """Rows as dicts keyed by column label.

        value columns are keyed as agg(column) so a dimension and an aggregate
        over the same column don't collide.
        """
        keys = [
            f"{c.agg_type}({c.name})" if c.agg_type else c.name for c in self.column_list
        ]
        return [dict(zip(keys, row)) for row in self.data]
