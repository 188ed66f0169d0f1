"""SQL dialect strategies.

a dialect knows three things: how to quote an identifier, whether sum/avg
operands need a numeric cast, and which sqlglot dialect (if any) can pretty
print its output. everything else about sql assembly is shared.

dialects are plain values picked by name from DIALECTS - adding a backend
means adding an entry, not subclassing.
"""

import re
from dataclasses import dataclass

from aggforge.models.config import AggType, DimensionConfig, ValueConfig

# column types (as reported by the backend) whose literals need quoting.
# matched on prefix so VARCHAR(255), TIMESTAMP WITH TIME ZONE etc. all hit
QUOTED_TYPE_PREFIXES = (
    "VARCHAR",
    "CHAR",
    "NVARCHAR",
    "NCHAR",
    "TEXT",
    "STRING",
    "CLOB",
    "NCLOB",
    "LONGVARCHAR",
    "LONGNVARCHAR",
    "DATE",
    "TIME",
    "TIMESTAMP",
    "UUID",
)

NUMBER_RE = re.compile(r"-?\d+(\.\d+)?")

# only these get the numeric cast. max/min/count/distinct must see the raw
# column - casting would change ordering and distinctness for text columns
CAST_AGG_TYPES = frozenset({AggType.SUM, AggType.AVG})


@dataclass(frozen=True)
class SqlDialect:
    """Rendering rules for one relational backend."""

    name: str
    quote: str = ""  # identifier quote char, empty for bare identifiers
    numeric_cast: str | None = None  # template with one {} for the operand
    sqlglot_dialect: str | None = None  # None skips pretty printing

    def quote_identifier(self, identifier: str) -> str:
        if not self.quote:
            return identifier
        return f"{self.quote}{identifier}{self.quote}"

    def render_group_expression(self, config: DimensionConfig) -> str:
        """Column reference used in SELECT and GROUP BY."""
        return self.quote_identifier(config.column_name)

    def render_aggregate_expression(self, config: ValueConfig) -> str:
        """Full aggregate expression for a value column.

        unknown agg types fall through to COUNT - see ValueConfig.agg.
        """
        col = self.quote_identifier(config.column)
        agg = config.agg

        if agg in CAST_AGG_TYPES and self.numeric_cast:
            col = self.numeric_cast.format(col)

        if agg == AggType.SUM:
            return f"SUM({col})"
        if agg == AggType.AVG:
            return f"AVG({col})"
        if agg == AggType.MAX:
            return f"MAX({col})"
        if agg == AggType.MIN:
            return f"MIN({col})"
        if agg == AggType.DISTINCT:
            return f"COUNT(DISTINCT {col})"
        return f"COUNT({col})"

    def render_literal(
        self,
        config: DimensionConfig,
        index: int,
        column_types: dict[str, str] | None = None,
    ) -> str:
        """Render filter operand `index` of a dimension as a sql literal.

        numeric columns get bare literals as long as the operand actually
        parses as a number. everything else, including columns we have no type
        for, is quoted with embedded quotes doubled.
        """
        value = config.values[index]
        col_type = (column_types or {}).get(config.column_name.upper())

        if col_type is not None and not _is_quoted_type(col_type) and _is_number(value):
            return value

        escaped = value.replace("'", "''")
        return f"'{escaped}'"


def _is_quoted_type(col_type: str) -> bool:
    return col_type.upper().startswith(QUOTED_TYPE_PREFIXES)


def _is_number(value: str) -> bool:
    return NUMBER_RE.fullmatch(value.strip()) is not None


ANSI = SqlDialect(name="ansi")
# h2 keeps numbers in text columns for some sources, hence the udf
H2 = SqlDialect(name="h2", quote="`", numeric_cast="f_todouble({})")
DUCKDB = SqlDialect(
    name="duckdb",
    quote='"',
    numeric_cast="TRY_CAST({} AS DOUBLE)",
    sqlglot_dialect="duckdb",
)

DIALECTS: dict[str, SqlDialect] = {d.name: d for d in (ANSI, H2, DUCKDB)}


def get_dialect(name: str) -> SqlDialect:
    """Look up a dialect by name. raises KeyError for unknown names."""
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise KeyError(
            f"Unknown dialect: {name}. Available: {', '.join(sorted(DIALECTS))}"
        ) from None
