"""SQL compiler for aggregation requests.

this is where a flat AggConfig turns into a SELECT statement. the dialect
decides how individual columns and aggregates look, this module decides how
they're stitched together.

the basic flow:
  1. render dimensions and aggregates through the dialect (group by is
     deduplicated, the select list isn't)
  2. render filter conditions - dimensions with values, then extra filters
  3. assemble select/from/where/group by/order by/limit
  4. format with sqlglot when the dialect has a sqlglot counterpart
"""

import sqlglot
import structlog
from sqlglot.errors import SqlglotError

from aggforge.compiler.dialect import SqlDialect
from aggforge.compiler.expressions import expand_filter_values
from aggforge.models.config import AggConfig, ConfigGroup, DimensionConfig, FilterType
from aggforge.models.page import PageQuery
from aggforge.models.result import NULL_STRING

logger = structlog.get_logger(__name__)

SUB_QUERY_ALIAS = "agg_view"

EQ_TYPES = {FilterType.EQ.value, FilterType.EQ_ALIAS.value}
NE_TYPES = {FilterType.NE.value, FilterType.NE_ALIAS.value}

# filter type -> (uses lower bound, uses upper bound, include lower, include upper)
# single-operand types take their operand from values[0] either way
RANGE_TYPES: dict[str, tuple[bool, bool, bool, bool]] = {
    FilterType.GT.value: (True, False, False, False),
    FilterType.LT.value: (False, True, False, False),
    FilterType.GTE.value: (True, False, True, False),
    FilterType.LTE.value: (False, True, False, True),
    FilterType.RANGE_LEFT_OPEN.value: (True, True, False, True),
    FilterType.RANGE_RIGHT_OPEN.value: (True, True, True, False),
    FilterType.RANGE_OPEN.value: (True, True, False, False),
    FilterType.RANGE_CLOSED.value: (True, True, True, True),
}


def separate_null(node: DimensionConfig | ConfigGroup) -> DimensionConfig | ConfigGroup:
    """Split a #NULL operand out of a multi-value (in)equality filter.

    `x IN ('a', NULL)` never matches the null rows, so
    `= [a, #NULL]` becomes `(x IN ('a') OR x IS NULL)` and
    `≠ [a, #NULL]` becomes `(x NOT IN ('a') AND x IS NOT NULL)`.
    """
    if not isinstance(node, DimensionConfig):
        return node
    is_eq = node.filter_type in EQ_TYPES
    if not (is_eq or node.filter_type in NE_TYPES):
        return node
    if len(node.values) < 2 or NULL_STRING not in node.values:
        return node

    without_null = node.model_copy(
        update={"values": [v for v in node.values if v != NULL_STRING]}
    )
    only_null = node.model_copy(update={"values": [NULL_STRING]})
    return ConfigGroup(type="OR" if is_eq else "AND", children=[without_null, only_null])


class SQLCompiler:
    """Compiles AggConfig requests into SQL for one table and dialect.

    stateless apart from its settings - safe to share between threads.
    column_types (upper-cased column name -> backend type name) only affects
    how filter literals are quoted.
    """

    def __init__(
        self,
        dialect: SqlDialect,
        table: str,
        has_sub_query: bool = False,
        column_types: dict[str, str] | None = None,
    ) -> None:
        self.dialect = dialect
        self.table = table
        self.has_sub_query = has_sub_query  # table is a full select, wrap it
        self.column_types = column_types or {}

    def compile(self, config: AggConfig, page: PageQuery | None = None) -> str:
        """Convert an AggConfig into SQL.

        select list order is dimensions then values, same as the result
        columns the providers build from the config.
        """
        dim_exprs = [self.dialect.render_group_expression(d) for d in config.dimensions]
        agg_exprs = [self.dialect.render_aggregate_expression(v) for v in config.values]

        select_exprs = dim_exprs + agg_exprs
        if not select_exprs:
            raise ValueError("Aggregation request has no dimensions and no values")

        where_conditions = self._build_where_conditions(config.filter_nodes())
        order_by_exprs = self._build_order_by_exprs(page)

        sql = self._assemble_query(
            select_exprs=select_exprs,
            where_conditions=where_conditions,
            group_by_exprs=self._dedupe(dim_exprs),
            order_by_exprs=order_by_exprs,
            page=page,
        )
        logger.debug(
            "sql_compiled",
            dialect=self.dialect.name,
            dimensions=len(config.dimensions),
            values=len(config.values),
        )
        return self._format_sql(sql)

    def compile_filter(self, config: AggConfig) -> str:
        """Just the WHERE clause for a request, empty string if unfiltered."""
        conditions = self._build_where_conditions(config.filter_nodes())
        if not conditions:
            return ""
        return "WHERE " + "\nAND ".join(conditions)

    def compile_dim_values(
        self, column_name: str, config: AggConfig | None = None, limit: int | None = None
    ) -> str:
        """SQL for the distinct values of one column.

        the column's own filter is left out - a value picker should offer
        everything the other filters allow, not just what's already picked.
        """
        col = self.dialect.quote_identifier(column_name)
        conditions: list[str] = []
        if config is not None:
            nodes = [
                n
                for n in config.filter_nodes()
                if not (isinstance(n, DimensionConfig) and n.column_name == column_name)
            ]
            conditions = self._build_where_conditions(nodes)

        sql = self._assemble_query(
            select_exprs=[col],
            where_conditions=conditions,
            group_by_exprs=[col],
            order_by_exprs=[col],
            page=None,
        )
        if limit:
            sql += f"\nLIMIT {limit}"
        return self._format_sql(sql)

    @staticmethod
    def _dedupe(exprs: list[str]) -> list[str]:
        """Each expression once, first occurrence wins.

        only used for GROUP BY - the select list keeps one cell per
        dimension so rows line up with the result columns.
        """
        unique: list[str] = []
        for expr in exprs:
            if expr not in unique:
                unique.append(expr)
        return unique

    def _build_where_conditions(self, nodes: list[DimensionConfig | ConfigGroup]) -> list[str]:
        conditions = []
        for node in nodes:
            cond = self._node_to_sql(separate_null(node))
            if cond is not None:
                conditions.append(cond)
        return conditions

    def _node_to_sql(self, node: DimensionConfig | ConfigGroup) -> str | None:
        if isinstance(node, DimensionConfig):
            return self._filter_condition(node)

        parts = []
        for child in node.iter_children():
            # value leaves inside a filter group carry no condition
            if isinstance(child, (DimensionConfig, ConfigGroup)):
                cond = self._node_to_sql(separate_null(child))
                if cond is not None:
                    parts.append(cond)
        if not parts:
            return None
        return "(" + f" {node.type or 'AND'} ".join(parts) + ")"

    def _filter_condition(self, config: DimensionConfig) -> str | None:
        """Render one dimension filter, None when it doesn't filter anything."""
        if not config.values or config.filter_type is None:
            return None

        config = expand_filter_values(config)
        field = self.dialect.render_group_expression(config)
        filter_type = config.filter_type

        if config.values[0] == NULL_STRING:
            if filter_type in EQ_TYPES:
                return f"{field} IS NULL"
            if filter_type in NE_TYPES:
                return f"{field} IS NOT NULL"

        if filter_type in EQ_TYPES:
            return f"{field} IN ({self._value_list(config)})"
        if filter_type in NE_TYPES:
            return f"{field} NOT IN ({self._value_list(config)})"

        if filter_type in RANGE_TYPES:
            has_lower, has_upper, include_lower, include_upper = RANGE_TYPES[filter_type]
            v0 = self.dialect.render_literal(config, 0, self.column_types)
            if has_lower and has_upper:
                # a missing upper operand leaves just the lower bound
                v1 = (
                    self.dialect.render_literal(config, 1, self.column_types)
                    if len(config.values) > 1
                    else None
                )
                return self._range_condition(field, v0, v1, include_lower, include_upper)
            if has_lower:
                return self._range_condition(field, v0, None, include_lower, include_upper)
            return self._range_condition(field, None, v0, include_lower, include_upper)

        logger.warning(
            "unknown_filter_type", column=config.column_name, filter_type=filter_type
        )
        return None

    def _value_list(self, config: DimensionConfig) -> str:
        return ", ".join(
            self.dialect.render_literal(config, i, self.column_types)
            for i in range(len(config.values))
        )

    def _range_condition(
        self,
        field: str,
        lower: str | None,
        upper: str | None,
        include_lower: bool,
        include_upper: bool,
    ) -> str:
        parts = []
        if lower is not None:
            parts.append(f"{field} {'>=' if include_lower else '>'} {lower}")
        if upper is not None:
            parts.append(f"{field} {'<=' if include_upper else '<'} {upper}")
        return "(" + " AND ".join(parts) + ")"

    def _build_order_by_exprs(self, page: PageQuery | None) -> list[str]:
        # sidx/order were already scrubbed by PageQuery
        if page is None or not page.sidx:
            return []
        expr = self.dialect.quote_identifier(page.sidx)
        if page.order:
            expr += f" {page.order.upper()}"
        return [expr]

    def _from_clause(self) -> str:
        if self.has_sub_query:
            return f"(\n{self.table}\n) {SUB_QUERY_ALIAS}"
        return self.table

    def _assemble_query(
        self,
        select_exprs: list[str],
        where_conditions: list[str],
        group_by_exprs: list[str],
        order_by_exprs: list[str],
        page: PageQuery | None,
    ) -> str:
        """Assemble the final SQL query from rendered clauses."""
        parts = ["SELECT\n  " + ",\n  ".join(select_exprs)]
        parts.append(f"FROM {self._from_clause()}")

        if where_conditions:
            parts.append("WHERE " + "\nAND ".join(where_conditions))

        if group_by_exprs:
            parts.append(f"GROUP BY {', '.join(group_by_exprs)}")

        if order_by_exprs:
            parts.append(f"ORDER BY {', '.join(order_by_exprs)}")

        if page is not None:
            parts.append(f"LIMIT {page.limit} OFFSET {page.offset}")

        return "\n".join(parts)

    def _format_sql(self, sql: str) -> str:
        """Pretty print with sqlglot.

        dialects without a sqlglot counterpart (h2's udfs and backticks) are
        returned as assembled. a parse failure also falls back to the raw text
        so the user at least has something to debug.
        """
        if self.dialect.sqlglot_dialect is None:
            return sql
        try:
            parsed = sqlglot.parse_one(sql, dialect=self.dialect.sqlglot_dialect)
            return parsed.sql(dialect=self.dialect.sqlglot_dialect, pretty=True)
        except SqlglotError:
            logger.warning("sql_format_failed", dialect=self.dialect.name)
            return sql
