"""DuckDB-backed data provider."""

import structlog

from aggforge.compiler.dialect import DUCKDB, SqlDialect
from aggforge.compiler.sql_builder import SQLCompiler
from aggforge.executor.duckdb_executor import DuckDBExecutor
from aggforge.models.config import AggConfig
from aggforge.models.page import PageQuery
from aggforge.models.result import NULL_STRING, AggregateResult
from aggforge.providers.base import DataProvider, transform_to_agg_result

logger = structlog.get_logger(__name__)


class DuckDBDataProvider(DataProvider):
    """Aggregations over one DuckDB table or SELECT.

    `source` is a table name, or a full SELECT when has_sub_query is set -
    the select then gets wrapped as a subquery. the dialect defaults to
    duckdb's but any SqlDialect can be passed, e.g. to preview ansi sql.
    """

    def __init__(
        self,
        executor: DuckDBExecutor,
        source: str,
        dialect: SqlDialect = DUCKDB,
        has_sub_query: bool = False,
        dim_values_limit: int | None = 1000,
    ) -> None:
        super().__init__()
        self.executor = executor
        self.source = source
        self.dialect = dialect
        self.has_sub_query = has_sub_query
        self.dim_values_limit = dim_values_limit
        self._column_types: dict[str, str] = {}

    def discover_columns(self) -> list[str]:
        if self.has_sub_query:
            schema = self.executor.get_query_schema(self.source)
        else:
            schema = self.executor.get_table_schema(self.source)
        # literal quoting looks types up by upper-cased name
        self._column_types = {name.upper(): col_type for name, col_type in schema}
        return [name for name, _ in schema]

    def compiler(self) -> SQLCompiler:
        if not self._column_types:
            self.get_column()
        return SQLCompiler(
            self.dialect,
            self.source,
            has_sub_query=self.has_sub_query,
            column_types=self._column_types,
        )

    def query_dim_vals(self, column_name: str, config: AggConfig | None = None) -> list[str]:
        sql = self.compiler().compile_dim_values(column_name, config, self.dim_values_limit)
        rows = self.executor.execute_raw(sql)
        return [NULL_STRING if row[0] is None else str(row[0]) for row in rows]

    def query_agg_data(self, config: AggConfig, page: PageQuery | None = None) -> AggregateResult:
        sql = self.compiler().compile(config, page)
        result = self.executor.execute(sql)
        logger.info(
            "agg_query_executed",
            source=self.source if not self.has_sub_query else "<subquery>",
            rows=result.row_count,
            execution_time_ms=result.execution_time_ms,
        )
        return transform_to_agg_result(config, result.rows)

    def view_agg_data_query(self, config: AggConfig) -> str:
        return self.compiler().compile(config)
