"""DuckDB query executor for AggForge.

duckdb is the relational backend we ship with - embedded, fast, and happy to
read csv/parquet directly. the in-memory mode is great for tests and one-off
pivots over a file.
"""

import time
from pathlib import Path
from typing import Any

import duckdb
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class ExecutionResult(BaseModel):
    """Raw result of one statement, before any shaping."""

    sql: str
    columns: list[str]
    rows: list[tuple[Any, ...]]
    execution_time_ms: float

    @property
    def row_count(self) -> int:
        return len(self.rows)


class DuckDBExecutor:
    """Execute queries against DuckDB.

    thin wrapper that handles connection management and keeps the
    duckdb-specific bits out of the providers.
    """

    def __init__(self, database_path: str | None = None) -> None:
        """Initialize DuckDB connection.

        Args:
            database_path: Path to DuckDB file, or None for in-memory.
        """
        self.database_path = database_path
        self._conn: duckdb.DuckDBPyConnection | None = None  # lazy init

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._conn is None:
            self._conn = duckdb.connect(self.database_path or ":memory:")
        return self._conn

    def execute(self, sql: str) -> ExecutionResult:
        """Execute SQL and return columns plus raw rows.

        times the execution - slow aggregations are the first thing people
        ask about.
        """
        start = time.perf_counter()

        result = self.conn.execute(sql)
        columns = [desc[0] for desc in result.description] if result.description else []
        rows = result.fetchall()

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.debug("query_executed", rows=len(rows), execution_time_ms=elapsed_ms)

        return ExecutionResult(sql=sql, columns=columns, rows=rows, execution_time_ms=elapsed_ms)

    def execute_raw(self, sql: str) -> list[tuple[Any, ...]]:
        """Execute SQL and return raw tuples."""
        return self.conn.execute(sql).fetchall()

    def load_parquet(self, table_name: str, path: str | Path) -> None:
        """Load a Parquet file as a table (replacing any existing one)."""
        path = Path(path)
        self.conn.execute(f"""
            CREATE OR REPLACE TABLE {table_name} AS
            SELECT * FROM read_parquet('{path}')
        """)

    def load_csv(self, table_name: str, path: str | Path) -> None:
        """Load a CSV file as a table.

        read_csv_auto sniffs delimiters and types, works well in practice.
        """
        path = Path(path)
        self.conn.execute(f"""
            CREATE OR REPLACE TABLE {table_name} AS
            SELECT * FROM read_csv_auto('{path}')
        """)

    def create_table_from_data(
        self, table_name: str, columns: list[str], data: list[tuple[Any, ...]]
    ) -> None:
        """Create a table from in-memory rows. column entries are "name TYPE"."""
        if not data:
            raise ValueError("Cannot create table from empty data")

        placeholders = ", ".join(["?"] * len(columns))
        col_defs = ", ".join(columns)

        self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} ({col_defs})")
        self.conn.executemany(
            f"INSERT INTO {table_name} VALUES ({placeholders})",
            data,
        )

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        )
        row = result.fetchone()
        return row is not None and row[0] > 0

    def get_table_schema(self, table_name: str) -> list[tuple[str, str]]:
        """Get column names and types for a table."""
        result = self.conn.execute(f"DESCRIBE {table_name}")
        return [(row[0], row[1]) for row in result.fetchall()]

    def get_query_schema(self, sql: str) -> list[tuple[str, str]]:
        """Get column names and types a SELECT would produce, without running it."""
        result = self.conn.execute(f"DESCRIBE {sql}")
        return [(row[0], row[1]) for row in result.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "DuckDBExecutor":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
