"""Main AggStore interface for AggForge.

the store owns one provider and is meant to be built once at startup and
passed to whatever needs it - there's no module level instance.
"""

from pathlib import Path
from typing import Any

from aggforge.compiler.dialect import get_dialect
from aggforge.executor.duckdb_executor import DuckDBExecutor
from aggforge.models.config import AggConfig
from aggforge.models.page import PageQuery
from aggforge.models.result import AggregateResult
from aggforge.parser.loader import load_request, parse_request
from aggforge.providers.base import DataProvider
from aggforge.providers.duckdb_provider import DuckDBDataProvider
from aggforge.settings import AggForgeSettings


class AggStore:
    """Facade over a DataProvider."""

    def __init__(self, provider: DataProvider) -> None:
        self.provider = provider

    @classmethod
    def from_settings(
        cls, settings: AggForgeSettings, executor: DuckDBExecutor | None = None
    ) -> "AggStore":
        """Build a duckdb-backed store from settings.

        Args:
            settings: Settings with at least `table` set.
            executor: Existing executor to reuse, otherwise one is opened on
                settings.database_path.
        """
        if not settings.table:
            raise ValueError("No table configured - set AGGFORGE_TABLE or pass --table")
        provider = DuckDBDataProvider(
            executor or DuckDBExecutor(settings.database_path),
            settings.table,
            dialect=get_dialect(settings.dialect),
            has_sub_query=settings.has_sub_query,
            dim_values_limit=settings.dim_values_limit,
        )
        return cls(provider)

    def query(self, config: AggConfig, page: PageQuery | None = None) -> AggregateResult:
        """Run an aggregation request, optionally one page of it."""
        return self.provider.query_agg_data(config, page)

    def query_request(self, request: dict[str, Any]) -> AggregateResult:
        """Run a request given as a parsed dict (e.g. a json body)."""
        config, page = parse_request(request)
        return self.query(config, page)

    def query_file(self, path: str | Path) -> AggregateResult:
        config, page = load_request(path)
        return self.query(config, page)

    def view_query(self, config: AggConfig) -> str:
        return self.provider.view_agg_data_query(config)

    def columns(self, reload: bool = False) -> list[str]:
        return self.provider.get_column(reload)

    def dim_values(self, column_name: str, config: AggConfig | None = None) -> list[str]:
        return self.provider.query_dim_vals(column_name, config)

    def close(self) -> None:
        """Close the underlying executor, if the provider has one."""
        executor = getattr(self.provider, "executor", None)
        if executor is not None:
            executor.close()

    def __enter__(self) -> "AggStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
