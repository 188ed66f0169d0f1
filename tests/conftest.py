"""Pytest fixtures for AggForge tests."""

from collections.abc import Generator
from pathlib import Path

import pytest

from aggforge.executor.duckdb_executor import DuckDBExecutor
from aggforge.models.config import AggConfig, DimensionConfig, ValueConfig
from aggforge.providers.duckdb_provider import DuckDBDataProvider
from aggforge.store import AggStore

ORDERS_DDL = """
    CREATE TABLE orders (
        order_id INTEGER,
        customer_id INTEGER,
        amount DECIMAL(10, 2),
        status VARCHAR,
        country VARCHAR,
        order_date DATE
    )
"""


@pytest.fixture
def sample_orders_data() -> list[tuple]:
    """Sample orders data for testing. the last row has no country."""
    return [
        (1, 101, 100.00, "completed", "US", "2024-01-15"),
        (2, 102, 150.00, "completed", "UK", "2024-01-16"),
        (3, 101, 200.00, "pending", "US", "2024-01-17"),
        (4, 103, 75.00, "completed", "US", "2024-01-18"),
        (5, 104, 300.00, "cancelled", "DE", "2024-01-19"),
        (6, 105, 125.00, "completed", "US", "2024-02-01"),
        (7, 102, 175.00, "completed", "UK", "2024-02-15"),
        (8, 106, 250.00, "completed", "US", "2024-02-20"),
        (9, 107, 50.00, "pending", "FR", "2024-03-01"),
        (10, 108, 400.00, "completed", "US", "2024-03-15"),
        (11, 109, 20.00, "pending", None, "2024-03-20"),
    ]


@pytest.fixture
def db_with_data(sample_orders_data: list[tuple]) -> Generator[DuckDBExecutor, None, None]:
    """Create a DuckDB executor with sample data."""
    executor = DuckDBExecutor()
    executor.conn.execute(ORDERS_DDL)
    executor.conn.executemany(
        "INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?)",
        sample_orders_data,
    )
    yield executor
    executor.close()


@pytest.fixture
def provider(db_with_data: DuckDBExecutor) -> DuckDBDataProvider:
    return DuckDBDataProvider(db_with_data, "orders")


@pytest.fixture
def store(provider: DuckDBDataProvider) -> Generator[AggStore, None, None]:
    store = AggStore(provider)
    yield store
    store.close()


@pytest.fixture
def revenue_by_country() -> AggConfig:
    """Completed revenue and order count per country."""
    return AggConfig(
        dimensions=[DimensionConfig(column_name="country")],
        values=[
            ValueConfig(column="amount", agg_type="sum"),
            ValueConfig(column="order_id", agg_type="count"),
        ],
        filters=[DimensionConfig(column_name="status", filter_type="=", values=["completed"])],
    )


@pytest.fixture
def sample_request_yaml() -> str:
    return """
dimensions:
  - column_name: country
values:
  - column: amount
    agg_type: sum
  - column: customer_id
    agg_type: distinct
filters:
  - column_name: status
    filter_type: "="
    values: [completed]
"""


@pytest.fixture
def request_file(tmp_path: Path, sample_request_yaml: str) -> Path:
    path = tmp_path / "request.yaml"
    path.write_text(sample_request_yaml)
    return path


@pytest.fixture
def orders_csv(tmp_path: Path, sample_orders_data: list[tuple]) -> Path:
    """The sample orders as a CSV file, empty cell for the missing country."""
    lines = ["order_id,customer_id,amount,status,country,order_date"]
    for row in sample_orders_data:
        lines.append(",".join("" if v is None else str(v) for v in row))
    path = tmp_path / "orders.csv"
    path.write_text("\n".join(lines) + "\n")
    return path
