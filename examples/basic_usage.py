"""Basic usage example for AggForge."""

from aggforge import AggConfig, AggStore, DimensionConfig, ValueConfig
from aggforge.compiler.aggregation_builder import DocumentQueryCompiler
from aggforge.executor.duckdb_executor import DuckDBExecutor
from aggforge.models.config import ConfigGroup, TimeRange
from aggforge.models.page import PageQuery
from aggforge.providers.duckdb_provider import DuckDBDataProvider

ORDERS = [
    (1, 101, 100.00, "completed", "US", "2024-01-15"),
    (2, 102, 150.00, "completed", "UK", "2024-01-16"),
    (3, 101, 200.00, "pending", "US", "2024-01-17"),
    (4, 103, 75.00, "completed", "US", "2024-01-18"),
    (5, 104, 300.00, "cancelled", "DE", "2024-01-19"),
    (6, 105, 125.00, "completed", "US", "2024-02-01"),
    (7, 102, 175.00, "completed", "UK", "2024-02-15"),
    (8, 106, 250.00, "completed", "US", "2024-02-20"),
    (9, 107, 50.00, "pending", "FR", "2024-03-01"),
    (10, 108, 400.00, "completed", None, "2024-03-15"),
]


def print_result(result) -> None:
    headers = [f"{c.agg_type}({c.name})" if c.agg_type else c.name for c in result.column_list]
    print("   " + " | ".join(headers))
    for row in result.data:
        print("   " + " | ".join(row))


def main():
    """Demonstrate AggForge capabilities."""
    executor = DuckDBExecutor()
    executor.create_table_from_data(
        "orders",
        [
            "order_id INTEGER",
            "customer_id INTEGER",
            "amount DECIMAL(10, 2)",
            "status VARCHAR",
            "country VARCHAR",
            "order_date DATE",
        ],
        ORDERS,
    )
    store = AggStore(DuckDBDataProvider(executor, "orders"))

    print("=" * 60)
    print("AggForge Demo")
    print("=" * 60)

    print("\n1. Columns:")
    print(f"   {', '.join(store.columns())}")

    # 2. revenue per country, the missing country shows up as #NULL
    print("\n2. Completed revenue by country:")
    config = AggConfig(
        dimensions=[DimensionConfig(column_name="country")],
        values=[
            ValueConfig(column="amount", agg_type="sum"),
            ValueConfig(column="customer_id", agg_type="distinct"),
        ],
        filters=[DimensionConfig(column_name="status", filter_type="=", values=["completed"])],
    )
    print_result(store.query(config))

    print("\n3. Generated SQL:")
    print(store.view_query(config))

    print("\n4. Big orders or cancelled ones, top 2 statuses:")
    either = ConfigGroup(type="OR").add(
        DimensionConfig(column_name="amount", filter_type=">", values=["200"])
    ).add(DimensionConfig(column_name="status", filter_type="=", values=["cancelled"]))
    config = AggConfig(
        dimensions=[DimensionConfig(column_name="status")],
        values=[ValueConfig(column="order_id", agg_type="count")],
        filters=[either],
    )
    print_result(store.query(config, PageQuery(page=1, limit=2, sidx="status", order="desc")))

    print("\n5. Values of status among US orders:")
    us_only = AggConfig(
        filters=[DimensionConfig(column_name="country", filter_type="=", values=["US"])]
    )
    print(f"   {store.dim_values('status', us_only)}")

    print("\n6. Same request as a search aggregation body:")
    monthly = AggConfig(
        dimensions=[DimensionConfig(column_name="order_date")],
        values=[ValueConfig(column="amount", agg_type="avg")],
        time_range=TimeRange(field="order_date", interval="1M"),
    )
    print(DocumentQueryCompiler().compile(monthly))

    store.close()


if __name__ == "__main__":
    main()
