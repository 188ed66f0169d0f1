"""Tests for SQL compiler."""

from datetime import datetime, timedelta

import pytest

from aggforge.compiler import expressions
from aggforge.compiler.dialect import ANSI, DUCKDB, H2
from aggforge.compiler.sql_builder import SQLCompiler, separate_null
from aggforge.models.config import AggConfig, ConfigGroup, DimensionConfig, ValueConfig
from aggforge.models.page import PageQuery

NUMERIC_TYPES = {"AMOUNT": "DECIMAL(10,2)", "ORDER_ID": "INTEGER", "STATUS": "VARCHAR"}


def filter_dim(column: str, filter_type: str, *values: str) -> DimensionConfig:
    return DimensionConfig(column_name=column, filter_type=filter_type, values=list(values))


class TestSQLCompiler:
    def test_compile_dimensions_and_values(self):
        """Dimensions are selected first, then aggregates."""
        config = AggConfig(
            dimensions=[DimensionConfig(column_name="country")],
            values=[ValueConfig(column="amount", agg_type="sum")],
        )
        sql = SQLCompiler(ANSI, "orders").compile(config)
        assert sql == "SELECT\n  country,\n  SUM(amount)\nFROM orders\nGROUP BY country"

    def test_compile_values_only_has_no_group_by(self):
        config = AggConfig(values=[ValueConfig(column="order_id")])
        sql = SQLCompiler(ANSI, "orders").compile(config)
        assert sql == "SELECT\n  COUNT(order_id)\nFROM orders"

    def test_repeated_dimension_selected_per_column_grouped_once(self):
        """One select cell per dimension, but GROUP BY lists the column once."""
        config = AggConfig(
            dimensions=[DimensionConfig(column_name="country"), DimensionConfig(column_name="country")],
            values=[ValueConfig(column="amount", agg_type="max")],
        )
        sql = SQLCompiler(ANSI, "orders").compile(config)
        assert sql == (
            "SELECT\n  country,\n  country,\n  MAX(amount)\nFROM orders\nGROUP BY country"
        )

    def test_empty_request_raises(self):
        with pytest.raises(ValueError, match="no dimensions"):
            SQLCompiler(ANSI, "orders").compile(AggConfig())

    def test_dimension_with_values_filters(self):
        config = AggConfig(
            dimensions=[filter_dim("country", "=", "US", "UK")],
            values=[ValueConfig(column="amount", agg_type="sum")],
        )
        sql = SQLCompiler(ANSI, "orders").compile(config)
        assert "WHERE country IN ('US', 'UK')" in sql

    def test_extra_filters_after_dimension_filters(self):
        config = AggConfig(
            dimensions=[filter_dim("country", "≠", "DE")],
            values=[ValueConfig(column="amount", agg_type="sum")],
            filters=[filter_dim("status", "eq", "completed")],
        )
        sql = SQLCompiler(ANSI, "orders").compile(config)
        assert "WHERE country NOT IN ('DE')\nAND status IN ('completed')" in sql

    def test_sub_query_source(self):
        config = AggConfig(values=[ValueConfig(column="amount", agg_type="sum")])
        sql = SQLCompiler(ANSI, "SELECT * FROM orders", has_sub_query=True).compile(config)
        assert "FROM (\nSELECT * FROM orders\n) agg_view" in sql

    def test_page_adds_order_limit_offset(self):
        config = AggConfig(
            dimensions=[DimensionConfig(column_name="country")],
            values=[ValueConfig(column="amount", agg_type="sum")],
        )
        page = PageQuery(page=2, limit=5, sidx="Country", order="desc")
        sql = SQLCompiler(ANSI, "orders").compile(config, page)
        assert sql.endswith("ORDER BY country DESC\nLIMIT 5 OFFSET 5")

    def test_h2_output_not_reformatted(self):
        config = AggConfig(
            dimensions=[DimensionConfig(column_name="country")],
            values=[ValueConfig(column="amount", agg_type="avg")],
        )
        sql = SQLCompiler(H2, "orders").compile(config)
        assert "AVG(f_todouble(`amount`))" in sql
        assert "GROUP BY `country`" in sql


class TestFilterConditions:
    def compile_where(self, *nodes, column_types=None) -> str:
        compiler = SQLCompiler(ANSI, "orders", column_types=column_types)
        return compiler.compile_filter(AggConfig(filters=list(nodes)))

    @pytest.mark.parametrize(
        "filter_type,values,expected",
        [
            (">", ["100"], "(amount > 100)"),
            ("<", ["100"], "(amount < 100)"),
            ("≥", ["100"], "(amount >= 100)"),
            ("≤", ["100"], "(amount <= 100)"),
            ("(a,b]", ["100", "200"], "(amount > 100 AND amount <= 200)"),
            ("[a,b)", ["100", "200"], "(amount >= 100 AND amount < 200)"),
            ("(a,b)", ["100", "200"], "(amount > 100 AND amount < 200)"),
            ("[a,b]", ["100", "200"], "(amount >= 100 AND amount <= 200)"),
        ],
    )
    def test_ranges(self, filter_type: str, values: list[str], expected: str):
        where = self.compile_where(filter_dim("amount", filter_type, *values), column_types=NUMERIC_TYPES)
        assert where == f"WHERE {expected}"

    def test_range_on_text_column_quotes(self):
        where = self.compile_where(filter_dim("order_date", "≥", "2024-02-01"))
        assert where == "WHERE (order_date >= '2024-02-01')"

    @pytest.mark.parametrize(
        "filter_type,expected",
        [
            ("[a,b]", "(amount >= 100)"),
            ("(a,b]", "(amount > 100)"),
            ("[a,b)", "(amount >= 100)"),
            ("(a,b)", "(amount > 100)"),
        ],
    )
    def test_two_sided_range_missing_upper_bound(self, filter_type: str, expected: str):
        """A single operand keeps the lower bound."""
        where = self.compile_where(filter_dim("amount", filter_type, "100"), column_types=NUMERIC_TYPES)
        assert where == f"WHERE {expected}"

    def test_null_equality(self):
        assert self.compile_where(filter_dim("country", "=", "#NULL")) == "WHERE country IS NULL"
        assert self.compile_where(filter_dim("country", "≠", "#NULL")) == "WHERE country IS NOT NULL"

    def test_null_mixed_with_values_is_split(self):
        where = self.compile_where(filter_dim("country", "=", "US", "#NULL"))
        assert where == "WHERE (country IN ('US') OR country IS NULL)"

        where = self.compile_where(filter_dim("country", "≠", "US", "#NULL"))
        assert where == "WHERE (country NOT IN ('US') AND country IS NOT NULL)"

    def test_unknown_filter_type_is_ignored(self):
        assert self.compile_where(filter_dim("country", "like", "U%")) == ""

    def test_dimension_without_values_is_ignored(self):
        assert self.compile_where(DimensionConfig(column_name="country", filter_type="=")) == ""

    def test_composite_groups(self):
        group = ConfigGroup(
            type="OR",
            children=[
                filter_dim("country", "=", "US"),
                ConfigGroup(
                    type="AND",
                    children=[
                        filter_dim("status", "=", "pending"),
                        filter_dim("amount", ">", "100"),
                    ],
                ),
                ValueConfig(column="amount", agg_type="sum"),  # carries no condition
            ],
        )
        where = self.compile_where(group, column_types=NUMERIC_TYPES)
        assert where == (
            "WHERE (country IN ('US') OR (status IN ('pending') AND (amount > 100)))"
        )

    def test_empty_group_is_ignored(self):
        assert self.compile_where(ConfigGroup(type="AND")) == ""


class TestSeparateNull:
    def test_leaves_single_null_alone(self):
        dim = filter_dim("country", "=", "#NULL")
        assert separate_null(dim) is dim

    def test_leaves_ranges_alone(self):
        dim = filter_dim("amount", "[a,b]", "#NULL", "5")
        assert separate_null(dim) is dim

    def test_splits_and_does_not_mutate(self):
        dim = filter_dim("country", "=", "US", "#NULL", "UK")
        group = separate_null(dim)
        assert isinstance(group, ConfigGroup)
        assert group.type == "OR"
        assert group.children[0].values == ["US", "UK"]
        assert group.children[1].values == ["#NULL"]
        assert dim.values == ["US", "#NULL", "UK"]


class TestDimValues:
    def test_own_filter_is_excluded(self):
        config = AggConfig(
            dimensions=[filter_dim("country", "=", "US")],
            filters=[filter_dim("status", "=", "completed")],
        )
        sql = SQLCompiler(ANSI, "orders").compile_dim_values("country", config, limit=10)
        assert sql == (
            "SELECT\n  country\nFROM orders\nWHERE status IN ('completed')\n"
            "GROUP BY country\nORDER BY country\nLIMIT 10"
        )

    def test_without_config(self):
        sql = SQLCompiler(ANSI, "orders").compile_dim_values("status")
        assert "WHERE" not in sql
        assert "LIMIT" not in sql


class TestSQLCompilerFormat:
    def test_duckdb_sql_is_formatted(self):
        config = AggConfig(
            dimensions=[DimensionConfig(column_name="country")],
            values=[ValueConfig(column="amount", agg_type="sum")],
        )
        sql = SQLCompiler(DUCKDB, "orders").compile(config)
        assert "\n" in sql
        assert 'TRY_CAST("amount" AS DOUBLE)' in sql
        assert "GROUP BY" in sql.upper()

    def test_duckdb_max_has_no_cast(self):
        config = AggConfig(values=[ValueConfig(column="amount", agg_type="max")])
        sql = SQLCompiler(DUCKDB, "orders").compile(config)
        assert "CAST" not in sql.upper()
        assert 'MAX("amount")' in sql


class TestRelativeTimeOperands:
    def test_now_expression_expanded_before_rendering(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(expressions, "_now", lambda: datetime(2024, 3, 20, 10, 30))
        config = AggConfig(
            filters=[filter_dim("order_date", "[a,b)", "{now('D', -7, 'yyyy-MM-dd')}", "now(D, 0, yyyy-MM-dd)")]
        )
        where = SQLCompiler(ANSI, "orders").compile_filter(config)
        assert where == "WHERE (order_date >= '2024-03-13' AND order_date < '2024-03-20')"

    def test_timestamp_on_numeric_column_is_bare(self, monkeypatch: pytest.MonkeyPatch):
        now = datetime(2024, 3, 20, 10, 30)
        monkeypatch.setattr(expressions, "_now", lambda: now)
        config = AggConfig(filters=[filter_dim("ts", ">", "now(h, -1, timestamp)")])
        where = SQLCompiler(ANSI, "events", column_types={"TS": "BIGINT"}).compile_filter(config)
        expected = int((now - timedelta(hours=1)).timestamp() * 1000)
        assert where == f"WHERE (ts > {expected})"
