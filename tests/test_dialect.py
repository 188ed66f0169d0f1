"""Tests for SQL dialect strategies."""

import pytest

from aggforge.compiler.dialect import ANSI, DIALECTS, DUCKDB, H2, SqlDialect, get_dialect
from aggforge.models.config import DimensionConfig, ValueConfig

ALL_DIALECTS = list(DIALECTS.values())
CASTING_DIALECTS = [d for d in ALL_DIALECTS if d.numeric_cast]


class TestGroupExpression:
    def test_ansi_is_bare(self):
        assert ANSI.render_group_expression(DimensionConfig(column_name="country")) == "country"

    def test_h2_uses_backticks(self):
        assert H2.render_group_expression(DimensionConfig(column_name="country")) == "`country`"

    def test_duckdb_uses_double_quotes(self):
        assert DUCKDB.render_group_expression(DimensionConfig(column_name="country")) == '"country"'


class TestAggregateExpression:
    @pytest.mark.parametrize(
        "agg,expected",
        [
            ("sum", "SUM(amount)"),
            ("avg", "AVG(amount)"),
            ("max", "MAX(amount)"),
            ("min", "MIN(amount)"),
            ("distinct", "COUNT(DISTINCT amount)"),
            ("count", "COUNT(amount)"),
        ],
    )
    def test_ansi_templates(self, agg: str, expected: str):
        assert ANSI.render_aggregate_expression(ValueConfig(column="amount", agg_type=agg)) == expected

    @pytest.mark.parametrize("agg", ["sum", "avg"])
    @pytest.mark.parametrize("dialect", CASTING_DIALECTS, ids=lambda d: d.name)
    def test_sum_avg_get_numeric_cast(self, dialect: SqlDialect, agg: str):
        expr = dialect.render_aggregate_expression(ValueConfig(column="amount", agg_type=agg))
        quoted = dialect.quote_identifier("amount")
        assert dialect.numeric_cast.format(quoted) in expr

    @pytest.mark.parametrize("agg", ["max", "min", "distinct", "count", "median", "summ"])
    @pytest.mark.parametrize("dialect", CASTING_DIALECTS, ids=lambda d: d.name)
    def test_other_aggs_never_cast(self, dialect: SqlDialect, agg: str):
        expr = dialect.render_aggregate_expression(ValueConfig(column="amount", agg_type=agg))
        quoted = dialect.quote_identifier("amount")
        assert dialect.numeric_cast.format(quoted) not in expr
        assert f"({quoted})" in expr or f"(DISTINCT {quoted})" in expr

    def test_h2_exact(self):
        assert H2.render_aggregate_expression(ValueConfig(column="amount", agg_type="sum")) == (
            "SUM(f_todouble(`amount`))"
        )
        assert H2.render_aggregate_expression(ValueConfig(column="amount", agg_type="max")) == (
            "MAX(`amount`)"
        )

    @pytest.mark.parametrize("dialect", ALL_DIALECTS, ids=lambda d: d.name)
    @pytest.mark.parametrize("agg", ["", "SUM", "percentile", "count_distinct"])
    def test_unknown_agg_falls_back_to_count(self, dialect: SqlDialect, agg: str):
        expr = dialect.render_aggregate_expression(ValueConfig(column="amount", agg_type=agg))
        assert expr == f"COUNT({dialect.quote_identifier('amount')})"


class TestRenderLiteral:
    def test_unknown_type_is_quoted(self):
        dim = DimensionConfig(column_name="status", values=["completed"])
        assert ANSI.render_literal(dim, 0) == "'completed'"

    def test_numeric_type_is_bare(self):
        dim = DimensionConfig(column_name="amount", values=["100.5"])
        assert ANSI.render_literal(dim, 0, {"AMOUNT": "DECIMAL(10,2)"}) == "100.5"

    def test_numeric_type_with_non_number_is_quoted(self):
        dim = DimensionConfig(column_name="amount", values=["1 OR 1=1"])
        assert ANSI.render_literal(dim, 0, {"AMOUNT": "INTEGER"}) == "'1 OR 1=1'"

    @pytest.mark.parametrize("col_type", ["VARCHAR", "DATE", "TIMESTAMP WITH TIME ZONE", "varchar(20)"])
    def test_text_and_temporal_types_are_quoted(self, col_type: str):
        dim = DimensionConfig(column_name="col", values=["2024"])
        assert ANSI.render_literal(dim, 0, {"COL": col_type}) == "'2024'"

    def test_embedded_quote_is_doubled(self):
        dim = DimensionConfig(column_name="name", values=["O'Brien"])
        assert ANSI.render_literal(dim, 0) == "'O''Brien'"


class TestGetDialect:
    def test_lookup_is_case_insensitive(self):
        assert get_dialect("DuckDB") is DUCKDB

    def test_unknown_dialect(self):
        with pytest.raises(KeyError, match="Unknown dialect"):
            get_dialect("oracle")

    def test_custom_dialect_value(self):
        mysql = SqlDialect(name="mysql", quote="`", numeric_cast="CAST({} AS DECIMAL(38, 10))")
        expr = mysql.render_aggregate_expression(ValueConfig(column="x", agg_type="avg"))
        assert expr == "AVG(CAST(`x` AS DECIMAL(38, 10)))"
