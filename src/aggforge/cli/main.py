"""CLI for AggForge."""

import csv
import io
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from aggforge.compiler.dialect import get_dialect
from aggforge.compiler.sql_builder import SQLCompiler
from aggforge.executor.duckdb_executor import DuckDBExecutor
from aggforge.logging_config import configure_logging
from aggforge.models.result import AggregateResult
from aggforge.parser.loader import load_request
from aggforge.settings import AggForgeSettings
from aggforge.store import AggStore

app = typer.Typer(
    name="agg",
    help="AggForge - aggregation query CLI",
    no_args_is_help=True,
)
console = Console()

DEFAULT_CSV_TABLE = "data"

DbOption = Annotated[str | None, typer.Option("--db", help="DuckDB database path")]
TableOption = Annotated[str | None, typer.Option("--table", "-t", help="Table to aggregate")]
CsvOption = Annotated[
    Path | None, typer.Option("--csv", help="Load a CSV file as the table first")
]
DialectOption = Annotated[
    str | None, typer.Option("--dialect", help="SQL dialect: ansi, h2, duckdb")
]


def get_store(
    db_path: str | None,
    table: str | None,
    csv_path: Path | None = None,
    dialect: str | None = None,
) -> AggStore:
    settings = AggForgeSettings()
    configure_logging(settings.log_level)

    overrides = {"database_path": db_path, "table": table, "dialect": dialect}
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    executor = DuckDBExecutor(settings.database_path)
    if csv_path is not None:
        table_name = settings.table or DEFAULT_CSV_TABLE
        executor.load_csv(table_name, csv_path)
        settings = settings.model_copy(update={"table": table_name})

    return AggStore.from_settings(settings, executor)


@app.command()
def columns(
    db_path: DbOption = None,
    table: TableOption = None,
    csv_path: CsvOption = None,
) -> None:
    """List the columns of the table."""
    try:
        store = get_store(db_path, table, csv_path)
        names = store.columns(reload=True)
    except Exception as e:
        console.print(f"[red]Error reading columns: {e}[/red]")
        raise typer.Exit(1)

    for name in names:
        console.print(name)


@app.command("dim-values")
def dim_values(
    column: Annotated[str, typer.Argument(help="Column to list values of")],
    request: Annotated[
        Path | None, typer.Option("--request", "-r", help="Request file whose filters apply")
    ] = None,
    db_path: DbOption = None,
    table: TableOption = None,
    csv_path: CsvOption = None,
) -> None:
    """List the distinct values of a column."""
    try:
        store = get_store(db_path, table, csv_path)
        config = load_request(request)[0] if request else None
        values = store.dim_values(column, config)
    except Exception as e:
        console.print(f"[red]Query error: {e}[/red]")
        raise typer.Exit(1)

    for value in values:
        console.print(value)


@app.command()
def query(
    request: Annotated[Path, typer.Argument(help="YAML request file")],
    db_path: DbOption = None,
    table: TableOption = None,
    csv_path: CsvOption = None,
    dialect: DialectOption = None,
    show_sql: Annotated[bool, typer.Option("--sql", "-s", help="Show generated SQL")] = False,
    output: Annotated[
        str, typer.Option("--output", "-o", help="Output format: table, json, csv")
    ] = "table",
) -> None:
    """Run an aggregation request."""
    try:
        store = get_store(db_path, table, csv_path, dialect)
        config, page = load_request(request)
        if show_sql:
            console.print(Syntax(store.view_query(config), "sql", theme="monokai"))
            console.print()
        result = store.query(config, page)
    except Exception as e:
        console.print(f"[red]Query error: {e}[/red]")
        raise typer.Exit(1)

    _output_result(result, output)


@app.command("show-sql")
def show_sql(
    request: Annotated[Path, typer.Argument(help="YAML request file")],
    table: Annotated[str, typer.Option("--table", "-t", help="Table name")] = "data",
    dialect: Annotated[str, typer.Option("--dialect", help="SQL dialect")] = "duckdb",
    sub_query: Annotated[
        bool, typer.Option("--sub-query", help="Treat --table as a SELECT to wrap")
    ] = False,
) -> None:
    """Show generated SQL without touching a database.

    no column types are known here, so every filter literal is quoted.
    """
    configure_logging(AggForgeSettings().log_level)
    try:
        config, page = load_request(request)
        compiler = SQLCompiler(get_dialect(dialect), table, has_sub_query=sub_query)
        sql = compiler.compile(config, page)
    except Exception as e:
        console.print(f"[red]Error generating SQL: {e}[/red]")
        raise typer.Exit(1)

    console.print(Syntax(sql, "sql", theme="monokai", line_numbers=True))


def _output_result(result: AggregateResult, output_format: str) -> None:
    """Output query result in the specified format."""
    headers = [f"{c.agg_type}({c.name})" if c.agg_type else c.name for c in result.column_list]

    if output_format == "json":
        # plain print - rich would wrap long lines and break the json
        print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    elif output_format == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(headers)
        writer.writerows(result.data)
        print(buf.getvalue(), end="")
    else:
        table = Table(title=f"Query Results ({result.row_count} rows)")
        for header in headers:
            table.add_column(header)
        for row in result.data:
            table.add_row(*row)
        console.print(table)


if __name__ == "__main__":
    app()
