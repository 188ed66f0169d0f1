"""Runtime settings.

read from AGGFORGE_* environment variables or a .env file. cli options
override whatever is set here.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from aggforge.models.result import NULL_STRING


class AggForgeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AGGFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # relational backend
    dialect: str = "duckdb"
    database_path: str | None = None  # None means in-memory
    table: str | None = None
    has_sub_query: bool = False
    dim_values_limit: int = Field(default=1000, ge=1)

    # document store bucket defaults
    terms_size: int = Field(default=1000, ge=1)
    missing_value: str = NULL_STRING

    log_level: str = "WARNING"
