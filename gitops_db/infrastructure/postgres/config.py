#gitops_db\infrastructure\postgres\config.py

from typing import Any, Dict, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class DatabaseSettings(BaseSettings):
    """
    Resolved connection parameters.

    Outer tooling instantiates this (from POSTGRES_* environment variables
    or `.env` when called with no arguments); the query layer only consumes it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Required
    postgres_user: str
    postgres_password: SecretStr
    postgres_host: str
    postgres_db: str
    postgres_port: int = 5432

    # Per-connection session settings
    connect_timeout: int = 10
    statement_timeout_ms: Optional[int] = None
    application_name: str = "gitops-db"

    # Connection pool
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 3600

    echo_sql: bool = False

    @property
    def database_url(self) -> str:
        url = URL.create(
            "postgresql",
            username=self.postgres_user,
            password=self.postgres_password.get_secret_value(),
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db,
        )
        return url.render_as_string(hide_password=False)

    def connect_args(self) -> Dict[str, Any]:
        """libpq keyword arguments for every new connection."""
        args: Dict[str, Any] = {
            "connect_timeout": self.connect_timeout,
            "application_name": self.application_name,
        }
        if self.statement_timeout_ms:
            args["options"] = f"-c statement_timeout={self.statement_timeout_ms}"
        return args
