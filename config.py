# config.py
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from database import PoolConfig


class Settings(BaseSettings):
    """
    Application settings, read from the environment and an optional .env file.

    The PG_* values describe the store; DATABASE_URL, when set, replaces the
    host/port/credential target entirely.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pg_host: str = "localhost"
    pg_port: int = 5432
    pg_username: str = "admin"
    pg_password: str = "admin"
    pg_dbname: str = "expense_tracker"

    pg_max_conns: int = Field(default=10, ge=1)
    pg_min_conns: int = Field(default=2, ge=0)
    pg_max_conn_lifetime: int = Field(default=30 * 60, description="seconds")
    pg_max_conn_idle_time: int = Field(default=10 * 60, description="seconds")
    pg_health_check_period: int = Field(default=2 * 60, description="seconds")

    database_url: Optional[str] = None

    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: str = "http://localhost:3000"

    log_level: str = "INFO"
    log_dir: str = "logs"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def pool_config(self) -> PoolConfig:
        return PoolConfig(
            host=self.pg_host,
            port=self.pg_port,
            username=self.pg_username,
            password=self.pg_password,
            dbname=self.pg_dbname,
            max_conns=self.pg_max_conns,
            min_conns=self.pg_min_conns,
            max_conn_lifetime=self.pg_max_conn_lifetime,
            max_conn_idle_time=self.pg_max_conn_idle_time,
            health_check_period=self.pg_health_check_period,
            url=self.database_url,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
