import os
from typing import Optional

from pydantic_settings import BaseSettings  # Configuration management


class Settings(BaseSettings):
    """Application settings."""

    service_name: str = "inventory-service"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    postgres_user: str = os.getenv("POSTGRES_USER", "postgres")
    postgres_password: str = os.getenv("POSTGRES_PASSWORD", "postgres")
    postgres_host: str = os.getenv("POSTGRES_HOST", "localhost")
    postgres_port: str = os.getenv("POSTGRES_PORT", "5432")
    postgres_db: str = os.getenv("POSTGRES_DB", "inventory")
    database_url_override: Optional[str] = os.getenv("DATABASE_URL")
    db_connect_timeout: int = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))
    db_statement_timeout_ms: int = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "10"))

    # Kafka
    kafka_enabled: bool = os.getenv("KAFKA_ENABLED", "true").lower() == "true"
    kafka_bootstrap_servers: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    kafka_replication_factor: int = int(os.getenv("KAFKA_REPLICATION_FACTOR", "1"))

    # Ledger defaults
    default_reorder_point: int = int(os.getenv("DEFAULT_REORDER_POINT", "10"))
    default_max_stock: int = int(os.getenv("DEFAULT_MAX_STOCK", "1000"))
    max_update_retries: int = int(os.getenv("MAX_UPDATE_RETRIES", "3"))

    seed_on_startup: bool = os.getenv("SEED_ON_STARTUP", "false").lower() == "true"
    inventory_service_port: int = int(os.getenv("INVENTORY_SERVICE_PORT", "8004"))

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
