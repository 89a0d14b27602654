"""Runtime configuration for the app, read from the environment at startup."""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parent.parent

if (ROOT_DIR / ".env").exists():
    load_dotenv(ROOT_DIR / ".env", override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore", populate_by_name=True)

    # DATABASE_URL wins; otherwise a MySQL URL is assembled from the DB_* parts
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_host: str = Field(default="localhost", alias="DB_HOST")
    db_user: str = Field(default="root", alias="DB_USER")
    db_password: str = Field(default="", alias="DB_PASSWORD")
    db_name: str = Field(default="masterdatabase", alias="DB_NAME")
    db_port: int = Field(default=3306, alias="DB_PORT")

    frontend_url: str = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    mirror_table: str = Field(default="users_login", alias="MIRROR_TABLE")

    mail_server: str = Field(default="smtp.gmail.com", alias="MAIL_SERVER")
    mail_port: int = Field(default=587, alias="MAIL_PORT")
    mail_username: str = Field(default="", alias="MAIL_USERNAME")
    mail_password: str = Field(default="", alias="MAIL_PASSWORD")
    mail_from: str = Field(default="no-reply@verifyvista.com", alias="MAIL_FROM")
    mail_from_name: str = Field(default="VerifyVista", alias="MAIL_FROM_NAME")
    mail_starttls: bool = Field(default=True, alias="MAIL_STARTTLS")
    mail_ssl_tls: bool = Field(default=False, alias="MAIL_SSL_TLS")

    search_url: str = Field(default="https://meilisearch.verifyvista.com", alias="SEARCH_URL")
    search_index: str = Field(default="sqldata", alias="SEARCH_INDEX")
    search_api_key: str = Field(default="", alias="SEARCH_API_KEY")
    search_timeout: float = Field(default=10.0, alias="SEARCH_TIMEOUT")

    order_amount: Decimal = Field(default=Decimal("299.00"), alias="ORDER_AMOUNT")
    # Echo raw driver errors to clients (kept on for parity with the old backend)
    expose_error_details: bool = Field(default=True, alias="EXPOSE_ERROR_DETAILS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.frontend_url.split(",") if origin.strip()]

    @property
    def public_url(self) -> str:
        """Base URL used when building links for emails."""
        return self.cors_origins[0].rstrip("/") if self.cors_origins else ""

    @property
    def mirror_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
