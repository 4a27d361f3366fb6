"""Configuration management for the Token Compliance service.

Configuration is loaded from environment variables, one prefix per group
(APP_, SERVER_, DATABASE_, SECURITY_, OTEL_, COMPLIANCE_).
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

POSTGRESQL_PREFIX = "postgresql://"
ASYNCPG_DRIVER = "+asyncpg"
PSYCPG_DRIVER = "+psycopg"
ENGINE_OPTION_QUERY_KEYS = frozenset({"pool_size", "max_overflow", "pool_timeout", "pool_recycle"})

DEFAULT_CAPABILITY_MATRIX_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "capability_matrix.json"
)


def _strip_engine_query_params(url: str) -> str:
    """Strip SQLAlchemy engine options accidentally passed in DATABASE_URL query args."""
    if "?" not in url:
        return url

    parsed = urlsplit(url)
    if not parsed.query:
        return url

    filtered_query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in ENGINE_OPTION_QUERY_KEYS
    ]
    return urlunsplit(
        (
            parsed.scheme,
            parsed.netloc,
            parsed.path,
            urlencode(filtered_query, doseq=True),
            parsed.fragment,
        )
    )


def normalize_database_url(url: str) -> str:
    """Normalize a DB URL by stripping SQLAlchemy engine-only query params."""
    return _strip_engine_query_params(url.strip())


def to_asyncpg_url(url: str) -> str:
    """Return a SQLAlchemy URL compatible with the asyncpg dialect."""
    normalized = normalize_database_url(url)
    if normalized.startswith(f"postgresql{PSYCPG_DRIVER}://"):
        return normalized.replace(PSYCPG_DRIVER, ASYNCPG_DRIVER, 1)
    if normalized.startswith(POSTGRESQL_PREFIX) and ASYNCPG_DRIVER not in normalized:
        new_prefix = POSTGRESQL_PREFIX.removesuffix("://") + ASYNCPG_DRIVER + "://"
        return normalized.replace(POSTGRESQL_PREFIX, new_prefix, 1)
    return normalized


class AppEnvironment(StrEnum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseSettings):
    name: str = Field(default="token-compliance-service")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    log_level: LogLevel = Field(default=LogLevel.INFO)
    api_prefix: str = Field(default="/api/v1")

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.upper())


class ServerConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8010)
    workers: int = Field(default=4)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class DatabaseConfig(BaseSettings):
    url_app: str = Field(default="", alias="database_url_app")
    url_admin: str = Field(default="", alias="database_url_admin")

    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="token_compliance")
    user: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr(""))
    schema_name: str = Field(default="compliance")
    pool_size: int = Field(default=10)
    max_overflow: int = Field(default=10)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    echo: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        populate_by_name=True,
    )

    @field_validator("schema_name", mode="after")
    @classmethod
    def validate_schema_name(cls, v: str) -> str:
        # Interpolated into SQL text, so restrict to a plain identifier.
        if not v.isidentifier():
            raise ValueError(f"Invalid database schema name: {v!r}")
        return v

    @property
    def async_url(self) -> str:
        if self.url_app:
            return to_asyncpg_url(self.url_app)
        password = self.password.get_secret_value()
        return (
            f"postgresql{ASYNCPG_DRIVER}://{self.user}:{password}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    @property
    def admin_async_url(self) -> str:
        """URL for schema migrations; falls back to the application URL."""
        if self.url_admin:
            return to_asyncpg_url(self.url_admin)
        return self.async_url


class SecurityConfig(BaseSettings):
    cors_allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8000")
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "POST"])
    cors_allow_headers: list[str] = Field(
        default=["Authorization", "Content-Type", "X-Request-ID", "X-Requester-Id"]
    )
    max_request_size_bytes: int = Field(default=262_144)
    requester_header: str = Field(default="X-Requester-Id")

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    @field_validator("cors_allowed_origins", mode="after")
    @classmethod
    def validate_cors_allowed_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="token-compliance-service")
    otlp_endpoint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("exporter_otlp_endpoint", "otlp_endpoint"),
    )
    otlp_insecure: bool = Field(
        default=True,
        validation_alias=AliasChoices("exporter_otlp_insecure", "otlp_insecure"),
    )
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class ComplianceConfig(BaseSettings):
    """Compliance decision layer settings."""

    capability_matrix_path: Path = Field(default=DEFAULT_CAPABILITY_MATRIX_PATH)
    validator_version: str = Field(default="1.0.0")
    evidence_store_timeout_seconds: float = Field(default=5.0, gt=0)
    default_page_size: int = Field(default=20, ge=1, le=100)
    max_page_size: int = Field(default=100, ge=1, le=100)
    export_max_records: int = Field(default=10_000, ge=1)

    model_config = SettingsConfigDict(env_prefix="COMPLIANCE_")


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    compliance: ComplianceConfig = Field(default_factory=ComplianceConfig)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Settings:
        if self.app.env == AppEnvironment.PROD and self.observability.otlp_insecure:
            raise ValueError("OTLP insecure mode is not allowed in production")
        matrix_path = self.compliance.capability_matrix_path
        if self.app.env == AppEnvironment.PROD and not matrix_path.is_file():
            raise ValueError(
                f"Capability matrix file must exist in production: {matrix_path}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()
