"""Centralized configuration management for applications built on AutoStar.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Caching**: Configuration is cached for performance

The binding core never consults the environment on its own. Only
``get_settings()`` reads it, and ``AutoStar.from_settings()`` maps the
resulting object onto explicit construction arguments.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autostar.core.constants import DEFAULT_API_TITLE, DEFAULT_API_VERSION


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Derived from the environment if unset.",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Context keys whose values are redacted in console logs",
    )


class ServerConfig(BaseModel):
    """A server entry advertised in the OpenAPI document."""

    url: str = Field(..., description="Server base URL")
    description: str | None = Field(default=None, description="Server description")


class DocsConfig(BaseModel):
    """OpenAPI document metadata."""

    title: str = Field(default=DEFAULT_API_TITLE, description="API title")
    description: str | None = Field(default=None, description="API description")
    version: str = Field(default=DEFAULT_API_VERSION, description="API version")
    contact_name: str | None = Field(default=None, description="Contact name")
    contact_url: str | None = Field(default=None, description="Contact URL")
    contact_email: str | None = Field(default=None, description="Contact email")
    license_name: str | None = Field(default=None, description="License name")
    license_url: str | None = Field(default=None, description="License URL")
    servers: list[ServerConfig] = Field(
        default_factory=list, description="Servers advertised in the document"
    )

    @field_validator(
        "description",
        "contact_name",
        "contact_url",
        "contact_email",
        "license_name",
        "license_url",
        mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


class Settings(BaseSettings):
    """Main settings class for an AutoStar application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(default="AutoStar", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # Server settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, description="API port")
    openapi_url: str | None = Field(
        default="/openapi.json", description="OpenAPI document URL"
    )
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")

    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    docs_config: DocsConfig = Field(
        default_factory=DocsConfig, description="OpenAPI document metadata"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = (
                "console" if self.environment == "development" else "json"
            )

    @field_validator("docs_url", "openapi_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
