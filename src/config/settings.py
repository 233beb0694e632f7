"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use HASHPLATE_ prefix (e.g., HASHPLATE_DEBUG_MODE=true).

Settings can also be loaded from a .env file in the project root.

These are process-wide knobs. Per-template options (delimiters, trimming,
include base path) are passed with each call as TemplateOptions.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use HASHPLATE_ prefix.

    Examples:
        HASHPLATE_TEMPLATE_ENCODING=latin-1
        HASHPLATE_DEBUG_MODE=true
    """

    model_config = SettingsConfigDict(
        env_prefix="HASHPLATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    template_encoding: str = Field(
        default="utf-8",
        description="Encoding used to read template and include files",
    )

    debug_mode: bool = Field(
        default=False,
        description="Log the generated program of every compiled template",
    )


# Singleton instance - import this in your code
appsettings = AppSettings()
