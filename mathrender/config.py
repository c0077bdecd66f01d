"""
Configuration settings for the mathrender service.

This module handles environment variables, application settings,
render capabilities and configuration validation using Pydantic Settings.
"""

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings


class SpeechConfig(BaseModel):
    """Speech engine configuration, applied per request."""

    domain: str = "mathspeak"
    style: str = "default"
    locale: str = "en"
    speak_text: bool = True
    semantic: bool = False
    min_stree: bool = False
    enrich: bool = False

    class Config:
        frozen = True


class Capabilities(BaseModel):
    """
    Immutable map of enabled render features and tuning constants.

    Shared read-only by all concurrent requests.
    """

    svg: bool = True
    png: bool = True
    img: bool = True
    speech: bool = True
    texvcinfo: bool = True
    speech_on: bool = True
    no_check: bool = False
    svgo: bool = True
    dpi: int = 180
    speech_config: SpeechConfig = SpeechConfig()

    class Config:
        frozen = True


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden using environment variables
    with the same name (case-insensitive). Nested speech settings use
    a double underscore, e.g. ``SPEECH_CONFIG__SPEAK_TEXT=false``.
    """

    # Application settings
    APP_NAME: str = "mathrender"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 10044

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8080"]
    ALLOWED_HOSTS: list[str] = ["localhost", "127.0.0.1", "testserver"]

    # Logging settings
    LOG_LEVEL: str = "INFO"

    # Render capabilities
    SVG: bool = True
    PNG: bool = True
    IMG: bool = True
    SPEECH: bool = True
    TEXVCINFO: bool = True
    SPEECH_ON: bool = True
    NO_CHECK: bool = False
    SVGO: bool = True
    DPI: int = 180
    SPEECH_CONFIG: SpeechConfig = SpeechConfig()

    # External tools settings
    LATEX_PATH: str = "/usr/bin/latex"
    DVISVGM_PATH: str = "/usr/bin/dvisvgm"
    RSVG_CONVERT_PATH: str = "/usr/bin/rsvg-convert"
    TYPESET_TIMEOUT: int = 30
    RASTER_TIMEOUT: int = 30

    # Batch settings
    MAX_CONCURRENT_RENDERS: int = 8

    # Requests slower than this many seconds are logged as warnings
    SLOW_RENDER_THRESHOLD: float = 5.0

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        allowed_envs = ["development", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of {allowed_envs}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level setting."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()

    @field_validator("DPI", "MAX_CONCURRENT_RENDERS", "TYPESET_TIMEOUT", "RASTER_TIMEOUT")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate numeric tuning values."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    def capabilities(self) -> Capabilities:
        """
        Build the immutable capability map used by the render pipeline.

        Returns:
            Capabilities: Snapshot of the render switches
        """
        return Capabilities(
            svg=self.SVG,
            png=self.PNG,
            img=self.IMG,
            speech=self.SPEECH,
            texvcinfo=self.TEXVCINFO,
            speech_on=self.SPEECH_ON,
            no_check=self.NO_CHECK,
            svgo=self.SVGO,
            dpi=self.DPI,
            speech_config=self.SPEECH_CONFIG,
        )

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"
        case_sensitive = False


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get application settings.

    Returns:
        Settings: Application settings instance
    """
    return settings


# Note: Environment-specific configurations should be set via environment variables
# Example .env for a raster-less deployment:
#   ENVIRONMENT=production
#   DEBUG=false
#   PNG=false
#   SPEECH_CONFIG__ENRICH=true
