"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings, read from ``PY_VORONOI_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="PY_VORONOI_", env_file=".env", extra="ignore")

    # Construction
    epsilon: float = Field(
        default=1e-9, gt=0, description="Relative tolerance, scaled by the larger side of the bounds"
    )
    validate_output: bool = Field(
        default=True, description="Check DCEL invariants on every finished diagram"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log renderer: json or console")


settings = Settings()
