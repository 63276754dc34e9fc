"""
Runtime settings, read from PAYMENTS_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Payments engine configuration"""

    model_config = SettingsConfigDict(env_prefix="PAYMENTS_")

    # Logging configuration
    log_level: str = "WARNING"

    # Processing configuration
    num_workers: int = Field(default=1, ge=1)  # 1 = sequential, in input order

    # Print processed/failed counts to stderr after the run
    report_stats: bool = True
