"""Application settings and configuration.

This module defines all configuration options for the Atelier MES core.
Settings are loaded from environment variables with sensible defaults.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Every service takes explicit constructor arguments and falls back to the
    module-level ``settings`` instance when they are omitted.
    """

    # Application metadata
    app_name: str = Field(default="Atelier MES", alias="APP_NAME")

    # Database configuration for the activity log
    database_url: str = Field(default="sqlite:///./atelier.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Batch numbering: ANS{YYYYMMDD}{sequence}
    batch_prefix: str = Field(default="ANS", alias="BATCH_PREFIX")
    batch_sequence_width: int = Field(default=3, ge=1, le=9, alias="BATCH_SEQUENCE_WIDTH")
    plant_timezone: str = Field(default="UTC", alias="PLANT_TIMEZONE")

    # Production entry confirmation thresholds
    confirmation_ratio: Decimal = Field(
        default=Decimal("0.5"),
        gt=0,
        le=1,
        alias="CONFIRMATION_RATIO",
    )
    confirmation_min_qty: Decimal | None = Field(default=None, alias="CONFIRMATION_MIN_QTY")

    # Goods receipt routing
    accepted_warehouse: str = Field(default="03", alias="ACCEPTED_WAREHOUSE")
    reject_warehouse: str = Field(default="FRD", alias="REJECT_WAREHOUSE")

    # Sessions
    session_token_bytes: int = Field(default=24, ge=16, alias="SESSION_TOKEN_BYTES")

    # Multi-worker actions; 1 means sequential
    bulk_action_max_workers: int = Field(default=1, ge=1, alias="BULK_ACTION_MAX_WORKERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def batch_sequence_limit(self) -> int:
        """Return the highest sequence that fits in the configured width."""
        return 10**self.batch_sequence_width - 1


settings = Settings()
