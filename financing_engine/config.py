"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Financing engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="FINANCING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "financing.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Business rules configuration
    balance_tolerance: str = "0.01"  # Rounding slack for the negative balance check
    max_amount: str = "999999999999.99"
    allow_account_overdraft: bool = False
    allow_future_payment_dates: bool = False

    @property
    def balance_tolerance_amount(self) -> Decimal:
        return Decimal(self.balance_tolerance)

    @property
    def max_amount_value(self) -> Decimal:
        return Decimal(self.max_amount)


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
