"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class LedgerConfig(BaseSettings):
    """Interest ledger configuration"""

    # Storage configuration
    database_url: str = "memory://"  # memory:// or sqlite:///path/to/ledger.db

    # Identity configuration
    ledger_address: str = "interest-ledger"
    custodian_address: str = "custodian"
    rate_administrator: str = "admin"
    supply_controllers: List[str] = []  # Custodian is always granted on bootstrap

    # Interest configuration
    initial_annual_rate: str = "0.05"  # Decimal string, 5% simple per year

    # Asset vault configuration
    opening_asset_balances: Dict[str, int] = {}  # Credited once, when the vault book is created

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
