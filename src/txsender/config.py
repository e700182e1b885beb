"""
Configuration management for the transaction sender.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatcherConfig(BaseSettings):
    """
    Configuration settings for the transaction sender.

    All settings can be configured via environment variables with the TXSENDER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TXSENDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Node settings
    rpc_url: str = Field(
        default="http://localhost:8545",
        description="JSON-RPC endpoint of the node"
    )

    # Keystore settings
    keystore_dir: str = Field(
        default="keystore",
        description="Directory holding encrypted JSON key files"
    )
    passphrase: Optional[str] = Field(
        default=None,
        description="Default passphrase used when none is given on the command line"
    )

    # Timing
    request_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Bound applied to every single network request"
    )
    receipt_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay between two receipt lookups while waiting for mining"
    )
    wait_mined_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for waiting on a receipt in single-send mode"
    )

    # Batch file settings
    text_delimiter: str = Field(
        default=",",
        min_length=1,
        max_length=1,
        description="Field delimiter of text batch files"
    )
    sheet: Optional[str] = Field(
        default=None,
        description="Worksheet name or zero-based index of spreadsheet batch files"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[DispatcherConfig] = None


def get_config() -> DispatcherConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = DispatcherConfig()
    return _config


def set_config(config: DispatcherConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
