"""
Mnemo Configuration Management

Centralized configuration with:
- Environment-based configuration
- Type-safe settings with Pydantic
- JSON config files
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Literal
from enum import Enum
import json

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels for Mnemo."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LLMProviderConfig(BaseModel):
    """Configuration for the name-extraction model."""
    provider: Literal["openai", "anthropic", "local", "mock"] = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.3
    timeout: float = 60.0
    max_retries: int = 3


class ConversationConfig(BaseModel):
    """Configuration for a conversation session."""
    buffer_max_size: int = 20
    name_check_interval: int = 10  # final utterances between extraction cycles
    min_name_confidence: Literal["high", "medium", "low"] = "low"

    @field_validator("buffer_max_size", "name_check_interval")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class StorageConfig(BaseModel):
    """Configuration for the identity store."""
    url: str = "file://./data"
    read_only: bool = False


class MonitoringConfig(BaseModel):
    """Configuration for logging."""
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "text"] = "json"


class MnemoConfig(BaseSettings):
    """
    Main Mnemo Configuration

    Loads configuration from environment variables and/or config files.
    Environment variables are prefixed with MNEMO_ (e.g., MNEMO_LLM__MODEL=gpt-4o).
    """

    instance_id: str = Field(default="mnemo-primary")

    llm: LLMProviderConfig = Field(default_factory=LLMProviderConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_prefix": "MNEMO_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @classmethod
    def from_file(cls, config_path: Path) -> "MnemoConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = json.load(f)

        return cls(**config_data)

    def to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the LLM API key from config or environment."""
        if self.llm.api_key:
            return self.llm.api_key

        env_keys = {
            "openai": "OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
        }

        env_var = env_keys.get(self.llm.provider)
        if env_var:
            return os.environ.get(env_var)

        return None


# Global configuration instance (lazy loaded)
_config: Optional[MnemoConfig] = None


def get_config() -> MnemoConfig:
    """Get the global Mnemo configuration instance."""
    global _config
    if _config is None:
        _config = MnemoConfig()
    return _config


def set_config(config: MnemoConfig) -> None:
    """Set the global Mnemo configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to default."""
    global _config
    _config = None
