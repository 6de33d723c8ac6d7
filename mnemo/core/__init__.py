"""Mnemo core: configuration, logging and the LLM adapter."""

from mnemo.core.config import MnemoConfig, get_config, set_config, reset_config
from mnemo.core.logging import setup_logging

__all__ = [
    "MnemoConfig",
    "get_config",
    "set_config",
    "reset_config",
    "setup_logging",
]
