"""
flygate validation module.

This module provides configuration loading and schema enforcement.
"""

from flygate.errors import ConfigError
from flygate.validation.config import Config, FlyGateConfig

__all__ = ["Config", "ConfigError", "FlyGateConfig"]
