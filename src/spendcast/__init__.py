"""SpendCast budget lifecycle and forecasting engine."""

from __future__ import annotations

from .config import BaseConfig, DevConfig, TestingConfig
from .errors import SpendCastError

__version__ = "0.1.0"

__all__ = ["BaseConfig", "DevConfig", "SpendCastError", "TestingConfig", "__version__"]
