"""Base configuration class for exporter components.

Provides type-safe environment variable loading shared by the exporter's
configuration dataclasses.

Usage:
    from deployment_exporter.config.base_config import BaseExporterConfig

    @dataclass
    class MyConfig(BaseExporterConfig):
        _env_prefix: ClassVar[str] = "DEPLOYMENT_EXPORTER_MY"

        timeout_seconds: float = 30.0

        @classmethod
        def from_env(cls) -> "MyConfig":
            return cls(timeout_seconds=cls._get_env_float("TIMEOUT", 30.0))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Optional, TypeVar

T = TypeVar("T", bound="BaseExporterConfig")


@dataclass
class BaseExporterConfig:
    """Base configuration with environment variable helpers.

    Subclasses should:
    1. Override `_env_prefix` for their specific env var namespace
    2. Add their fields as dataclass fields
    3. Implement `from_env()` using the helper methods
    """

    # Default environment variable prefix (override in subclasses)
    _env_prefix: ClassVar[str] = "DEPLOYMENT_EXPORTER"

    # -------------------------------------------------------------------------
    # Environment Variable Helpers
    # -------------------------------------------------------------------------

    @classmethod
    def _make_env_key(cls, suffix: str) -> str:
        """Create full environment variable name from suffix.

        Args:
            suffix: The variable suffix (e.g., "NAMESPACE")

        Returns:
            Full env var name (e.g., "DEPLOYMENT_EXPORTER_NAMESPACE")
        """
        return f"{cls._env_prefix}_{suffix}"

    @classmethod
    def _get_env_int(cls, suffix: str, default: int) -> int:
        """Get integer from environment variable, default if unset or invalid."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        try:
            return int(value)
        except (ValueError, TypeError):
            return default

    @classmethod
    def _get_env_float(cls, suffix: str, default: float) -> float:
        """Get float from environment variable, default if unset or invalid."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        try:
            return float(value)
        except (ValueError, TypeError):
            return default

    @classmethod
    def _get_env_optional_float(cls, suffix: str) -> Optional[float]:
        """Get float from environment variable, None if unset or invalid."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None or not value.strip():
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            return None

    @classmethod
    def _get_env_str(cls, suffix: str, default: str) -> str:
        """Get string from environment variable (stripped of whitespace)."""
        value = os.environ.get(cls._make_env_key(suffix))
        if value is None:
            return default
        return value.strip()

    # -------------------------------------------------------------------------
    # Factory Method (override in subclasses)
    # -------------------------------------------------------------------------

    @classmethod
    def from_env(cls: type[T]) -> T:
        """Create config from environment variables.

        Default implementation loads nothing beyond field defaults.
        """
        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging/serialization."""
        result = {}
        for f in fields(self):
            if not f.name.startswith("_"):
                result[f.name] = getattr(self, f.name)
        return result
