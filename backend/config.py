"""
Screen runtime service configuration - all environment variables in one place.

Read from environment at runtime. The runtime core never reads the
environment itself; the service passes these values in explicitly.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Event log persistence
    RUNTIME_STORAGE_KEY: str = os.environ.get("RUNTIME_STORAGE_KEY", "__app_state_log__")
    RUNTIME_STORAGE_DIR: str = os.environ.get("RUNTIME_STORAGE_DIR", "")  # empty → in-memory only

    # Initial view seeded once at startup when none is derived
    RUNTIME_DEFAULT_VIEW: str = os.environ.get("RUNTIME_DEFAULT_VIEW", "|home")

    # Diagnostics ring buffer size
    RUNTIME_DIAGNOSTICS_LIMIT: int = int(os.environ.get("RUNTIME_DIAGNOSTICS_LIMIT", "300"))

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def persistent(self) -> bool:
        return bool(self.RUNTIME_STORAGE_DIR)


# Singleton instance
settings = Settings()
