"""Runtime configuration defaults for the backend, reporting and logging."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from superbecks.errors import ConfigError

load_dotenv()

# Business days are counted in Philippine time regardless of the host timezone.
BUSINESS_UTC_OFFSET_HOURS = 8

DEFAULT_REFRESH_SECONDS = 1800
MIN_REFRESH_SECONDS = 5

REQUEST_TIMEOUT_SECONDS = float(os.getenv("SUPERBECKS_REQUEST_TIMEOUT", "15"))

DEBUG_LOG_PATH = os.getenv("SUPERBECKS_DEBUG_LOG", "/tmp/superbecks-debug.log")
EXPORT_DIR = os.getenv("SUPERBECKS_EXPORT_DIR", "exports")

ADMIN_HOST = os.getenv("SUPERBECKS_ADMIN_HOST", "127.0.0.1")
ADMIN_PORT = int(os.getenv("SUPERBECKS_ADMIN_PORT", "5000"))


@dataclass(frozen=True)
class BackendSettings:
    """Connection settings for the hosted backend."""

    url: str
    anon_key: str
    service_role_key: str
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    def require_public(self) -> None:
        if not self.url or not self.anon_key:
            raise ConfigError("Missing public env vars")

    def require_service_role(self) -> None:
        if not self.url or not self.service_role_key:
            raise ConfigError("Missing service role env vars")


def load_backend_settings() -> BackendSettings:
    """Read backend settings from the environment on every call."""
    return BackendSettings(
        url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
        anon_key=os.getenv("SUPABASE_ANON_KEY", "").strip(),
        service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
    )
