"""Application settings.

Reads configuration from the environment. A `.env` file at the repository
root is loaded first when present.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from connectors.netsuite.ns_auth import NetSuiteCredentials

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # NetSuite token-based auth
    netsuite_consumer_key: str = ""
    netsuite_consumer_secret: str = ""
    netsuite_token: str = ""
    netsuite_token_secret: str = ""
    netsuite_realm: str = ""
    netsuite_base_url: str = ""
    erp_timeout_seconds: float = 30.0
    erp_line_fetch_concurrency: int = 5

    # Local store
    db_path: Path = REPO_ROOT / "order_split.db"

    # Notifications
    telegram_bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    app_base_url: str = "http://localhost:3000"
    coordination_department: str = "Sales Coordination"
    notify_backend: str = "local"            # "local" or "temporal"
    notify_task_queue: str = "order-notify"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            netsuite_consumer_key=os.getenv("NETSUITE_CONSUMER_KEY", ""),
            netsuite_consumer_secret=os.getenv("NETSUITE_CONSUMER_SECRET", ""),
            netsuite_token=os.getenv("NETSUITE_TOKEN", ""),
            netsuite_token_secret=os.getenv("NETSUITE_TOKEN_SECRET", ""),
            netsuite_realm=os.getenv("NETSUITE_REALM", ""),
            netsuite_base_url=os.getenv("NETSUITE_BASE_URL", ""),
            erp_timeout_seconds=float(os.getenv("ERP_TIMEOUT_SECONDS", "30")),
            erp_line_fetch_concurrency=int(os.getenv("ERP_LINE_FETCH_CONCURRENCY", "5")),
            db_path=Path(os.getenv("ORDER_DB_PATH", str(REPO_ROOT / "order_split.db"))),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_api_url=os.getenv("TELEGRAM_API_URL", "https://api.telegram.org"),
            app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000"),
            coordination_department=os.getenv("COORDINATION_DEPARTMENT", "Sales Coordination"),
            notify_backend=os.getenv("NOTIFY_BACKEND", "local").lower(),
            notify_task_queue=os.getenv("NOTIFY_TASK_QUEUE", "order-notify"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_bool(os.getenv("LOG_JSON")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    def erp_credentials(self) -> NetSuiteCredentials:
        """Explicit credential value handed to the gateway factory."""
        return NetSuiteCredentials(
            consumer_key=self.netsuite_consumer_key,
            consumer_secret=self.netsuite_consumer_secret,
            token=self.netsuite_token,
            token_secret=self.netsuite_token_secret,
            realm=self.netsuite_realm,
        )

    def validate(self) -> List[str]:
        """Return configuration errors (empty if the ERP can be reached)."""
        errors = []
        if not self.netsuite_consumer_key: errors.append("NETSUITE_CONSUMER_KEY is required")
        if not self.netsuite_consumer_secret: errors.append("NETSUITE_CONSUMER_SECRET is required")
        if not self.netsuite_token: errors.append("NETSUITE_TOKEN is required")
        if not self.netsuite_token_secret: errors.append("NETSUITE_TOKEN_SECRET is required")
        if not self.netsuite_realm: errors.append("NETSUITE_REALM is required")
        if not self.netsuite_base_url: errors.append("NETSUITE_BASE_URL is required")
        if self.notify_backend not in ("local", "temporal"):
            errors.append(f"NOTIFY_BACKEND must be 'local' or 'temporal', got {self.notify_backend!r}")
        return errors

    def order_url(self, order_id: str) -> str:
        """Deep link to the order page in the staff UI."""
        return f"{self.app_base_url.rstrip('/')}/order/{order_id}"

    def response_url(self, order_id: str) -> str:
        """Base of the approve/revise links sent to departments."""
        return f"{self.app_base_url.rstrip('/')}/response/{order_id}"
