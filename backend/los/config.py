"""
backend/los/config.py

Purpose:
    Central settings loading for the round engine and its HTTP surface.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"

AutoPickReusePolicy = Literal["allow", "skip", "reject"]


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "los"
    # Transactions need a replica set; single-node dev servers can switch them off.
    MONGO_TRANSACTIONS_ENABLED: bool = True
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Store scope: one club, one edition per engine process
    CLUB_ID: str = ""
    EDITION_ID: str = ""

    # Game rules
    STARTING_LIVES: int = 2
    AUTO_PICK_REUSE_POLICY: AutoPickReusePolicy = "allow"

    # Deadline monitor
    DEADLINE_MONITOR_ENABLED: bool = True
    DEADLINE_CHECK_INTERVAL_SECONDS: int = 60

    # Result resolver
    RESULT_RESOLVER_ENABLED: bool = True
    RESULT_CHECK_INTERVAL_SECONDS: int = 300

    # Store retry policy (transient MongoDB errors)
    STORE_RETRY_MAX_ATTEMPTS: int = 4
    STORE_RETRY_BASE_DELAY_SECONDS: float = 0.5
    STORE_RETRY_MAX_DELAY_SECONDS: float = 30.0

    # Event bus (in-process)
    EVENT_BUS_INGRESS_QUEUE_MAXSIZE: int = 1000
    EVENT_BUS_HANDLER_QUEUE_MAXSIZE: int = 500
    EVENT_BUS_HANDLER_DEFAULT_CONCURRENCY: int = 1
    EVENT_BUS_ERROR_BUFFER_SIZE: int = 100
    EVENT_BUS_HANDLER_TIMEOUT_SECONDS: float = 30.0
    EVENT_HANDLER_AUDIT_ENABLED: bool = True

    # Admin endpoints (empty disables them)
    ADMIN_API_KEY: str = ""

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
