import os
from functools import lru_cache
from pathlib import Path as _Path
from typing import List

from dotenv import load_dotenv as _load_dotenv
from pydantic import BaseModel, Field

_load_dotenv(dotenv_path=_Path(__file__).resolve().parent.parent / ".env", override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _cors_origins_default() -> List[str]:
    raw = os.getenv("CORS_ORIGINS") or os.getenv("CORS_ORIGIN") or "http://localhost:8081,http://localhost:19006"
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseModel):
    # Support multiple common env var names for Mongo connection string
    mongo_uri: str = Field(
        default_factory=lambda: (
            os.getenv("MONGO_URI")
            or os.getenv("MONGODB_URI")
            or os.getenv("MONGO_URL")
            or ""
        )
    )
    mongo_db: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "matching"))
    # Optional: provide a non-SRV fallback URI (e.g., mongodb://127.0.0.1:27017)
    mongo_alt_uri: str = Field(default_factory=lambda: os.getenv("MONGO_ALT_URI", ""))
    mongo_direct: bool = Field(default_factory=lambda: _env_flag("MONGO_DIRECT"))
    # Session transactions need a replica set; standalone servers fall back to compensation
    mongo_transactions: bool = Field(default_factory=lambda: _env_flag("MONGO_TRANSACTIONS"))

    jwt_secret: str = Field(default_factory=lambda: os.getenv("JWT_SECRET", ""))
    jwt_audience: str = Field(default_factory=lambda: os.getenv("JWT_AUDIENCE", ""))

    cors_origins: List[str] = Field(default_factory=_cors_origins_default)
    port: int = Field(default_factory=lambda: int(os.getenv("PY_BACKEND_PORT", "8081")))
    slow_request_ms: int = Field(default_factory=lambda: int(os.getenv("SLOW_REQUEST_MS", "800")))

    # "unlink" keeps the conversation for the other participant, "hard" deletes it for both
    match_delete_mode: str = Field(default_factory=lambda: os.getenv("MATCH_DELETE_MODE", "unlink").strip().lower())
    candidate_page_max: int = Field(default_factory=lambda: int(os.getenv("CANDIDATE_PAGE_MAX", "50")))
    message_max_length: int = Field(default_factory=lambda: int(os.getenv("MESSAGE_MAX_LENGTH", "2000")))


@lru_cache()
def get_settings() -> Settings:
    return Settings()
