from __future__ import annotations
import os
from zoneinfo import ZoneInfo

def normalize_database_url(url: str) -> str:
    url = "postgresql://" + url[len("postgres://"):] if url.startswith("postgres://") else url
    if url.startswith("postgresql://") and "+psycopg2" not in url:
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url

DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "").strip() or "sqlite:///./todos.db")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
JWT_TTL_SECONDS = int(os.getenv("JWT_TTL_SECONDS", "2592000"))  # 30d
AUTH_COOKIE = os.getenv("AUTH_COOKIE", "todo_token")

TIMEZONE_NAME = os.getenv("TODO_TIMEZONE", "Asia/Seoul")
TIMEZONE = ZoneInfo(TIMEZONE_NAME)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

def is_development() -> bool:
    """APP_ENV=development exposes raw error detail and request logging."""
    return os.getenv("APP_ENV", "production").strip().lower() == "development"

def gemini_api_key() -> str | None:
    # Read per request: a key added or removed at runtime is honoured.
    key = os.getenv("GOOGLE_GENERATIVE_AI_API_KEY") or os.getenv("GEMINI_API_KEY")
    return key.strip() if key and key.strip() else None
