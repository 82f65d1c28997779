# backend/app/config.py
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings:
    """Application settings read from the environment (and .env)."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./dev.db")

    # JWT
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-replace-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Sentiment model (folder with a RoBERTa sequence classifier)
    SENTIMENT_MODEL_PATH: str = os.getenv(
        "SENTIMENT_MODEL_PATH",
        os.path.join(os.path.dirname(__file__), "..", "..", "roberta_model"),
    )
    SENTIMENT_TIMEOUT_SECONDS: float = float(os.getenv("SENTIMENT_TIMEOUT_SECONDS", "10"))

    # Pagination
    DEFAULT_PAGE_LIMIT: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "6"))
    ADMIN_PAGE_LIMIT: int = int(os.getenv("ADMIN_PAGE_LIMIT", "10"))
    MAX_PAGE_LIMIT: int = int(os.getenv("MAX_PAGE_LIMIT", "100"))

    CORS_ORIGINS: List[str] = _origins(
        os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8501,http://localhost:8502")
    )
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Bootstrap admin account (create_admin.py)
    ADMIN_NAME: str = os.getenv("ADMIN_NAME", "admin")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD: Optional[str] = os.getenv("ADMIN_PASSWORD")


settings = Settings()
