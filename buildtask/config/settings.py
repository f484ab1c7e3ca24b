# buildtask/config/settings.py
# Runtime configuration for the reporting backend

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings read from the environment"""

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./buildtask.db")
    # Postgres on Render and similar hosts needs sslmode=require
    DATABASE_SSL_MODE: str = os.getenv("DATABASE_SSL_MODE", "")

    # Report artifacts
    REPORTS_STORAGE_PATH: str = os.getenv("REPORTS_STORAGE_PATH", "reports")
    REPORT_FILE_EXTENSION: str = "pdf"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    RELOAD: bool = os.getenv("RELOAD", "true").lower() == "true"

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    @classmethod
    def get_storage_root(cls) -> Path:
        """Storage root for report artifacts, resolved to an absolute path"""
        return Path(cls.REPORTS_STORAGE_PATH).resolve()

    @classmethod
    def get_engine_options(cls) -> dict:
        """Keyword arguments for create_engine based on the database URL"""
        if cls.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        if cls.DATABASE_SSL_MODE:
            return {"connect_args": {"sslmode": cls.DATABASE_SSL_MODE}}
        return {}


settings = Settings()
