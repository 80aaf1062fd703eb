"""
Relation sync service configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os

from engine.relsync.types import SyncOptions


class Settings:
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", "20"))
    DB_COMMAND_TIMEOUT_SECONDS: float = float(os.environ.get("DB_COMMAND_TIMEOUT_SECONDS", "60"))

    # Auth
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))

    # Relation sync engine
    SYNC_TRANSACTION_LIMIT: int = int(os.environ.get("SYNC_TRANSACTION_LIMIT", "500"))  # Firestore's bound
    SYNC_CHUNK_SIZE: int = int(os.environ.get("SYNC_CHUNK_SIZE", "500"))
    SYNC_CHUNK_RETRIES: int = int(os.environ.get("SYNC_CHUNK_RETRIES", "1"))
    SYNC_READ_CONCURRENCY: int = int(os.environ.get("SYNC_READ_CONCURRENCY", "16"))
    SYNC_INDEX_TTL_SECONDS: float = float(os.environ.get("SYNC_INDEX_TTL_SECONDS", "0"))
    SYNC_SCAN_PAGE_SIZE: int = int(os.environ.get("SYNC_SCAN_PAGE_SIZE", "200"))

    # Scheduled repair (0 = disabled)
    SYNC_REPAIR_INTERVAL_SECONDS: int = int(os.environ.get("SYNC_REPAIR_INTERVAL_SECONDS", "0"))

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    def sync_options(self) -> SyncOptions:
        """Engine tunables. The engine never reads settings itself."""
        return SyncOptions(
            transaction_limit=self.SYNC_TRANSACTION_LIMIT,
            chunk_size=self.SYNC_CHUNK_SIZE,
            chunk_retries=self.SYNC_CHUNK_RETRIES,
            read_concurrency=self.SYNC_READ_CONCURRENCY,
            index_ttl_seconds=self.SYNC_INDEX_TTL_SECONDS,
            scan_page_size=self.SYNC_SCAN_PAGE_SIZE,
        )


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
_testing = os.environ.get("TESTING", "").lower() == "true"

if not settings.JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is required")

if not _testing:
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is required")
    if settings.SYNC_TRANSACTION_LIMIT < 1:
        raise RuntimeError("SYNC_TRANSACTION_LIMIT must be at least 1")
    if settings.SYNC_CHUNK_SIZE < 1:
        raise RuntimeError("SYNC_CHUNK_SIZE must be at least 1")
