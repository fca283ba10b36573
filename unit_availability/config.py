from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./availability.db",
        alias="DATABASE_URL"
    )

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # ==============================================
    # Availability Engine Settings
    # ==============================================
    # Rows per INSERT statement inside one bulk transaction
    bulk_chunk_size: int = Field(default=500, alias="BULK_CHUNK_SIZE")

    # Upper bound on units x dates for a single bulk edit
    bulk_max_cells: int = Field(default=20_000, alias="BULK_MAX_CELLS")

    # Calendar grid window (days shown from the start date)
    grid_default_days: int = Field(default=7, alias="GRID_DEFAULT_DAYS")
    grid_max_days: int = Field(default=31, alias="GRID_MAX_DAYS")

    # Deadline applied to storage calls made from the API
    storage_timeout_seconds: float = Field(default=30.0, alias="STORAGE_TIMEOUT_SECONDS")

    # Rate limit for bulk edits (slowapi syntax)
    bulk_rate_limit: str = Field(default="30/minute", alias="BULK_RATE_LIMIT")

    # When enabled, point writes from the API must carry expected_version
    optimistic_locking: bool = Field(default=False, alias="OPTIMISTIC_LOCKING")

    @field_validator('bulk_chunk_size', 'bulk_max_cells', 'grid_default_days', 'grid_max_days')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Sizes and windows must be strictly positive"""
        if v <= 0:
            raise ValueError("value must be a positive integer")
        return v

    @field_validator('database_url')
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgres:// but SQLAlchemy needs postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        seen = set()
        unique_origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                unique_origins.append(origin)

        return unique_origins if unique_origins else ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
