"""
Configuration management using environment variables.
Handles storage, logging and seed-import settings with validation and defaults.
"""

from typing import List, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path


class CatalogConfig(BaseSettings):
    """
    Configuration class for the catalog backend.
    Uses pydantic BaseSettings for environment variable management.
    """

    # Storage Configuration
    store_backend: str = Field(default="mongo", env="STORE_BACKEND")
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="booknest", env="MONGODB_DATABASE")
    books_collection: str = Field(default="books", env="BOOKS_COLLECTION")
    reviews_collection: str = Field(default="reviews", env="REVIEWS_COLLECTION")

    # Seed Import Configuration
    openlibrary_url: str = Field(default="https://openlibrary.org", env="OPENLIBRARY_URL")
    seed_subjects: List[str] = Field(
        default=["fiction", "science_fiction", "mystery", "romance", "fantasy", "thriller"],
        env="SEED_SUBJECTS"
    )
    seed_limit: int = Field(default=10, env="SEED_LIMIT")
    request_timeout: int = Field(default=30, env="REQUEST_TIMEOUT")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")

    @validator('store_backend')
    def validate_store_backend(cls, v):
        """Ensure the store backend is a known one."""
        valid_backends = ['mongo', 'memory']
        if v.lower() not in valid_backends:
            raise ValueError(f'store_backend must be one of: {valid_backends}')
        return v.lower()

    @validator('seed_limit')
    def validate_seed_limit(cls, v):
        """Ensure seed limit is reasonable."""
        if v < 1 or v > 100:
            raise ValueError('seed_limit must be between 1 and 100')
        return v

    @validator('request_timeout')
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError('request_timeout must be between 5 and 300 seconds')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_headers(self) -> dict:
        """Get default headers for outbound HTTP requests."""
        return {
            "User-Agent": "BookNest-Catalog/1.0",
            "Accept": "application/json",
        }


# Global configuration instance
config = CatalogConfig()
