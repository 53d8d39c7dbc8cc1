"""
API configuration settings.
"""

from typing import List

from pydantic import validator
from pydantic_settings import BaseSettings

SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "BookNest Catalog API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Bearer token verification; tokens are issued by the identity service
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # CORS Settings
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @validator('jwt_secret')
    def validate_jwt_secret(cls, v):
        if not v.strip():
            raise ValueError('jwt_secret must not be empty')
        return v

    @validator('jwt_algorithm')
    def validate_jwt_algorithm(cls, v):
        if v.upper() not in SUPPORTED_JWT_ALGORITHMS:
            raise ValueError(f'jwt_algorithm must be one of: {list(SUPPORTED_JWT_ALGORITHMS)}')
        return v.upper()


# Global config instance
config = APIConfig()
