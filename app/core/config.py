"""Application configuration with environment variables."""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/car-listings"

    # JWT Settings
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60  # 1 hour

    # Application
    APP_NAME: str = "Car Listings API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # CORS
    FRONTEND_URL: str = "http://localhost:8080"

    # Uploaded images
    BASE_URL: str = "http://localhost:3000"
    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_IMAGE_SIZE: int = 5 * 1024 * 1024  # 5 MB
    MAX_IMAGES_PER_REQUEST: int = 10
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png"]

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
