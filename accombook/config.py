# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Configuration management for AccomBook API."""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Application configuration."""

    name: str = "AccomBook"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = "http://localhost:8000"
    cors_origins: List[str] = []  # Extra allowed origins besides base_url


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "/data/accombook.db"


class SecurityConfig(BaseModel):
    """Token and password hashing configuration."""

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 60
    refresh_token_days: int = 7
    bcrypt_rounds: int = 10


class PaginationConfig(BaseModel):
    """List endpoint paging defaults."""

    default_limit: int = 10
    max_limit: int = 50


class PhotoConfig(BaseModel):
    """Photo host (S3 compatible) configuration."""

    endpoint_url: Optional[str] = None  # e.g. http://minio:9000, None for AWS
    access_key: str = ""
    secret_key: str = ""
    region: str = "us-east-1"
    bucket: str = "accombook-photos"
    public_base_url: str = ""  # e.g. https://cdn.example.com/accombook-photos
    folder: str = "places"
    max_size_bytes: int = 5 * 1024 * 1024
    max_per_place: int = 10
    allowed_content_types: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp"]


class BookingConfig(BaseModel):
    """Booking constraints configuration."""

    max_nights: int = 365
    max_bookings_per_user_per_day: int = 20


class RateLimitConfig(BaseModel):
    """Rate limiting configuration."""

    enabled: bool = True
    max_requests: int = 100  # per client per window
    window_seconds: int = 60


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_output: bool = Field(default=True, alias="json")

    model_config = {"populate_by_name": True}


class CleanupConfig(BaseModel):
    """Cleanup settings configuration."""

    refresh_token_retention_days: int = 7


class Settings(BaseModel):
    """Main settings container."""

    app: AppConfig = Field(default_factory=AppConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    photos: PhotoConfig = Field(default_factory=PhotoConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)

    @property
    def uses_default_secret(self) -> bool:
        """Check if the JWT secret was left at its placeholder value."""
        return self.security.jwt_secret == SecurityConfig().jwt_secret


def load_config(config_path: Optional[str] = None) -> Settings:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, tries default locations.

    Returns:
        Settings object with loaded configuration.
    """
    default_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
        Path("/app/config/config.yaml"),
        Path("/etc/accombook/config.yaml"),
    ]

    # Allow override via environment variable
    if config_path is None:
        config_path = os.environ.get("ACCOMBOOK_CONFIG")

    config_file = None

    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for path in default_paths:
            if path.exists():
                config_file = path
                break

    if config_file is None:
        return Settings()

    with open(config_file, "r") as f:
        config_data = yaml.safe_load(f) or {}

    return Settings(**config_data)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def init_settings(config_path: Optional[str] = None) -> Settings:
    """Initialize settings from config file."""
    global _settings
    _settings = load_config(config_path)
    return _settings


def update_settings(new_settings: Settings) -> None:
    """Update the global settings instance."""
    global _settings
    _settings = new_settings
