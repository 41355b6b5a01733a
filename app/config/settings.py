"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Computed properties for derived values

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

Scan timings (debounce window, lookup timeout, Found delay) and accepted
barcode lengths are fixed constants in app.scanner.constants, not settings.

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        database_url: SQLAlchemy database connection string
        products_file: JSON file used to seed the products table
        seed_products: Seed products on startup when the table is empty
        cors_origins: Allowed CORS origins (JSON array string)
        camera_source: "browser" (client camera over WebSocket) or "local"
        camera_max_devices: Upper bound on enumerated local cameras
    
    Example:
        >>> settings = Settings()
        >>> print(settings.app_name)
        'Product Scan Service'
    """
    
    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )
    
    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Product Scan Service",
        description="Display name for the application"
    )
    
    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )
    
    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )
    
    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )
    
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )
    
    # =========================================================================
    # DATABASE SETTINGS
    # =========================================================================
    database_url: str = Field(
        default="sqlite:///./storage/db/catalog.db",
        description="SQLAlchemy database connection string"
    )
    
    products_file: str = Field(
        default="data/products.json",
        description="Path to product seed JSON"
    )
    
    seed_products: bool = Field(
        default=True,
        description="Seed the products table from products_file when empty"
    )
    
    # =========================================================================
    # CAMERA SETTINGS
    # =========================================================================
    camera_source: str = Field(
        default="browser",
        description="Where scan frames come from: browser or local"
    )
    
    camera_max_devices: int = Field(
        default=16,
        ge=1,
        le=64,
        description="Maximum number of local cameras to enumerate"
    )
    
    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )
    
    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.
        
        Args:
            value: Raw environment value
            
        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()
        
        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"
        
        return normalized
    
    @field_validator("camera_source")
    @classmethod
    def validate_camera_source(cls, value: str) -> str:
        """
        Validate the camera source.
        
        Raises:
            ValueError: If the source is not browser or local
        """
        normalized = value.lower().strip()
        
        if normalized not in {"browser", "local"}:
            raise ValueError(
                f"Unsupported camera source: {value}. Supported: browser, local"
            )
        
        return normalized
    
    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"
    
    @property
    def products_path(self) -> Path:
        """Get products seed file as Path object."""
        return Path(self.products_file)
    
    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.
        
        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]
    
    # =========================================================================
    # UTILITY METHODS
    # =========================================================================
    def get_database_path(self) -> Optional[Path]:
        """
        Extract database file path for SQLite databases.
        
        Returns:
            Path to database file, or None for non-SQLite or in-memory databases
        """
        if self.database_url.startswith("sqlite:///"):
            db_path = self.database_url.replace("sqlite:///", "")
            if db_path.startswith("./"):
                db_path = db_path[2:]
            if db_path and db_path != ":memory:":
                return Path(db_path)
        return None
    
    def ensure_directories(self) -> None:
        """Create the SQLite database directory if needed."""
        db_path = self.get_database_path()
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        
        logger.debug("Required directories created/verified")
    
    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"camera_source={self.camera_source!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).
    
    Returns:
        Global Settings instance
    """
    settings = Settings()
    settings.ensure_directories()
    
    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")
    
    return settings
