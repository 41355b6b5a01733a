"""
==============================================================================
Database Package
==============================================================================

SQLAlchemy database infrastructure and ORM models.

This package provides:
- DatabaseManager: Singleton class for database connections
- ORM models: Product
- Database initialization utilities

Architecture:
------------
├── database.py   - DatabaseManager class, session factory
├── models.py     - SQLAlchemy ORM model classes
└── init_db.py    - DatabaseInitializer for setup and seeding

==============================================================================
"""

from .database import DatabaseManager, Base, get_db, get_database_manager
from .models import Product, PUBLISHED_STATUSES
from .init_db import DatabaseInitializer, init_db, load_products

__all__ = [
    # Database management
    "DatabaseManager",
    "Base",
    "get_db",
    "get_database_manager",
    # Models
    "Product",
    "PUBLISHED_STATUSES",
    # Initialization
    "DatabaseInitializer",
    "init_db",
    "load_products",
]
