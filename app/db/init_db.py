"""
==============================================================================
Database Initialization Module
==============================================================================

Database initialization and seeding utilities.

This module implements:
- DatabaseInitializer: Class for database setup operations
- Table creation and verification
- Product seeding from JSON

Seed File Structure:
-------------------
[
  {"product_id": 42, "name": "Sparkling Water 1L", "barcode": "4005808521175"},
  {"name": "Draft product", "barcode": "12345670", "product_status": "draft"}
]

Usage:
------
    from app.db import init_db, DatabaseInitializer
    
    # Quick initialization
    init_db()
    
    # Or with more control
    initializer = DatabaseInitializer()
    initializer.create_tables()
    initializer.seed_products(Path("data/products.json"))

==============================================================================
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.database import DatabaseManager
from app.db.models import Product


# Module logger
logger = logging.getLogger(__name__)


class DatabaseInitializer:
    """
    Database initialization manager.
    
    Example:
        >>> initializer = DatabaseInitializer()
        >>> initializer.initialize()
    """
    
    def __init__(self, db_manager: Optional[DatabaseManager] = None) -> None:
        self._db_manager = db_manager or DatabaseManager()
        self._settings = get_settings()
    
    def create_tables(self) -> None:
        """Create all tables from ORM models."""
        self._db_manager.create_tables()
    
    def seed_products(self, products_file: Path) -> int:
        """
        Load products from JSON into an empty products table.
        
        Args:
            products_file: Path to the seed JSON
            
        Returns:
            Number of products inserted (0 if the table already had rows)
        """
        with self._db_manager.session_scope() as session:
            return load_products(session, products_file)
    
    def initialize(self) -> None:
        """Full setup: tables, then optional seeding."""
        logger.info("Initializing database...")
        self.create_tables()
        
        products_path = self._settings.products_path
        if not self._settings.seed_products:
            return
        
        if products_path.exists():
            count = self.seed_products(products_path)
            if count:
                logger.info(f"✅ Seeded {count} products from {products_path}")
        else:
            logger.warning(f"⚠️ Products file not found: {products_path}")


def load_products(session: Session, products_file: Path) -> int:
    """
    Insert seed products unless the table already has rows.
    
    Entries without a name are skipped.
    """
    if session.query(Product).first() is not None:
        logger.debug("Products table already populated, skipping seed")
        return 0
    
    with products_file.open("r", encoding="utf-8") as f:
        data = json.load(f)
    
    count = 0
    for item in data:
        if not isinstance(item, dict) or not item.get("name"):
            logger.warning(f"Skipping invalid product entry: {item!r}")
            continue
        
        barcode = item.get("barcode")
        session.add(Product(
            product_id=item.get("product_id"),
            name=item["name"],
            barcode=str(barcode) if barcode is not None else None,
            product_status=item.get("product_status", "publish"),
        ))
        count += 1
    
    session.flush()
    return count


def init_db() -> None:
    """Initialize database using default settings."""
    DatabaseInitializer().initialize()
