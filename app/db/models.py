"""
==============================================================================
SQLAlchemy ORM Models Module
==============================================================================

ORM model for the product table read by barcode lookups.

Database Schema:
---------------

    ┌─────────────────────────────────────────────────────────────────┐
    │                           products                               │
    ├─────────────────────────────────────────────────────────────────┤
    │ product_id (INTEGER, PK)                                        │
    │ name (VARCHAR, NOT NULL)                                        │
    │ barcode (VARCHAR, INDEXED, NULLABLE)                            │
    │ product_status (VARCHAR, DEFAULT 'publish')                     │
    │ created_at (DATETIME, DEFAULT now)                              │
    └─────────────────────────────────────────────────────────────────┘

Only products whose status is 'publish' or 'published' are visible to
barcode lookups.

=============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Any

from sqlalchemy import Column, DateTime, Integer, String

from app.db.database import Base


# Status values treated as live on the site
PUBLISHED_STATUSES = ("publish", "published")


class Product(Base):
    """
    Catalog product.
    
    Attributes:
        product_id: Primary key, used in /product/{id} links
        name: Display name
        barcode: EAN/UPC barcode (not unique; lookups take the first match)
        product_status: Publication status
        created_at: Row creation time
    """
    
    __tablename__ = "products"
    
    product_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    barcode = Column(String(32), nullable=True, index=True)
    product_status = Column(String(32), nullable=False, default="publish")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    
    @property
    def is_published(self) -> bool:
        return self.product_status in PUBLISHED_STATUSES
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "barcode": self.barcode,
            "product_status": self.product_status,
        }
    
    def __repr__(self) -> str:
        return f"<Product(product_id={self.product_id}, barcode={self.barcode!r})>"
