"""
==============================================================================
Validation Utilities Module
==============================================================================

Validation classes for scanned input data.

This module implements:
- BarcodeValidator: Validates retail barcode strings

Validation Rules for Barcodes:
-----------------------------
- Surrounding whitespace is ignored
- Digits only
- Length 8 (EAN-8 / UPC-E), 12 (UPC-A) or 13 (EAN-13)
- No check digit verification

==============================================================================
"""

from __future__ import annotations

from typing import FrozenSet, Optional, Tuple


class BarcodeValidator:
    """
    Validator for retail barcodes.
    
    Symbologies are told apart by digit count only, so a 14-digit
    GTIN or an 11-digit fragment is rejected even though it is numeric.
    
    Example:
        >>> validator = BarcodeValidator()
        >>> validator.validate(" 4005808521175 ")
        (True, '4005808521175', None)
        >>> validator.is_valid("12345")
        False
    """
    
    LENGTHS: FrozenSet[int] = frozenset({8, 12, 13})
    
    def validate(self, barcode: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Validate and normalize a barcode.
        
        Args:
            barcode: Raw decoded or typed barcode
            
        Returns:
            Tuple of (is_valid, normalized_barcode, error_message)
            - If valid: (True, "4005808521175", None)
            - If invalid: (False, None, "Error description")
        """
        if not barcode:
            return False, None, "Barcode is required"
        
        barcode = barcode.strip()
        
        if not barcode:
            return False, None, "Barcode cannot be empty"
        
        # str.isdigit() also accepts superscripts and other unicode digits
        if not (barcode.isascii() and barcode.isdigit()):
            return False, None, "Barcode must contain digits only"
        
        if len(barcode) not in self.LENGTHS:
            lengths = ", ".join(str(n) for n in sorted(self.LENGTHS))
            return False, None, f"Barcode must be {lengths} digits long"
        
        return True, barcode, None
    
    def normalize(self, barcode: Optional[str]) -> Optional[str]:
        """Return the normalized barcode, or None when invalid."""
        _, normalized, _ = self.validate(barcode)
        return normalized
    
    def is_valid(self, barcode: Optional[str]) -> bool:
        """Quick validation check."""
        is_valid, _, _ = self.validate(barcode)
        return is_valid
