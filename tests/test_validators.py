"""
==============================================================================
Barcode Validator Tests
==============================================================================
"""

import pytest

from app.utils.validators import BarcodeValidator


class TestBarcodeValidator:
    """Tests for retail barcode format validation."""
    
    @pytest.mark.parametrize("barcode", ["96385074", "012345678905", "4005808521175"])
    def test_accepted_lengths(self, barcode: str):
        is_valid, normalized, error = BarcodeValidator().validate(barcode)
        assert is_valid is True
        assert normalized == barcode
        assert error is None
    
    @pytest.mark.parametrize("barcode", ["12345", "40058085211", "40058085211750", "1234567"])
    def test_rejected_lengths(self, barcode: str):
        is_valid, normalized, error = BarcodeValidator().validate(barcode)
        assert is_valid is False
        assert normalized is None
        assert "digits long" in error
    
    @pytest.mark.parametrize("barcode", ["40058O8521175", "4005-808-5211", "ABCDEFGH", "٤٠٠٥٨٠٨٥"])
    def test_non_digits_rejected(self, barcode: str):
        is_valid, _, error = BarcodeValidator().validate(barcode)
        assert is_valid is False
        assert error == "Barcode must contain digits only"
    
    def test_surrounding_whitespace_is_trimmed(self):
        assert BarcodeValidator().normalize("  4005808521175\n") == "4005808521175"
    
    def test_empty_and_missing(self):
        validator = BarcodeValidator()
        assert validator.validate(None) == (False, None, "Barcode is required")
        assert validator.validate("   ")[2] == "Barcode cannot be empty"
    
    def test_is_valid(self):
        validator = BarcodeValidator()
        assert validator.is_valid("96385074")
        assert not validator.is_valid("https://example.com")
