"""
Fixed scan engine timings and barcode rules.

These are deliberately not part of Settings: they are not runtime-mutable.
"""

from app.utils.validators import BarcodeValidator

# Minimum gap between two accepted detections
DEBOUNCE_WINDOW_SECONDS = 1.0

# Upper bound on a single product lookup
LOOKUP_TIMEOUT_SECONDS = 10.0

# How long the Found confirmation stays up before navigating
FOUND_DISPLAY_DELAY_SECONDS = 1.5

# EAN-8 / UPC-E, UPC-A, EAN-13
ACCEPTED_BARCODE_LENGTHS = BarcodeValidator.LENGTHS

# Label fragments that suggest a rear-facing camera
REAR_CAMERA_HINTS = ("back", "environment")
