"""Batch client for the OCR-to-PDF conversion service."""

__version__ = "0.1.0"
