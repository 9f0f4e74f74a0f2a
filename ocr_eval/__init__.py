"""OCR extraction accuracy benchmarking and performance monitoring."""

__version__ = "0.1.0"
