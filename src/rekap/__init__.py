"""Daily activity recap for macOS."""

__version__ = "0.3.0"
