"""Domain models for the price archive importer.

This package contains the record, result, filter and configuration types
shared by the parsing, persistence and export layers.
"""

from .config_models import AppConfig, DatabaseConfig, ImportSettings
from .error_record import ErrorRecord
from .export_filters import ExportFilters, FilterError, parse_export_filters
from .import_result import ImportResult
from .price_record import PriceRecord

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "ImportSettings",
    # Processing models
    "ErrorRecord",
    "ExportFilters",
    "FilterError",
    "ImportResult",
    "PriceRecord",
    "parse_export_filters",
]
