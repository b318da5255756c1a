"""CSV extraction package."""

from finance_aggregator.extraction.csv_extractor import (
    GENERIC,
    STRATEGIES,
    detect_institution,
    extract_balance,
    extract_from_file,
    parse_amount,
    parse_rows,
)

__all__ = [
    "GENERIC",
    "STRATEGIES",
    "detect_institution",
    "extract_balance",
    "extract_from_file",
    "parse_amount",
    "parse_rows",
]
