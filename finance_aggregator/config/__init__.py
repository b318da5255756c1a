"""Configuration package."""

from finance_aggregator.config.settings import (
    PLAID_ENVIRONMENTS,
    AppSettings,
    GoogleSheetsSettings,
    PlaidSettings,
    Settings,
    SimpleFINSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "PLAID_ENVIRONMENTS",
    "AppSettings",
    "GoogleSheetsSettings",
    "PlaidSettings",
    "Settings",
    "SimpleFINSettings",
    "get_settings",
    "validate_all_settings",
]
