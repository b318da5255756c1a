"""Account matching package."""

from finance_aggregator.matching.matcher import (
    institutions_overlap,
    match_account,
    normalize_institution,
)

__all__ = ["institutions_overlap", "match_account", "normalize_institution"]
