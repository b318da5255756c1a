"""
Finance Aggregator - Source Package

Collects account balances from manual entry, CSV exports, Plaid and
SimpleFIN into a spreadsheet-backed ledger, and reports net worth
and stale accounts.

DESIGN PRINCIPLES:
1. Balances are append-only observations
2. Provider linkage is established once and never silently overwritten
3. Bad input is reported, not guessed at
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Aggregator Team"
