"""Ledger posting, reporting and report caching services."""
