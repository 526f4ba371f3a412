"""Ledger posting and financial reporting service."""
