"""Ledger aggregation package."""

from financetracker.ledger.aggregator import LedgerAggregator, month_window

__all__ = ["LedgerAggregator", "month_window"]
