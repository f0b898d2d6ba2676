"""Inventory ledger service: multi-warehouse stock records, reservations and analytics."""
