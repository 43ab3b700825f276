"""
Stockline Kernel

The stock ledger and order-lifecycle core with:
- Append-only stock ledger (stock == sum of ledger deltas)
- Per-variant serialized stock mutation
- All-or-nothing multi-line fulfillment and receiving
- Post-commit change notification
"""

__version__ = "0.1.0"
