"""
Ledger Kernel

A double-entry bookkeeping core with:
- Account classification for statement placement
- Balanced, atomic journal posting
- Per-entity single-writer serialization
- Replayable and incrementally materialized account balances
"""

__version__ = "0.1.0"
