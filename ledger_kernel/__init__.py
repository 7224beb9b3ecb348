"""
Ledger Kernel

The double-entry core of the ERP accounting subsystem:
- Hierarchical chart of accounts with leaf-only posting
- Balanced journal entries with a DRAFT -> APPROVED -> POSTED lifecycle
- Per-account running balances, recomputable from posted history
- Reversing and adjusting entries instead of mutating posted history
"""

__version__ = "0.1.0"
