"""
Finledger - Source Package

A personal multi-account finance ledger: incomes and expenses recorded
against cash or named card accounts, transfers between accounts, and
historical / monthly summaries.

DESIGN PRINCIPLES:
1. Every mutation is validated against the full chronological history
2. Balances are always re-derived, never patched
3. Refusals are values, not crashes
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finledger Team"
