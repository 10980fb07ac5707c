"""
Savings Ledger Core - Source Package

The computational core of a personal savings tracker:
protected storage of amounts, balance history reconstruction
and distribution of one savings balance across several goals.

DESIGN PRINCIPLES:
1. The balance is authoritative, everything else is derived
2. Derived views are recomputed, never persisted
3. Stored data written by older clients stays readable forever
4. Recoverable failures degrade, they never crash the caller
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Savings Ledger Team"
