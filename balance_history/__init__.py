"""
Balance History - Source Package

Reconstructs account balances over time from a transaction log and an
optional "balance as of date" checkpoint, and combines several accounts
into one timeline.

DESIGN PRINCIPLES:
1. Balances are always rederived, never stored
2. Money is Decimal, never float
3. Missing history is absence, not zero
4. Fail early, fail visibly
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Balance History Team"
