"""
Expense Tracker - Local Data Store

The persistence, validation and bookkeeping core of a personal
expense tracker. All state lives in a local key-value store.

DESIGN PRINCIPLES:
1. Money is integer cents, never floats
2. Fail closed on write, degrade to empty on corrupt read
3. No partial writes - one full collection per mutation
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
