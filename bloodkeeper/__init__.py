"""
Bloodkeeper - city blood ledger for a Vampire: The Masquerade chronicle.
"""

__version__ = "1.0.0"
