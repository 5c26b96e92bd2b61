"""
Discord adapter for Bloodkeeper.

Connects the ledger to the Discord gateway.
"""

from .client import BloodkeeperClient, run_bot

__all__ = ["BloodkeeperClient", "run_bot"]
