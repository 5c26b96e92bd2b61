"""
Core modules for Bloodkeeper.

This package contains the roll parser, the blood ledger state machine,
the message gate, the command responder and the monthly scheduler.
"""
