"""
Chat module for server-side messaging functionality.

Handles:
- Username registration
- Bounded broadcast queue
- Per-connection handlers and writers
- Message fan-out
"""
