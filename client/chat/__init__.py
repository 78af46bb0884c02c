"""
Chat module for client-side messaging functionality.

Handles:
- Authentication
- Sending chat messages
- Reading frames from the server
"""
