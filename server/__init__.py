"""
Server package for the chat relay.

This package contains all server-side functionality including:
- Client registry and broadcast queue
- Connection handling and broadcast fan-out
- Configuration and utilities
"""
