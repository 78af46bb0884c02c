"""
Client package for the chat relay.

This package contains a plain protocol client and its configuration and
logging utilities.
"""
