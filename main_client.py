#!/usr/bin/env python3
"""
Chat Relay Client - Main Entry Point

Usage:
    python main_client.py --username alice

Optional arguments:
    --host HOST           Server address (default: localhost)
    --port PORT           Server port (default: 8080)
    --username NAME       Username (asked on stdin when omitted)

Lines typed on stdin are sent as chat; '/quit' leaves the chat.
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


if __name__ == "__main__":
    from client.main_client import main
    sys.exit(main())
