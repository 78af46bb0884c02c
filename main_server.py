#!/usr/bin/env python3
"""
Chat Relay Server - Main Entry Point

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: 0.0.0.0)
    --port PORT           TCP port (default: 8080)
    --max-clients N       Maximum authenticated clients (default: 50)
    --queue-size N        Broadcast queue capacity (default: 100)
    --log-level LEVEL     DEBUG, INFO, WARNING or ERROR (default: INFO)
    --logs-dir DIR        Write a chat transcript to DIR/chat_history.log

Exits with status 1 when the listening socket cannot be set up.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


if __name__ == "__main__":
    from server.main_server import main
    sys.exit(main())
