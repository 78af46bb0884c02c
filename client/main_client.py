#!/usr/bin/env python3
"""
Chat Relay Client - line mode

Reads chat lines from stdin and prints every frame received from the server
unchanged. This is a plain protocol client, not an interactive terminal UI.
"""

import argparse
import sys
import os
import threading
from typing import Optional, TextIO

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from client.chat.chat_client import ChatClient
from client.utils.config import ClientConfig
from client.utils.logger import logger
from common.constants import DEFAULT_HOST, DEFAULT_PORT
from common.protocol_definitions import ProtocolError

QUIT_COMMAND = '/quit'


class LineClient:
    """Pipes stdin to the server and server frames to stdout."""

    def __init__(self, config: ClientConfig, output: TextIO = sys.stdout):
        self.config = config
        self.output = output
        self.chat_client = ChatClient(config.host, config.port, timeout=config.connect_timeout)
        self._receiver: Optional[threading.Thread] = None
        self.running = False

    def start(self):
        """Connect, authenticate and start the receiver thread."""
        self.chat_client.connect()
        self.chat_client.authenticate(self.config.username)
        # Reads must block indefinitely once authenticated.
        self.chat_client.sock.settimeout(None)
        self.running = True
        self._receiver = threading.Thread(target=self.receive_loop, name='receiver', daemon=True)
        self._receiver.start()

    def receive_loop(self):
        """Print frames until the server closes the connection."""
        try:
            while self.running:
                line = self.chat_client.read_line()
                if line is None:
                    logger.info("Server closed the connection")
                    break
                print(line, file=self.output, flush=True)
        except OSError as e:
            if self.running:
                logger.log_error("receive", e)
        finally:
            self.running = False

    def send_lines(self, lines):
        """Send each non-empty line as chat until '/quit' or the connection drops."""
        for line in lines:
            text = line.rstrip('\r\n')
            if not self.running:
                break
            if text == QUIT_COMMAND:
                break
            if not text:
                continue
            try:
                self.chat_client.send_chat(text)
            except ProtocolError as e:
                logger.warning(f"Not sent: {e}")
            except OSError as e:
                logger.log_error("send", e)
                break

    def stop(self):
        self.running = False
        self.chat_client.disconnect()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Chat Relay Client')
    parser.add_argument('--host', type=str, default=DEFAULT_HOST,
                       help=f'Server host (default: {DEFAULT_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                       help=f'Server port (default: {DEFAULT_PORT})')
    parser.add_argument('--username', type=str, default=None,
                       help='Username (asked on stdin when omitted)')
    args = parser.parse_args(argv)

    username = args.username
    if not username:
        username = input("Enter username: ").strip()

    client = LineClient(ClientConfig(args.host, args.port, username))
    try:
        client.start()
    except (OSError, ProtocolError) as e:
        logger.error(f"Could not join the chat: {e}")
        client.chat_client.close()
        return 1

    try:
        client.send_lines(sys.stdin)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        client.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
