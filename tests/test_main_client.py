#!/usr/bin/env python3
"""
Tests for client/main_client.py and the configuration classes.
"""

import io
import time
import unittest
from unittest import mock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from client.chat.chat_client import ChatClient
from client.main_client import LineClient, main
from client.utils.config import ClientConfig
from server.main_server import ChatRelayServer, build_parser
from server.utils.config import ServerConfig


class TestLineClient(unittest.TestCase):
    """stdin lines in, server frames out."""

    def setUp(self):
        config = ServerConfig(host='127.0.0.1', port=0)
        config.poll_interval = 0.05
        config.shutdown_join_timeout = 1.0
        self.server = ChatRelayServer(config)
        self.server.start()
        self.host, self.port = self.server.address

    def tearDown(self):
        self.server.shutdown()

    def test_lines_are_sent_and_frames_printed(self):
        output = io.StringIO()
        client = LineClient(ClientConfig(self.host, self.port, 'alice'), output=output)
        client.start()
        client.send_lines(['hello there\n', '\n', '/quit\n', 'never sent\n'])

        deadline = time.monotonic() + 3
        while 'MSG:alice:hello there' not in output.getvalue() and time.monotonic() < deadline:
            time.sleep(0.02)
        client.stop()

        printed = output.getvalue().splitlines()
        self.assertIn('NOTIFY:alice joined the chat', printed)
        self.assertIn('MSG:alice:hello there', printed)
        self.assertNotIn('MSG:alice:never sent', printed)

    def test_rejected_login_closes_socket(self):
        alice = ChatClient(self.host, self.port, timeout=3)
        alice.connect()
        alice.authenticate('alice')
        try:
            with mock.patch.object(ChatClient, 'close', autospec=True,
                                   side_effect=ChatClient.close) as close:
                status = main(['--host', self.host, '--port', str(self.port), '--username', 'alice'])
        finally:
            alice.close()
        self.assertEqual(status, 1)
        close.assert_called_once()
        self.assertIsNone(close.call_args[0][0].sock)


class TestConfig(unittest.TestCase):
    """Defaults and validation."""

    def test_server_defaults(self):
        config = ServerConfig()
        self.assertEqual(config.get_connection_info(), {'host': '0.0.0.0', 'port': 8080})
        self.assertEqual(config.get_limits()['max_clients'], 50)
        self.assertEqual(config.get_limits()['queue_capacity'], 100)
        self.assertIsNone(config.get_log_settings()['logs_dir'])

    def test_server_rejects_zero_capacity(self):
        with self.assertRaises(ValueError):
            ServerConfig(max_clients=0)
        with self.assertRaises(ValueError):
            ServerConfig(queue_capacity=0)

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        self.assertEqual(args.port, 8080)
        self.assertEqual(args.max_clients, 50)
        self.assertEqual(args.queue_size, 100)

    def test_client_config(self):
        config = ClientConfig('example', 9999, 'bob')
        self.assertEqual(config.get_connection_info(), {'host': 'example', 'port': 9999, 'username': 'bob'})


if __name__ == '__main__':
    unittest.main()
