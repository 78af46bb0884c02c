#!/usr/bin/env python3
"""
Unit tests for server/chat/connection_handler.py

Drives a handler over a socketpair:
- Authentication outcomes and their response lines
- Chat frames re-stamped with the authenticated username
- Ignored malformed frames, rejected oversized content
- The disconnect path for DISCONNECT, EOF and shutdown
"""

import socket
import threading
import unittest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.constants import MessageTypes
from common.protocol_definitions import FrameReader, Message
from server.chat.broadcast_queue import BroadcastQueue
from server.chat.client_connection import ClientConnection
from server.chat.client_registry import ClientRegistry
from server.chat.connection_handler import ConnectionHandler, ConnectionState


class TestConnectionHandler(unittest.TestCase):
    """Handler state machine over a real socket pair."""

    def setUp(self):
        self.registry = ClientRegistry(capacity=50)
        self.queue = BroadcastQueue()
        self.shutdown = threading.Event()
        self.server_sock, self.client_sock = socket.socketpair()
        self.client_sock.settimeout(3)
        self.client_reader = FrameReader(self.client_sock.recv)
        self.connection = ClientConnection(self.server_sock, ('test', 0))
        self.handler = ConnectionHandler(
            self.connection, self.registry, self.queue, self.shutdown,
            poll_interval=0.05, join_timeout=1)
        self.thread = threading.Thread(target=self.handler.run, daemon=True)
        self.thread.start()

    def tearDown(self):
        self.shutdown.set()
        self.client_sock.close()
        self.thread.join(3)

    def send(self, data: bytes):
        self.client_sock.sendall(data)

    def read_line(self):
        line = self.client_reader.read_frame()
        return None if line is None else line.decode()

    def next_queued(self):
        return self.queue.dequeue_blocking(timeout=3)

    def finish(self):
        self.thread.join(3)
        self.assertFalse(self.thread.is_alive())
        self.assertIs(self.handler.state, ConnectionState.CLOSED)

    def login(self, username='alice'):
        self.send(f'AUTH:{username}\n'.encode())
        self.assertEqual(self.read_line(), 'AUTH_OK')
        self.assertEqual(self.next_queued(), Message(MessageTypes.NOTIFY, '', f'{username} joined the chat'))

    def test_successful_authentication(self):
        self.login('alice')
        self.assertIs(self.handler.state, ConnectionState.ACTIVE)
        self.assertEqual(self.registry.snapshot_usernames(), ['alice'])

    def test_duplicate_username(self):
        self.registry.try_add(object(), 'alice')
        self.send(b'AUTH:alice\n')
        self.assertEqual(self.read_line(), 'AUTH_FAILED:Username already taken')
        self.assertIsNone(self.read_line())
        self.finish()
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(len(self.queue), 0)

    def test_invalid_username(self):
        self.send(b'AUTH:bad name\n')
        self.assertEqual(self.read_line(), 'AUTH_FAILED:Invalid username')
        self.assertIsNone(self.read_line())
        self.finish()
        self.assertEqual(len(self.registry), 0)

    def test_overlong_username_is_rejected_not_truncated(self):
        self.send(b'AUTH:' + b'a' * 40 + b'\n')
        self.assertEqual(self.read_line(), 'AUTH_FAILED:Invalid username')
        self.finish()
        self.assertEqual(len(self.registry), 0)

    def test_first_frame_must_be_auth(self):
        self.send(b'MSG:alice:hi\n')
        self.assertEqual(self.read_line(), 'ERROR:Invalid authentication format')
        self.assertIsNone(self.read_line())
        self.finish()

    def test_garbage_instead_of_auth(self):
        self.send(b'hello there\n')
        self.assertEqual(self.read_line(), 'ERROR:Invalid authentication format')
        self.finish()

    def test_server_full(self):
        self.registry.capacity = 1
        self.registry.try_add(object(), 'bob')
        self.send(b'AUTH:alice\n')
        self.assertEqual(self.read_line(), 'ERROR:Server is full')
        self.finish()
        self.assertEqual(self.registry.snapshot_usernames(), ['bob'])

    def test_close_before_auth(self):
        self.client_sock.shutdown(socket.SHUT_WR)
        self.finish()
        self.assertEqual(len(self.queue), 0)

    def test_chat_sender_is_overwritten(self):
        self.login('alice')
        self.send(b'MSG:mallory:hi: there\n')
        self.assertEqual(self.next_queued(), Message(MessageTypes.MSG, 'alice', 'hi: there'))

    def test_auth_and_chat_in_one_packet(self):
        self.send(b'AUTH:alice\nMSG:alice:first\n')
        self.assertEqual(self.read_line(), 'AUTH_OK')
        self.assertEqual(self.next_queued().content, 'alice joined the chat')
        self.assertEqual(self.next_queued(), Message(MessageTypes.MSG, 'alice', 'first'))

    def test_malformed_frames_are_ignored(self):
        self.login('alice')
        self.send(b'BOGUS:frame\nMSG:alice\nAUTH:alice\nMSG:alice:ok\n')
        self.assertEqual(self.next_queued(), Message(MessageTypes.MSG, 'alice', 'ok'))
        self.assertIs(self.handler.state, ConnectionState.ACTIVE)

    def test_oversized_content_is_rejected(self):
        self.login('alice')
        self.send(b'MSG:alice:' + b'x' * 300 + b'\n')
        self.assertEqual(self.read_line(), 'ERROR:Message too long')
        self.send(b'MSG:alice:short\n')
        self.assertEqual(self.next_queued().content, 'short')

    def test_empty_content_gets_error(self):
        self.login('alice')
        self.send(b'MSG:alice:\n')
        self.assertEqual(self.read_line(), 'ERROR:Empty message')
        self.assertIs(self.handler.state, ConnectionState.ACTIVE)
        self.send(b'MSG:alice:ok\n')
        self.assertEqual(self.next_queued(), Message(MessageTypes.MSG, 'alice', 'ok'))
        self.assertEqual(len(self.queue), 0)

    def test_disconnect_frame(self):
        self.login('alice')
        self.send(b'DISCONNECT:alice\n')
        self.assertEqual(self.next_queued(), Message(MessageTypes.NOTIFY, '', 'alice left the chat'))
        self.finish()
        self.assertFalse(self.registry.exists('alice'))
        self.assertTrue(self.connection.closed)

    def test_abrupt_close(self):
        self.login('alice')
        self.client_sock.close()
        self.assertEqual(self.next_queued().content, 'alice left the chat')
        self.finish()
        self.assertEqual(len(self.registry), 0)

    def test_shutdown_event_ends_session(self):
        self.login('alice')
        self.shutdown.set()
        self.assertEqual(self.next_queued().content, 'alice left the chat')
        self.finish()
        self.assertEqual(len(self.registry), 0)

    def test_disconnect_runs_once(self):
        self.login('alice')
        self.send(b'DISCONNECT:alice\n')
        self.finish()
        self.handler.disconnect('again')
        self.assertEqual(self.next_queued().content, 'alice left the chat')
        self.assertEqual(len(self.queue), 0)


if __name__ == '__main__':
    unittest.main()
