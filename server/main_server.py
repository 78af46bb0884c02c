#!/usr/bin/env python3
"""
Chat Relay Server - Main Entry Point

This is the main entry point for the server application.
It wires the client registry, the broadcast queue, the broadcast worker and
one handler thread per accepted connection into a single server.
"""

import argparse
import logging
import socket
import sys
import os
import threading
from typing import List, Optional

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.constants import DEFAULT_SERVER_HOST, DEFAULT_PORT, MAX_CLIENTS, QUEUE_SIZE
from server.chat.broadcast_queue import BroadcastQueue
from server.chat.broadcast_worker import BroadcastWorker
from server.chat.client_connection import ClientConnection
from server.chat.client_registry import ClientRegistry
from server.chat.connection_handler import ConnectionHandler
from server.utils.config import ServerConfig
from server.utils.logger import logger


class ServerStartupError(Exception):
    """The listening socket could not be created, bound or put in listen mode."""


class ChatRelayServer:
    """Main server class: accept loop plus shared chat state."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.registry = ClientRegistry(self.config.max_clients)
        self.queue = BroadcastQueue(self.config.queue_capacity)
        self.shutdown_event = threading.Event()
        # The worker stops on queue.close(), after the handlers have queued their leave notices.
        self.worker = BroadcastWorker(self.queue, self.registry)
        self.server_socket: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._handler_threads: List[threading.Thread] = []
        self._handlers_lock = threading.Lock()

    @property
    def address(self):
        """Bound (host, port); useful when the configured port is 0."""
        if self.server_socket is None:
            return None
        return self.server_socket.getsockname()

    def bind(self):
        """Create the listening socket."""
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise ServerStartupError(f"Socket creation failed: {e}") from e
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise ServerStartupError(
                f"Cannot listen on {self.config.host}:{self.config.port}: {e}") from e
        # accept() wakes up periodically to check for shutdown
        sock.settimeout(self.config.poll_interval)
        self.server_socket = sock
        logger.info(f"Server listening on {self.address}")
        logger.info(f"Maximum clients: {self.config.max_clients}, queue capacity: {self.config.queue_capacity}")

    def start(self):
        """Bind and run the accept loop on a background thread."""
        self.bind()
        self.worker.start()
        self._accept_thread = threading.Thread(target=self.accept_loop, name='accept-loop', daemon=True)
        self._accept_thread.start()

    def serve_forever(self):
        """Bind and run the accept loop on the calling thread until shutdown."""
        self.bind()
        self.worker.start()
        self.accept_loop()

    def accept_loop(self):
        """Accept connections and spawn a handler thread for each."""
        while not self.shutdown_event.is_set():
            try:
                client_sock, addr = self.server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.shutdown_event.is_set():
                    break
                logger.log_error("accept", e)
                continue
            self.handle_client(client_sock, addr)
        logger.info("Accept loop stopped")

    def handle_client(self, client_sock: socket.socket, addr: tuple):
        """Spawn the handler thread for an accepted socket."""
        connection = ClientConnection(
            client_sock, addr,
            outbound_size=self.config.outbound_queue_size,
            send_timeout=self.config.send_timeout)
        handler = ConnectionHandler(
            connection, self.registry, self.queue, self.shutdown_event,
            poll_interval=self.config.poll_interval,
            join_timeout=self.config.shutdown_join_timeout)
        thread = threading.Thread(target=handler.run, name=f"client-{addr}", daemon=True)
        with self._handlers_lock:
            self._handler_threads = [t for t in self._handler_threads if t.is_alive()]
            self._handler_threads.append(thread)
        thread.start()

    def shutdown(self):
        """Stop accepting, disconnect every client and stop the worker."""
        if self.shutdown_event.is_set():
            return
        logger.info("Server shutting down...")
        self.shutdown_event.set()

        if self.server_socket is not None:
            try:
                self.server_socket.close()
            except OSError as e:
                logger.log_error("closing listening socket", e)
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(self.config.shutdown_join_timeout)

        connections = self.registry.connections()
        logger.info(f"Closing {len(connections)} client connection(s)")
        for connection in connections:
            connection.abort()

        with self._handlers_lock:
            handler_threads = list(self._handler_threads)
        for thread in handler_threads:
            thread.join(self.config.shutdown_join_timeout)

        self.queue.close()
        self.worker.join(self.config.shutdown_join_timeout)
        logger.info("Shutdown complete")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Chat Relay Server')
    parser.add_argument('--host', type=str, default=DEFAULT_SERVER_HOST,
                       help=f'Host to bind to (default: {DEFAULT_SERVER_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                       help=f'TCP port to listen on (default: {DEFAULT_PORT})')
    parser.add_argument('--max-clients', type=int, default=MAX_CLIENTS,
                       help=f'Maximum authenticated clients (default: {MAX_CLIENTS})')
    parser.add_argument('--queue-size', type=int, default=QUEUE_SIZE,
                       help=f'Broadcast queue capacity (default: {QUEUE_SIZE})')
    parser.add_argument('--log-level', type=str, default='INFO',
                       choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                       help='Console log level (default: INFO)')
    parser.add_argument('--logs-dir', type=str, default=None,
                       help='Directory for the chat transcript (default: disabled)')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logger.configure(args.logs_dir, getattr(logging, args.log_level))

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            max_clients=args.max_clients,
            queue_capacity=args.queue_size,
            logs_dir=args.logs_dir
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    server = ChatRelayServer(config)
    try:
        server.serve_forever()
    except ServerStartupError as e:
        logger.error(f"Server failed to start: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        server.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
