"""
Broadcast worker module.

A single thread drains the broadcast queue and fans every message out to all
registered connections.
"""

import threading
from typing import Optional

from common.constants import MessageTypes
from common.protocol_definitions import Message, ProtocolError, create_chat_frame, create_notify_frame
from server.chat.broadcast_queue import CLOSED, BroadcastQueue
from server.chat.client_registry import ClientRecord, ClientRegistry
from server.utils.logger import logger


class BroadcastWorker:
    """Consumer side of the broadcast queue."""

    def __init__(self, message_queue: BroadcastQueue, registry: ClientRegistry):
        self.queue = message_queue
        self.registry = registry
        self.thread: Optional[threading.Thread] = None
        self.delivered = 0

    def start(self):
        """Start the worker thread."""
        self.thread = threading.Thread(target=self.run, name='broadcast-worker', daemon=True)
        self.thread.start()
        logger.info("Broadcast worker started")

    def join(self, timeout: Optional[float] = None):
        if self.thread is not None:
            self.thread.join(timeout)

    def run(self):
        """Dequeue and fan out until the queue reports CLOSED."""
        while True:
            message = self.queue.dequeue_blocking()
            if message is CLOSED:
                break
            try:
                self.broadcast(message)
            except ProtocolError as e:
                logger.log_error("broadcast", e)
        logger.info("Broadcast worker exiting")

    def encode_frame(self, message: Message) -> bytes:
        """Pick the wire frame from the message kind."""
        if message.kind == MessageTypes.NOTIFY:
            return create_notify_frame(message.content)
        if message.kind == MessageTypes.MSG:
            return create_chat_frame(message.sender, message.content)
        raise ProtocolError(f"Cannot broadcast a {message.kind} message")

    def broadcast(self, message: Message) -> int:
        """
        Hand one encoded frame to every registered connection.

        Runs under the registry lock, but each hand-off is a non-blocking put
        into the recipient's outbound queue. A recipient whose queue is full
        or closed is skipped and logged. Returns the number of recipients.
        """
        frame = self.encode_frame(message)
        if message.kind == MessageTypes.NOTIFY:
            logger.log_notification(message.content)
        else:
            logger.log_chat(message.sender, message.content)

        recipients = 0

        def deliver(record: ClientRecord):
            nonlocal recipients
            if record.connection.send(frame):
                recipients += 1
            else:
                logger.warning(f"Dropped broadcast for '{record.username}': outbound queue full or closed")

        self.registry.for_each(deliver)
        self.delivered += 1
        logger.debug(f"[BROADCAST] {message.kind} delivered to {recipients} client(s)")
        return recipients
