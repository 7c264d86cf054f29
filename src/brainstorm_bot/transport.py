# brainstorm_bot/transport.py
"""
Chat transport boundary.

The bot only depends on the ``ChatInterface`` protocol. ``InMemoryChatInterface``
is the in-process implementation used by the CLI and the tests: messages are
queued FIFO and a pump task hands each one to every registered callback in
enqueue order. Coroutine callbacks run as background tasks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field

from .models import ChatMessage, utcnow

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ChatMessage], Union[None, Awaitable[Any]]]


class OutgoingMessage(BaseModel):
    content: str
    channel_id: str
    timestamp: Any = Field(default_factory=utcnow)


@runtime_checkable
class MessageQueue(Protocol):
    def enqueue(self, message: ChatMessage) -> None: ...

    def dequeue(self) -> Optional[ChatMessage]: ...

    def size(self) -> int: ...

    def clear(self) -> None: ...


@runtime_checkable
class ChatInterface(Protocol):
    async def start_listening(self) -> None: ...

    async def stop_listening(self) -> None: ...

    async def send_message(self, content: str, channel_id: str) -> None: ...

    def on_message(self, callback: MessageCallback) -> None: ...

    def is_connected(self) -> bool: ...


class InMemoryMessageQueue:
    """FIFO queue of chat messages."""

    def __init__(self):
        self._queue: deque[ChatMessage] = deque()

    def enqueue(self, message: ChatMessage) -> None:
        self._queue.append(message)

    def dequeue(self) -> Optional[ChatMessage]:
        return self._queue.popleft() if self._queue else None

    def size(self) -> int:
        return len(self._queue)

    def clear(self) -> None:
        self._queue.clear()


class InMemoryChatInterface:
    """In-process transport: messages go in through ``simulate_message``, replies collect in ``sent_messages``."""

    def __init__(self, queue: Optional[MessageQueue] = None):
        self.queue = queue or InMemoryMessageQueue()
        self.sent_messages: list[OutgoingMessage] = []
        self._callbacks: list[MessageCallback] = []
        self._connected = False
        self._wakeup = asyncio.Event()
        self._pump: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    # ===== Lifecycle =====

    async def start_listening(self) -> None:
        if self._connected:
            return
        self._connected = True
        self._pump = asyncio.create_task(self._run_pump(), name="chat-pump")
        logger.info("Chat interface listening")

    async def stop_listening(self) -> None:
        """Stop delivering; messages still queued are discarded."""
        self._connected = False
        self._wakeup.set()
        if self._pump is not None:
            await self._pump
            self._pump = None
        self.queue.clear()
        logger.info("Chat interface stopped")

    def is_connected(self) -> bool:
        return self._connected

    # ===== Messaging =====

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)

    async def send_message(self, content: str, channel_id: str) -> None:
        if not self._connected:
            raise ConnectionError("Chat interface is not connected")
        self.sent_messages.append(OutgoingMessage(content=content, channel_id=channel_id))
        logger.debug("Sent to %s: %s", channel_id, content)

    def simulate_message(self, user_id: str, content: str, message_id: Optional[str] = None) -> ChatMessage:
        """Queue an inbound message as if it had arrived from the chat."""
        message = ChatMessage(id=message_id or f"msg_{uuid.uuid4().hex[:12]}", user_id=user_id, content=content)
        self.queue.enqueue(message)
        self._wakeup.set()
        return message

    async def wait_until_idle(self) -> None:
        """Wait until the queue is empty and every callback task has finished."""
        while self.queue.size() or self._pending:
            if self._pending:
                await asyncio.gather(*list(self._pending), return_exceptions=True)
            else:
                await asyncio.sleep(0)

    # ===== Delivery =====

    async def _run_pump(self) -> None:
        while self._connected:
            await self._wakeup.wait()
            self._wakeup.clear()
            while self._connected and self.queue.size():
                message = self.queue.dequeue()
                if message is not None:
                    self._deliver(message)
            # let scheduled callback tasks start in delivery order
            await asyncio.sleep(0)

    def _deliver(self, message: ChatMessage) -> None:
        for callback in list(self._callbacks):
            result = callback(message)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Message callback failed: %s", exc, exc_info=exc)
