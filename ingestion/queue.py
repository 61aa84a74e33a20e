"""
Background embedding queue for chat messages.

Messages are embedded outside the request path: ``submit`` returns
immediately and a worker task embeds queued messages one at a time. Failures
are logged and counted, never raised to the submitter.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

from ingestion.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)

EmbeddingWriter = Callable[[str, list[float]], Awaitable[None]]

ROLE_PREFIXES = {
    "user": "User question: ",
    "assistant": "Assistant response: ",
}


@dataclass
class MessageEmbeddingJob:
    """A chat message waiting for its embedding."""

    message_id: str
    content: str
    role: Literal["user", "assistant"]

    @property
    def text(self) -> str:
        """Content prefixed with its role, as embedded."""
        return ROLE_PREFIXES[self.role] + self.content


@dataclass
class EmbeddingQueueStats:
    """Counters for the background queue."""

    submitted: int = 0
    processed: int = 0
    failed: int = 0
    last_error: str | None = None

    @property
    def pending(self) -> int:
        return self.submitted - self.processed - self.failed


class EmbeddingQueue:
    """
    Asyncio-backed queue that embeds chat messages in the background.

    Usage:
        queue = EmbeddingQueue(EmbeddingClient(), client.save_message_embedding)
        queue.start()
        queue.submit("msg-1", "What are our brand colors?", "user")
        ...
        await queue.close()
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        writer: EmbeddingWriter,
        maxsize: int = 0,
    ):
        """
        Initialize the queue.

        Args:
            embedding_client: Embedding provider
            writer: Coroutine storing (message_id, embedding)
            maxsize: Queue bound; 0 means unbounded
        """
        self.embedding_client = embedding_client
        self.writer = writer
        self.stats = EmbeddingQueueStats()
        self._queue: asyncio.Queue[MessageEmbeddingJob] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker task on the running event loop."""
        if not self.running:
            self._worker = asyncio.get_running_loop().create_task(self._run())
            logger.info("Embedding queue worker started")

    def submit(self, message_id: str, content: str, role: Literal["user", "assistant"]) -> bool:
        """
        Queue a message for embedding without waiting.

        Returns:
            False if the message was rejected (empty content, unknown role, queue full)
        """
        if not message_id or not content or role not in ROLE_PREFIXES:
            logger.warning(f"Rejected embedding job for message {message_id!r}: invalid fields")
            return False

        try:
            self._queue.put_nowait(MessageEmbeddingJob(message_id, content, role))
        except asyncio.QueueFull:
            logger.warning(f"Embedding queue full, dropping message {message_id}")
            return False

        self.stats.submitted += 1
        return True

    async def join(self) -> None:
        """Wait until every submitted job has been processed or failed."""
        await self._queue.join()

    async def close(self) -> None:
        """Drain the queue, then stop the worker."""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info(
            f"Embedding queue closed: {self.stats.processed} processed, "
            f"{self.stats.failed} failed"
        )

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
            finally:
                self._queue.task_done()

    async def _process(self, job: MessageEmbeddingJob) -> None:
        try:
            embedding = await self.embedding_client.embed_single(job.text)
            await self.writer(job.message_id, embedding)
        except Exception as e:
            self.stats.failed += 1
            self.stats.last_error = f"{job.message_id}: {e}"
            logger.error(f"Failed to embed message {job.message_id}: {e}")
            return

        self.stats.processed += 1
        logger.debug(f"Embedded message {job.message_id}")
