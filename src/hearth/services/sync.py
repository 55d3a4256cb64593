"""Meta-channel and chat-channel synchronization.

Each community gets a single consumer task fed by a bounded queue, so events
for one community are applied strictly one at a time while different
communities sync concurrently. ``SyncCoordinator`` owns the mapping from
community id to worker; there is no module-level registry.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from hearth.core.settings import settings
from hearth.db.time import as_utc
from hearth.errors import HearthError, SyncError, ValidationError
from hearth.services.codec import decode_message, decode_meta
from hearth.services.dag import MessageGraph, MessageRecord
from hearth.services.engine import ApplyResult, CommunityEngine
from hearth.services.state import MetaEnvelope
from hearth.services.transport import Transport, TransportError, TransportItem

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (TransportError, OSError, ConnectionError, TimeoutError)


@dataclass
class SyncReport:
    """Counts for one sync cycle."""

    applied: int = 0
    skipped: int = 0
    invalid: int = 0
    last_marker: int | None = None


def envelope_from_item(item: TransportItem) -> MetaEnvelope | ValidationError:
    """Decode a transport item into a meta envelope."""
    event = decode_meta(item.payload)
    if isinstance(event, ValidationError):
        return event
    return MetaEnvelope(
        event=event,
        marker=item.marker,
        sent_at=as_utc(item.sent_at),
        sender=item.sender,
    )


class CommunitySyncWorker:
    """Serializes event application for one community."""

    def __init__(
        self,
        engine: CommunityEngine,
        community_id: str,
        queue_size: int | None = None,
    ) -> None:
        self.engine = engine
        self.community_id = community_id
        size = settings.sync_queue_size if queue_size is None else queue_size
        self._queue: asyncio.Queue[tuple[MetaEnvelope, asyncio.Future[ApplyResult]]] = (
            asyncio.Queue(maxsize=size)
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the consumer task."""
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop consuming. Already committed events stay committed."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            future.cancel()

    async def submit(self, envelope: MetaEnvelope) -> ApplyResult:
        """Queue ``envelope`` and wait until it has been applied.

        Blocks while the queue is full, which back-pressures the producer.
        """
        if not self.running:
            await self.start()
        future: asyncio.Future[ApplyResult] = asyncio.get_running_loop().create_future()
        await self._queue.put((envelope, future))
        return await future

    async def _run(self) -> None:
        while True:
            envelope, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                try:
                    result = await self.engine.apply(self.community_id, envelope)
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as err:  # handed to the submitter
                    if not future.done():
                        future.set_exception(err)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()


class SyncCoordinator:
    """Runs sync for many communities against one transport."""

    def __init__(
        self,
        engine: CommunityEngine,
        transport: Transport,
        queue_size: int | None = None,
    ) -> None:
        self.engine = engine
        self.transport = transport
        self._queue_size = queue_size
        self._workers: dict[str, CommunitySyncWorker] = {}
        self._followers: dict[str, asyncio.Task[None]] = {}

    def worker_for(self, community_id: str) -> CommunitySyncWorker:
        worker = self._workers.get(community_id)
        if worker is None:
            worker = CommunitySyncWorker(self.engine, community_id, self._queue_size)
            self._workers[community_id] = worker
        return worker

    async def sync_once(self, community_id: str) -> SyncReport:
        """Pull everything after the persisted cursor and apply it in order.

        Undecodable items are counted and skipped. Events already committed
        stay committed if a later one fails.

        Raises:
            SyncError: If the transport could not be read.
            PersistenceError: If an event could not be stored.
        """
        handle = await self.engine.open(community_id)
        cursor = handle.state.last_marker
        try:
            items = await self.transport.pull(community_id, cursor)
        except _TRANSPORT_ERRORS as err:
            logger.warning("Pull failed for community %s: %s", community_id, err)
            raise SyncError(f"Could not pull meta events for {community_id}") from err

        report = SyncReport(last_marker=cursor)
        worker = self.worker_for(community_id)
        for item in items:
            result = await self._submit_item(worker, item)
            if result is None:
                report.invalid += 1
            elif result.applied:
                report.applied += 1
            else:
                report.skipped += 1
            if result is not None:
                report.last_marker = result.state.last_marker
        if items:
            logger.info(
                "Synced %s: %d applied, %d skipped, %d invalid",
                community_id,
                report.applied,
                report.skipped,
                report.invalid,
            )
        return report

    async def _submit_item(
        self, worker: CommunitySyncWorker, item: TransportItem
    ) -> ApplyResult | None:
        envelope = envelope_from_item(item)
        if isinstance(envelope, ValidationError):
            logger.warning(
                "Skipping invalid meta event %s in %s: %s", item.id, item.group_ref, envelope
            )
            return None
        return await worker.submit(envelope)

    async def follow(self, community_id: str) -> None:
        """Start applying live events for ``community_id`` in the background."""
        task = self._followers.get(community_id)
        if task is None or task.done():
            self._followers[community_id] = asyncio.create_task(self._follow(community_id))

    async def _follow(self, community_id: str) -> None:
        worker = self.worker_for(community_id)
        try:
            async for item in self.transport.subscribe(community_id):
                try:
                    await self._submit_item(worker, item)
                except HearthError as err:
                    logger.error("Live event %s for %s failed: %s", item.id, community_id, err)
        except _TRANSPORT_ERRORS as err:
            logger.warning("Subscription for %s ended: %s", community_id, err)

    async def poll(self, community_id: str, stopping: asyncio.Event) -> None:
        """Call :meth:`sync_once` on an interval until ``stopping`` is set."""
        interval = max(0.1, float(settings.sync_pull_interval_seconds))
        while not stopping.is_set():
            try:
                await self.sync_once(community_id)
            except SyncError as err:
                logger.warning("Polling %s: %s", community_id, err)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stopping.wait(), timeout=interval)

    async def stop(self) -> None:
        """Cancel live subscriptions and stop every worker."""
        for task in self._followers.values():
            task.cancel()
        for task in self._followers.values():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._followers.clear()
        for worker in self._workers.values():
            await worker.stop()


class MessageIngestor:
    """Decodes chat payloads and stores them with their parent edges."""

    def __init__(self, graph: MessageGraph, transport: Transport | None = None) -> None:
        self.graph = graph
        self.transport = transport

    def record_from_item(self, channel_id: str, item: TransportItem) -> MessageRecord | None:
        message = decode_message(item.payload)
        if isinstance(message, ValidationError):
            logger.warning("Skipping invalid message %s in %s: %s", item.id, channel_id, message)
            return None
        parents = list(message.reply_to)
        for quote in message.quotes or ():
            parents.append(quote.parent_message_id)
        return MessageRecord(
            id=item.id,
            channel_id=channel_id,
            sender=item.sender,
            text=message.text,
            created_at=as_utc(item.sent_at),
            sender_handle=message.sender_handle,
            edit_of=message.edit_of,
            delete_of=message.delete_of,
            parent_ids=tuple(dict.fromkeys(parents)),
            raw_content=item.payload,
        )

    async def ingest(self, channel_id: str, item: TransportItem) -> MessageRecord | None:
        """Store one delivered message; returns None if it failed validation."""
        record = self.record_from_item(channel_id, item)
        if record is None:
            return None
        await asyncio.to_thread(self.graph.ingest, record)
        return record

    async def sync_channel(
        self, channel_id: str, group_ref: str, after: int | None = None
    ) -> SyncReport:
        """Pull and store a channel's messages.

        Raises:
            SyncError: If the transport could not be read.
        """
        if self.transport is None:
            raise SyncError("No transport configured for message sync")
        try:
            items = await self.transport.pull(group_ref, after)
        except _TRANSPORT_ERRORS as err:
            raise SyncError(f"Could not pull messages for channel {channel_id}") from err
        report = SyncReport(last_marker=after)
        for item in items:
            if await self.ingest(channel_id, item) is None:
                report.invalid += 1
            else:
                report.applied += 1
            if report.last_marker is None or item.marker > report.last_marker:
                report.last_marker = item.marker
        return report
