"""
MessageWatcher - the document-creation trigger for the outbound relay.

Follows a MongoDB change stream on the support messages collection and hands
every inserted document to OutboundRelay in its own task, so messages of
different users are relayed in parallel. Change streams need a replica set
(or Atlas); set ENABLE_MESSAGE_WATCHER=false where none is available.

When the stream breaks, the watcher reconnects after WATCHER_RETRY_SECONDS
and resumes after the last event it saw. Whenever it opens a stream without a
resume token (first start, or after the server lost the token's history) it
also sweeps USER messages that are still undelivered, so inserts made while
the process was down are relayed too.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import OperationFailure, PyMongoError

from support_bridge.config import settings
from support_bridge.core.exceptions import PathTemplateError
from support_bridge.core.logging_config import get_logger
from support_bridge.core.paths import DocumentPathTemplate
from support_bridge.models.message import MessageRole
from support_bridge.services.message_store import UNDELIVERED
from support_bridge.services.outbound_relay import OutboundRelay

logger = get_logger(__name__)

INSERT_PIPELINE = [{"$match": {"operationType": "insert"}}]

# InvalidResumeToken, ChangeStreamFatalError, ChangeStreamHistoryLost
RESUME_TOKEN_LOST_CODES = frozenset({260, 280, 286})


class MessageWatcher:
    """Turns support message inserts into outbound relay invocations."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        template: DocumentPathTemplate,
        relay: OutboundRelay,
        retry_seconds: Optional[float] = None,
    ):
        self.collection = collection
        self.template = template
        self.relay = relay
        self.retry_seconds = retry_seconds if retry_seconds is not None else settings.WATCHER_RETRY_SECONDS
        self.resume_token: Optional[Dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._swept_ids: Set[str] = set()
        self._stopping = False

    def start(self) -> None:
        if self._task is None:
            self._stopping = False
            self._task = asyncio.create_task(self._run(), name="support-message-watcher")
            logger.info("message_watcher_started", collection=self.collection.name)

    async def stop(self) -> None:
        self._stopping = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("message_watcher_stopped")

    async def _run(self) -> None:
        while not self._stopping:
            try:
                async with self.collection.watch(
                    INSERT_PIPELINE,
                    resume_after=self.resume_token,
                ) as stream:
                    if self.resume_token is None:
                        await self.sweep_pending()
                    async for change in stream:
                        self.resume_token = change.get("_id")
                        self._dispatch_from_stream(change)
            except asyncio.CancelledError:
                raise
            except PyMongoError as e:
                if isinstance(e, OperationFailure) and e.code in RESUME_TOKEN_LOST_CODES:
                    logger.warning("message_watcher_resume_token_lost", code=e.code)
                    self.resume_token = None
                logger.error(
                    "message_watcher_stream_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    retry_in_seconds=self.retry_seconds,
                )
                await asyncio.sleep(self.retry_seconds)

    async def sweep_pending(self) -> List[asyncio.Task]:
        """Relay USER messages that never got a delivery outcome."""
        cursor = self.collection.find(
            {"role": MessageRole.USER.value, "status": UNDELIVERED}
        ).sort("_id", 1)
        documents = await cursor.to_list(length=None)

        tasks = []
        for document in documents:
            message_id = str(document["_id"])
            if message_id in self._swept_ids:
                continue
            task = self.dispatch({"fullDocument": document})
            if task is not None:
                self._swept_ids.add(message_id)
                tasks.append(task)

        logger.info("message_watcher_swept_pending", count=len(tasks))
        return tasks

    def _dispatch_from_stream(self, change: Dict[str, Any]) -> Optional[asyncio.Task]:
        message_id = str((change.get("fullDocument") or {}).get("_id", ""))
        if message_id in self._swept_ids:
            # Inserted while the sweep ran; already dispatched
            self._swept_ids.discard(message_id)
            return None
        return self.dispatch(change)

    def dispatch(self, change: Dict[str, Any]) -> Optional[asyncio.Task]:
        """Start the relay for one insert event; returns the relay task."""
        document = change.get("fullDocument") or {}
        message_id = str(document.get("_id") or change.get("documentKey", {}).get("_id", ""))

        user_id = self.owner_of(document)
        if not user_id or not message_id:
            logger.warning("message_watcher_unrecognized_document", support_message_id=message_id)
            return None

        task = asyncio.create_task(self.relay.handle_message_created(user_id, message_id, document))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def owner_of(self, document: Dict[str, Any]) -> Optional[str]:
        parent_path = document.get("parentPath")
        if parent_path:
            try:
                return self.template.extract_user_id(parent_path)
            except PathTemplateError:
                logger.warning("message_watcher_foreign_path", parent_path=parent_path)
                return None
        return document.get("userId")
