"""
MessageStore - support message documents.

Messages of every user share the collection named by the last segment of
``MESSAGES_PATH``. Each document records its owner (``userId``) and the
rendered per-user collection path (``parentPath``), so the layout mirrors
``users/{userId}/support/default/messages/{messageId}``.

Status writes are conditional on the message not being delivered yet
(status "pending" or no status at all, as written by the app's client), which
keeps PENDING -> SENT / PENDING -> FAILED one-way. ``createdAt`` is assigned
by the database server on insert.
"""

from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from support_bridge.core import metrics
from support_bridge.core.logging_config import get_logger
from support_bridge.core.paths import DocumentPathTemplate
from support_bridge.models.message import ErrorType, MessageStatus, SupportMessage

logger = get_logger(__name__)


# Messages whose delivery outcome has not been recorded yet
UNDELIVERED = {"$nin": [MessageStatus.SENT.value, MessageStatus.FAILED.value]}


def _object_id(message_id: str) -> Any:
    try:
        return ObjectId(message_id)
    except (InvalidId, TypeError):
        return message_id


class MessageStore:
    """Appends and updates support messages."""

    def __init__(self, database: AsyncIOMotorDatabase, template: DocumentPathTemplate):
        self.template = template
        self.collection: AsyncIOMotorCollection = database[template.collection_name]

    def _track(self, operation: str, status: str = "success"):
        metrics.mongodb_operations_total.labels(
            operation=operation, collection=self.collection.name, status=status
        ).inc()

    async def insert(self, user_id: str, message: SupportMessage) -> str:
        """Add a message to the user's conversation and return its id."""
        document = message.to_document()
        document.pop("createdAt", None)
        document["userId"] = user_id
        document["parentPath"] = self.template.render(user_id)

        object_id = ObjectId()
        await self.collection.update_one(
            {"_id": object_id},
            {"$setOnInsert": document, "$currentDate": {"createdAt": True}},
            upsert=True,
        )
        self._track("insert")

        message_id = str(object_id)
        logger.info(
            "support_message_stored",
            user_id=user_id,
            support_message_id=message_id,
            role=message.role.value,
            status=message.status.value,
        )
        return message_id

    async def get(self, message_id: str) -> Optional[SupportMessage]:
        document = await self.collection.find_one({"_id": _object_id(message_id)})
        self._track("find_one")
        return SupportMessage.from_document(document) if document else None

    async def update_delivery_outcome(
        self,
        message_id: str,
        status: MessageStatus,
        thread_ts: Optional[str],
    ) -> bool:
        """
        Record the delivery outcome of a PENDING message.

        Returns False when an outcome was already recorded (or the message is gone).
        """
        update: Dict[str, Any] = {"status": status.value}
        if thread_ts:
            update["slackThreadTs"] = thread_ts

        result = await self.collection.update_one(
            {"_id": _object_id(message_id), "status": UNDELIVERED},
            {"$set": update},
        )
        self._track("update")

        if result.matched_count == 0:
            logger.warning(
                "support_message_not_pending",
                support_message_id=message_id,
                requested_status=status.value,
            )
            return False
        return True

    async def mark_failed(self, message_id: str, error_kind: ErrorType) -> bool:
        """Set status=failed plus a client-visible error classification."""
        result = await self.collection.update_one(
            {"_id": _object_id(message_id), "status": UNDELIVERED},
            {"$set": {"status": MessageStatus.FAILED.value, "error": error_kind.value}},
        )
        self._track("update")

        if result.matched_count == 0:
            logger.warning("support_message_not_pending", support_message_id=message_id, requested_status="failed")
            return False
        return True
