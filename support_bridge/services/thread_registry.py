"""
ThreadRegistry - per-user Slack thread bindings.

Each user has at most one binding document at their rendered ``CONFIG_PATH``.
The document's ``_id`` is the rendered path, so a user can never have two
binding documents, and the first ``slackThreadTs`` written wins:

- create_binding() only sets ``slackThreadTs`` while it is still absent
  (compare-and-set). Two first messages racing each other open two Slack
  threads, but only one is bound; the loser reads the winner back.
- resolve_user_by_thread() is the reverse lookup used by inbound events. It
  queries the whole bindings collection (served by the
  (slackThreadTs, _id) index) with limit 2, which is enough to tell
  "none", "exactly one" and "ambiguous" apart in one round trip.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from support_bridge.core import metrics
from support_bridge.core.exceptions import DeliveryError, PathTemplateError
from support_bridge.core.logging_config import get_logger
from support_bridge.core.paths import DocumentPathTemplate
from support_bridge.models.message import utcnow
from support_bridge.models.thread import ThreadBinding

logger = get_logger(__name__)


class ResolutionOutcome(str, Enum):
    NOT_FOUND = "not_found"
    FOUND = "found"
    AMBIGUOUS = "ambiguous"


@dataclass
class ThreadResolution:
    outcome: ResolutionOutcome
    user_id: Optional[str] = None
    paths: List[str] = field(default_factory=list)


class ThreadRegistry:
    """Reads and writes the binding between a user and their Slack thread."""

    def __init__(self, database: AsyncIOMotorDatabase, template: DocumentPathTemplate):
        self.template = template
        self.collection: AsyncIOMotorCollection = database[template.collection_name]

    def _binding_from_document(self, user_id: str, document: Dict[str, Any]) -> ThreadBinding:
        data = {"userId": user_id, "slackThreadTs": document["slackThreadTs"]}
        if document.get("threadCreatedAt") is not None:
            data["threadCreatedAt"] = document["threadCreatedAt"]
        return ThreadBinding.from_document(data)

    async def get_binding(self, user_id: str) -> Optional[ThreadBinding]:
        """Return the user's binding, or None if no thread was opened yet."""
        path = self.template.render(user_id)
        document = await self.collection.find_one({"_id": path})
        metrics.mongodb_operations_total.labels(
            operation="find_one", collection=self.collection.name, status="success"
        ).inc()

        if not document or not document.get("slackThreadTs"):
            return None
        return self._binding_from_document(user_id, document)

    async def create_binding(self, user_id: str, thread_ts: str) -> ThreadBinding:
        """
        Bind thread_ts to the user unless a thread is already bound.

        Returns the binding that is stored after the write, which is the
        caller's own thread_ts unless another writer got there first.
        Other fields already on the document are left untouched.
        """
        path = self.template.render(user_id)
        created_at = utcnow()

        try:
            await self.collection.update_one(
                {"_id": path, "slackThreadTs": {"$exists": False}},
                {"$set": {
                    "userId": user_id,
                    "slackThreadTs": thread_ts,
                    "threadCreatedAt": created_at,
                }},
                upsert=True,
            )
            metrics.mongodb_operations_total.labels(
                operation="upsert", collection=self.collection.name, status="success"
            ).inc()
        except DuplicateKeyError:
            # The document exists with a slackThreadTs already; fall through and read it
            metrics.mongodb_operations_total.labels(
                operation="upsert", collection=self.collection.name, status="conflict"
            ).inc()

        binding = await self.get_binding(user_id)
        if binding is None:
            raise DeliveryError(f"Thread binding for user {user_id} missing after write")

        if binding.slack_thread_ts != thread_ts:
            logger.warning(
                "thread_binding_already_set",
                user_id=user_id,
                requested_thread_ts=thread_ts,
                bound_thread_ts=binding.slack_thread_ts,
            )
        else:
            logger.info("thread_binding_created", user_id=user_id, thread_ts=thread_ts)

        return binding

    async def resolve_user_by_thread(self, thread_ts: str) -> ThreadResolution:
        """Find the single user whose binding points at thread_ts."""
        cursor = self.collection.find({"slackThreadTs": thread_ts}, {"_id": 1}).limit(2)
        documents = await cursor.to_list(length=2)
        metrics.mongodb_operations_total.labels(
            operation="find", collection=self.collection.name, status="success"
        ).inc()

        paths = [str(document["_id"]) for document in documents]

        if not paths:
            return ThreadResolution(outcome=ResolutionOutcome.NOT_FOUND)

        if len(paths) > 1:
            return ThreadResolution(outcome=ResolutionOutcome.AMBIGUOUS, paths=paths)

        try:
            user_id = self.template.extract_user_id(paths[0])
        except PathTemplateError:
            logger.error("thread_binding_path_mismatch", thread_ts=thread_ts, path=paths[0])
            raise

        return ThreadResolution(outcome=ResolutionOutcome.FOUND, user_id=user_id, paths=paths)
