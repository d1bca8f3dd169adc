"""
IndexProvisioner - creates the (slackThreadTs, _id) index on thread bindings.

Inbound Slack events look their user up by thread ts across all bindings;
this composite index serves that query. Provisioning is one-shot but must be
safe to repeat:

    SUBMITTED -> ACKNOWLEDGED    index created
              -> ALREADY_EXISTS  same keys already indexed (or MongoDB reports a conflict)
              -> FAILED          anything else; raised as ProvisioningError for the caller to retry
"""

from enum import Enum
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import OperationFailure, PyMongoError

from support_bridge.core import metrics
from support_bridge.core.exceptions import ProvisioningError
from support_bridge.core.logging_config import get_logger
from support_bridge.core.paths import DocumentPathTemplate

logger = get_logger(__name__)

SUPPORT_INDEX_KEYS: List[Tuple[str, int]] = [("slackThreadTs", ASCENDING), ("_id", ASCENDING)]
SUPPORT_INDEX_NAME = "slackThreadTs_1__id_1"

# IndexAlreadyExists, IndexOptionsConflict, IndexKeySpecsConflict
ALREADY_EXISTS_CODES = frozenset({68, 85, 86})


class IndexOutcome(str, Enum):
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class IndexProvisioner:
    """Issues the create-index request for the thread bindings collection."""

    def __init__(self, database: AsyncIOMotorDatabase, template: DocumentPathTemplate):
        self.collection: AsyncIOMotorCollection = database[template.collection_name]

    async def _index_exists(self) -> bool:
        indexes = await self.collection.list_indexes().to_list(length=None)
        return any(
            list(index.get("key", {}).items()) == SUPPORT_INDEX_KEYS
            for index in indexes
        )

    async def provision(self) -> IndexOutcome:
        collection_name = self.collection.name
        logger.info("support_index_submitted", collection=collection_name, keys=SUPPORT_INDEX_KEYS)

        try:
            if await self._index_exists():
                outcome = IndexOutcome.ALREADY_EXISTS
            else:
                await self.collection.create_index(SUPPORT_INDEX_KEYS, name=SUPPORT_INDEX_NAME)
                outcome = IndexOutcome.ACKNOWLEDGED

        except OperationFailure as e:
            if e.code in ALREADY_EXISTS_CODES:
                outcome = IndexOutcome.ALREADY_EXISTS
            else:
                metrics.index_provisioning_total.labels(outcome=IndexOutcome.FAILED.value).inc()
                logger.error(
                    "support_index_creation_failed",
                    collection=collection_name,
                    code=e.code,
                    error=str(e),
                )
                raise ProvisioningError(f"Index creation failed: {e}", code=e.code) from e

        except PyMongoError as e:
            metrics.index_provisioning_total.labels(outcome=IndexOutcome.FAILED.value).inc()
            logger.error("support_index_creation_failed", collection=collection_name, error=str(e))
            raise ProvisioningError(f"Index creation failed: {e}") from e

        metrics.index_provisioning_total.labels(outcome=outcome.value).inc()
        if outcome == IndexOutcome.ALREADY_EXISTS:
            logger.info("support_index_already_exists", collection=collection_name)
        else:
            logger.info("support_index_created", collection=collection_name, index=SUPPORT_INDEX_NAME)
        return outcome
