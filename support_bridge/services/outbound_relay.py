"""
OutboundRelay - support message document -> Slack thread.

Runs once per newly inserted support message:

1. Skip anything that is not a USER message (including our own INTERNAL writes).
2. Look up the user's thread binding.
3. First contact: open a new Slack thread and bind it. The binding write is a
   compare-and-set, so if a concurrent message of the same user bound another
   thread first, that thread wins and is used instead.
4. Post the text into the thread, then mark the message SENT with the thread
   ts. The status is only written once Slack accepted the post, so a failed
   post always ends as FAILED.

Any failure is caught once at the top: the message is marked FAILED with a
generic error and nothing is re-raised, since re-running the trigger would
replay already partially applied work.
"""

import time
from typing import Any, Dict, Optional

from support_bridge.config import settings
from support_bridge.core import metrics
from support_bridge.core.logging_config import get_logger
from support_bridge.core.timings import Timings
from support_bridge.models.message import ErrorType, MessageRole, MessageStatus, SupportMessage
from support_bridge.services.message_store import MessageStore
from support_bridge.services.slack_gateway import USER_DISPLAY_NAME, USER_ICON_EMOJI, ChatGateway
from support_bridge.services.thread_registry import ThreadRegistry

logger = get_logger(__name__)


class OutboundRelay:
    """Delivers newly created USER support messages into Slack."""

    def __init__(
        self,
        registry: ThreadRegistry,
        store: MessageStore,
        gateway: ChatGateway,
        project_id: Optional[str] = None,
        bot_id: Optional[str] = None,
    ):
        self.registry = registry
        self.store = store
        self.gateway = gateway
        self.project_id = project_id if project_id is not None else settings.project_id
        self.bot_id = bot_id if bot_id is not None else settings.bot_id

    async def handle_message_created(self, user_id: str, message_id: str, document: Dict[str, Any]) -> None:
        timings = Timings()
        start_time = time.perf_counter()
        log = logger.bind(user_id=user_id, support_message_id=message_id)
        log.info("outbound_relay_started")

        try:
            role = document.get("role")
            if role != MessageRole.USER.value:
                log.info("outbound_relay_skipped", reason="not_a_user_message", role=role)
                metrics.outbound_messages_total.labels(outcome="skipped").inc()
                return

            message = SupportMessage.from_document(document)

            self.gateway.require_channel()

            # MARK: existing thread?
            binding = await timings.timed("check_existing_thread", self.registry.get_binding(user_id))

            if binding is None:
                opened_ts = await timings.timed(
                    "create_new_thread",
                    self.gateway.open_thread(user_id=user_id, project_id=self.project_id, bot_id=self.bot_id),
                )
                binding = await timings.timed(
                    "store_thread_binding",
                    self.registry.create_binding(user_id, opened_ts),
                )
                if binding.slack_thread_ts != opened_ts:
                    metrics.thread_binding_races_total.inc()
                    log.warning(
                        "thread_binding_race_lost",
                        orphaned_thread_ts=opened_ts,
                        thread_ts=binding.slack_thread_ts,
                    )

            thread_ts = binding.slack_thread_ts

            # MARK: deliver and record
            await timings.timed(
                "send_message_to_thread",
                self.gateway.post_to_thread(
                    thread_ts=thread_ts,
                    text=message.message,
                    username=USER_DISPLAY_NAME,
                    icon_emoji=USER_ICON_EMOJI,
                ),
            )
            await timings.timed(
                "update_message_status",
                self.store.update_delivery_outcome(message_id, MessageStatus.SENT, thread_ts),
            )

            metrics.outbound_messages_total.labels(outcome="sent").inc()
            log.info(
                "outbound_relay_succeeded",
                thread_ts=thread_ts,
                total_duration_ms=timings.total_ms(),
                timings=timings.as_dict(),
            )

        except Exception as e:
            metrics.outbound_messages_total.labels(outcome="failed").inc()
            log.error(
                "outbound_relay_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._mark_failed(message_id, log)

        finally:
            metrics.relay_duration_seconds.labels(direction="outbound").observe(
                time.perf_counter() - start_time
            )

    async def _mark_failed(self, message_id: str, log) -> None:
        try:
            await self.store.mark_failed(message_id, ErrorType.SOMETHING_WENT_WRONG)
        except Exception as e:
            log.error("outbound_relay_mark_failed_error", error=str(e), error_type=type(e).__name__)
