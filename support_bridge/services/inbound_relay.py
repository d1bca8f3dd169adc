"""
InboundRelay - Slack Events API webhook -> support message document.

Flow for one webhook delivery:

1. Verify the Slack signature over the raw body (401 on failure).
2. Answer url_verification handshakes by echoing the challenge.
3. Ignore (200) anything but an app_mention inside a thread written by
   someone other than the bot itself; the self-check prevents relay loops.
4. Resolve the owning user from the thread ts: none -> 404, several -> 409,
   both reported to the support channel as well.
5. Store the reply as an INTERNAL message, already SENT, with the emojified
   text and the raw Slack text.

Exactly one failure boundary: any unexpected exception is reported to the
support channel and surfaced as a 500 so Slack can retry the delivery.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from fastapi import HTTPException

from support_bridge.config import settings
from support_bridge.core import metrics
from support_bridge.core.exceptions import (
    ConflictError,
    NotFoundError,
    RelayFailedError,
    UnauthorizedError,
)
from support_bridge.core.logging_config import get_logger
from support_bridge.core.signature import SignatureVerifier
from support_bridge.core.timings import Timings
from support_bridge.models.message import MessageRole, MessageStatus, SupportMessage
from support_bridge.services.formatting import emojify_message, strip_bot_mention
from support_bridge.services.message_store import MessageStore
from support_bridge.services.slack_gateway import ChatGateway
from support_bridge.services.thread_registry import ResolutionOutcome, ThreadRegistry

logger = get_logger(__name__)

URL_VERIFICATION = "url_verification"
APP_MENTION = "app_mention"


@dataclass
class InboundResult:
    """Successful webhook outcome; challenge is echoed as plain text when set."""
    outcome: str
    challenge: Optional[str] = None
    support_message_id: Optional[str] = None


class InboundRelay:
    """Accepts Slack events and persists staff replies."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        registry: ThreadRegistry,
        store: MessageStore,
        gateway: ChatGateway,
        bot_id: Optional[str] = None,
    ):
        self.verifier = verifier
        self.registry = registry
        self.store = store
        self.gateway = gateway
        self.bot_id = bot_id if bot_id is not None else settings.bot_id

    async def handle(
        self,
        raw_body: Union[bytes, str],
        timestamp: Optional[str],
        signature: Optional[str],
    ) -> InboundResult:
        """
        Process one webhook delivery.

        Returns:
            InboundResult for 200 outcomes (stored, ignored, challenge)

        Raises:
            UnauthorizedError: bad or missing signature
            NotFoundError: no user is bound to the thread
            ConflictError: more than one user is bound to the thread
            RelayFailedError: anything unexpected
        """
        timings = Timings()
        start_time = time.perf_counter()
        user_id: Optional[str] = None
        thread_ts: Optional[str] = None

        try:
            # MARK: authenticate
            if not self.verifier.is_valid(raw_body, timestamp, signature):
                logger.warning("slack_events_invalid_signature", request_timestamp=timestamp)
                metrics.inbound_events_total.labels(outcome="unauthorized").inc()
                raise UnauthorizedError("Invalid Slack signature")

            payload: Dict[str, Any] = json.loads(raw_body)

            # MARK: handshake
            # payload["type"] is the envelope type, not the event type
            if payload.get("type") == URL_VERIFICATION:
                logger.debug("slack_events_url_verification")
                metrics.inbound_events_total.labels(outcome="challenge").inc()
                return InboundResult(outcome="challenge", challenge=str(payload.get("challenge", "")))

            # MARK: filter
            event = payload["event"]
            thread_ts = event.get("thread_ts")
            author = event.get("user")
            logger.info("slack_events_processing", thread_ts=thread_ts, from_user=author, event_type=event.get("type"))

            is_self_mention = bool(self.bot_id) and author == self.bot_id
            if event.get("type") != APP_MENTION or not thread_ts or is_self_mention:
                logger.info(
                    "slack_events_ignored",
                    event_type=event.get("type"),
                    is_thread=bool(thread_ts),
                    from_user=author,
                    is_self_mention=is_self_mention,
                )
                metrics.inbound_events_total.labels(outcome="ignored").inc()
                return InboundResult(outcome="ignored")

            # MARK: resolve user
            resolution = await timings.timed("find_user_id", self.registry.resolve_user_by_thread(thread_ts))

            if resolution.outcome == ResolutionOutcome.NOT_FOUND:
                self.gateway.post_error("No user found for thread")
                logger.error("slack_events_no_user_for_thread", thread_ts=thread_ts)
                metrics.inbound_events_total.labels(outcome="not_found").inc()
                raise NotFoundError("No user found for thread")

            if resolution.outcome == ResolutionOutcome.AMBIGUOUS:
                self.gateway.post_error("Multiple users found for thread")
                logger.error(
                    "slack_events_multiple_users_for_thread",
                    thread_ts=thread_ts,
                    count=len(resolution.paths),
                    paths=resolution.paths,
                )
                metrics.inbound_events_total.labels(outcome="conflict").inc()
                raise ConflictError("Multiple users found for thread")

            user_id = resolution.user_id
            logger.info("slack_events_user_found", user_id=user_id, thread_ts=thread_ts)

            # MARK: store reply
            raw_text = event.get("text") or ""
            message = SupportMessage(
                message=emojify_message(strip_bot_mention(raw_text, self.bot_id)),
                role=MessageRole.INTERNAL,
                status=MessageStatus.SENT,
                slack_thread_ts=thread_ts,
                raw_message=raw_text,
            )
            message_id = await timings.timed("store_support_message", self.store.insert(user_id, message))

            metrics.inbound_events_total.labels(outcome="stored").inc()
            logger.info(
                "slack_events_support_message_created",
                user_id=user_id,
                thread_ts=thread_ts,
                support_message_id=message_id,
                total_duration_ms=timings.total_ms(),
                timings=timings.as_dict(),
            )
            return InboundResult(outcome="stored", support_message_id=message_id)

        except HTTPException:
            raise

        except Exception as e:
            metrics.inbound_events_total.labels(outcome="error").inc()
            self.gateway.post_error(f"Error creating support message: {e}")
            logger.error(
                "slack_events_relay_failed",
                user_id=user_id,
                thread_ts=thread_ts,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise RelayFailedError("Error creating support message") from e

        finally:
            metrics.relay_duration_seconds.labels(direction="inbound").observe(
                time.perf_counter() - start_time
            )
