"""
ChatGateway - the only outbound dependency on Slack.

Wraps slack_sdk's AsyncWebClient:

- post_to_thread(): chat.postMessage, optionally inside a thread. Without a
  thread_ts Slack starts a new thread and the returned ts is its identifier.
- open_thread(): posts the first message of a user's support thread.
- post_error(): best-effort diagnostic message to the support channel. It is
  scheduled as a detached task and MAY SILENTLY FAIL; callers never see its
  outcome.

Every other Slack failure is raised as DeliveryError for the caller to
classify.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from support_bridge.config import settings
from support_bridge.core import metrics
from support_bridge.core.exceptions import ConfigurationError, DeliveryError
from support_bridge.core.logging_config import get_logger
from support_bridge.services.formatting import build_dashboard_url, build_thread_message

logger = get_logger(__name__)

USER_DISPLAY_NAME = "User"
USER_ICON_EMOJI = ":person_with_crown:"
ERROR_DISPLAY_NAME = "Error"
ERROR_ICON_EMOJI = ":warning:"


class ChatGateway:
    """Posts support traffic into the configured Slack channel."""

    def __init__(self, client: Optional[AsyncWebClient] = None, channel: Optional[str] = None):
        self._client = client
        self.channel = channel if channel is not None else settings.SLACK_CHANNEL_ID
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def client(self) -> AsyncWebClient:
        """The Slack client, resolved on first post so a missing token only fails posts."""
        if self._client is None:
            self._client = get_slack_client()
        return self._client

    def require_channel(self) -> str:
        if not self.channel:
            raise ConfigurationError("SLACK_CHANNEL_ID is not set")
        return self.channel

    async def post_to_thread(
        self,
        thread_ts: Optional[str],
        text: str,
        username: str,
        icon_emoji: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
        channel: Optional[str] = None,
    ) -> str:
        """Post text to the channel (inside thread_ts when given) and return the message ts."""
        payload: Dict[str, Any] = {
            "channel": channel or self.require_channel(),
            "text": text,
            "username": username,
        }
        if thread_ts:
            payload["thread_ts"] = thread_ts
        if icon_emoji:
            payload["icon_emoji"] = icon_emoji
        if blocks:
            payload["blocks"] = blocks

        try:
            response = await self.client.chat_postMessage(**payload)
        except SlackApiError as e:
            metrics.slack_api_calls_total.labels(method="chat.postMessage", status="error").inc()
            slack_error = e.response.get("error") if e.response is not None else None
            logger.error(
                "slack_post_failed",
                channel=payload["channel"],
                thread_ts=thread_ts,
                slack_error=slack_error,
            )
            raise DeliveryError(f"Slack rejected chat.postMessage: {slack_error or e}") from e

        metrics.slack_api_calls_total.labels(method="chat.postMessage", status="ok").inc()

        ts = response.get("ts")
        if not ts:
            raise DeliveryError("Slack chat.postMessage response did not include a ts")
        return ts

    async def open_thread(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        bot_id: Optional[str] = None,
    ) -> str:
        """Start a new support thread for user_id and return its thread ts."""
        dashboard_url = build_dashboard_url(settings.DASHBOARD_URL_TEMPLATE, project_id, user_id)
        message = build_thread_message(
            user_id=user_id,
            project_id=project_id,
            bot_id=bot_id,
            dashboard_url=dashboard_url,
        )
        thread_ts = await self.post_to_thread(
            thread_ts=None,
            text=message["text"],
            blocks=message["blocks"],
            username=project_id or settings.APP_NAME,
        )
        metrics.threads_created_total.inc()
        logger.info("slack_thread_opened", user_id=user_id, thread_ts=thread_ts)
        return thread_ts

    def post_error(self, text: str) -> None:
        """Schedule a diagnostic post; returns immediately and never raises."""
        if not self.channel:
            logger.warning("slack_error_post_skipped", reason="channel_not_configured", text=text)
            return

        try:
            task = asyncio.get_running_loop().create_task(self._post_error(text))
        except RuntimeError:
            logger.warning("slack_error_post_skipped", reason="no_running_loop", text=text)
            return

        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _post_error(self, text: str) -> None:
        try:
            await self.post_to_thread(
                thread_ts=None,
                text=text,
                username=ERROR_DISPLAY_NAME,
                icon_emoji=ERROR_ICON_EMOJI,
            )
        except Exception as e:
            logger.warning("slack_error_post_failed", text=text, error=str(e))

    async def wait_for_background_tasks(self) -> None:
        """Let pending diagnostic posts finish (used at shutdown)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)


# Process-wide handles, created on first use and shared read-only afterwards
_slack_client: Optional[AsyncWebClient] = None
_chat_gateway: Optional[ChatGateway] = None


def get_slack_client() -> AsyncWebClient:
    global _slack_client

    if _slack_client is None:
        if not settings.SLACK_BOT_TOKEN:
            raise ConfigurationError("SLACK_BOT_TOKEN is not set")
        _slack_client = AsyncWebClient(token=settings.SLACK_BOT_TOKEN)

    return _slack_client


def get_chat_gateway() -> ChatGateway:
    """
    Get the singleton ChatGateway.

    A single instance also owns the detached diagnostic-post tasks, which
    keeps them referenced until they finish.
    """
    global _chat_gateway

    if _chat_gateway is None:
        _chat_gateway = ChatGateway()

    return _chat_gateway


async def shutdown_chat_gateway() -> None:
    """Flush pending diagnostic posts if the gateway was ever created."""
    if _chat_gateway is not None:
        await _chat_gateway.wait_for_background_tasks()
