"""
Dependency injection for FastAPI routes and background workers.

Provides reusable factories that can be easily mocked in tests.
"""

from support_bridge.config import settings
from support_bridge.core.paths import get_path_config
from support_bridge.core.signature import SignatureVerifier
from support_bridge.db.mongodb import get_database
from support_bridge.services.inbound_relay import InboundRelay
from support_bridge.services.message_store import MessageStore
from support_bridge.services.message_watcher import MessageWatcher
from support_bridge.services.outbound_relay import OutboundRelay
from support_bridge.services.slack_gateway import get_chat_gateway
from support_bridge.services.thread_registry import ThreadRegistry


def get_thread_registry() -> ThreadRegistry:
    return ThreadRegistry(get_database(), get_path_config().thread_document)


def get_message_store() -> MessageStore:
    return MessageStore(get_database(), get_path_config().messages_collection)


def get_inbound_relay() -> InboundRelay:
    """
    Provide InboundRelay instance for dependency injection.

    Example test setup:
        app.dependency_overrides[get_inbound_relay] = lambda: relay_with_fakes
    """
    return InboundRelay(
        verifier=SignatureVerifier(settings.SLACK_SIGNING_SECRET),
        registry=get_thread_registry(),
        store=get_message_store(),
        gateway=get_chat_gateway(),
    )


def get_outbound_relay() -> OutboundRelay:
    return OutboundRelay(
        registry=get_thread_registry(),
        store=get_message_store(),
        gateway=get_chat_gateway(),
    )


def get_message_watcher() -> MessageWatcher:
    store = get_message_store()
    return MessageWatcher(
        collection=store.collection,
        template=store.template,
        relay=get_outbound_relay(),
    )
