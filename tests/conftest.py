"""
Pytest configuration and shared fixtures for Support Bridge tests.

This file provides reusable test fixtures including:
- In-memory MongoDB (mongomock-motor) per test
- Parsed default document path templates
- A Slack Web API client double that records chat.postMessage calls
- ThreadRegistry / MessageStore / ChatGateway wired to those doubles
"""

import itertools
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from mongomock_motor import AsyncMongoMockClient

from support_bridge.core.paths import DocumentPathTemplate, PathConfig, PathKind
from support_bridge.core.signature import SignatureVerifier
from support_bridge.services.message_store import MessageStore
from support_bridge.services.slack_gateway import ChatGateway
from support_bridge.services.thread_registry import ThreadRegistry

TEST_CHANNEL = "C0SUPPORT"
TEST_BOT_ID = "U0BOT"
TEST_PROJECT_ID = "demo-project"
TEST_SIGNING_SECRET = "8f742231b10e8888abcd99yyyzzz85a5"


@pytest.fixture
def test_db():
    """Provide a clean in-memory database for each test."""
    client = AsyncMongoMockClient()
    return client["test_support_db"]


@pytest.fixture
def path_config() -> PathConfig:
    return PathConfig(
        thread_document=DocumentPathTemplate.parse("users/{userId}/support/default", PathKind.DOCUMENT),
        messages_collection=DocumentPathTemplate.parse(
            "users/{userId}/support/default/messages", PathKind.COLLECTION
        ),
    )


@pytest.fixture
def registry(test_db, path_config) -> ThreadRegistry:
    return ThreadRegistry(test_db, path_config.thread_document)


@pytest.fixture
def store(test_db, path_config) -> MessageStore:
    return MessageStore(test_db, path_config.messages_collection)


@pytest.fixture
def slack_calls() -> List[Dict[str, Any]]:
    """chat.postMessage payloads, in call order."""
    return []


@pytest.fixture
def slack_client(slack_calls):
    """
    Double for slack_sdk's AsyncWebClient.

    chat_postMessage records its kwargs and answers with increasing ts
    values ("1700000000.000001", "1700000000.000002", ...).
    """
    counter = itertools.count(1)

    def chat_post_message(**kwargs):
        slack_calls.append(kwargs)
        return {"ok": True, "ts": f"1700000000.{next(counter):06d}"}

    client = MagicMock()
    client.chat_postMessage = AsyncMock(side_effect=chat_post_message)
    return client


@pytest.fixture
def gateway(slack_client) -> ChatGateway:
    return ChatGateway(slack_client, channel=TEST_CHANNEL)


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier(TEST_SIGNING_SECRET)
