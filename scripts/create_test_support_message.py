"""
Insert a PENDING user message to exercise the outbound relay end to end.

    python scripts/create_test_support_message.py [user_id] [text]

With the API running (and ENABLE_MESSAGE_WATCHER=true), the message should
show up in the Slack support channel and flip to status "sent".
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from support_bridge.db.mongodb import close_db
from support_bridge.dependencies import get_message_store
from support_bridge.models.message import MessageRole, MessageStatus, SupportMessage

DEFAULT_USER_ID = "test-user-id"
DEFAULT_TEXT = "Hello support team! I need help with my app. :unicorn:"


async def create_test_support_message(user_id: str, text: str) -> int:
    message = SupportMessage(message=text, role=MessageRole.USER, status=MessageStatus.PENDING)
    try:
        message_id = await get_message_store().insert(user_id, message)
        print(f"✅ Created test support message: {message_id}")
        return 0
    except Exception as e:
        print(f"❌ Error creating test support message: {type(e).__name__}: {e}")
        return 1
    finally:
        await close_db()


if __name__ == "__main__":
    user_id = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_USER_ID
    text = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_TEXT
    sys.exit(asyncio.run(create_test_support_message(user_id, text)))
