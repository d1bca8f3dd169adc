from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    USER = "user"  # Written by the app's chat client
    INTERNAL = "internal"  # Staff reply relayed from Slack


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ErrorType(str, Enum):
    SOMETHING_WENT_WRONG = "something_went_wrong"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupportMessage(BaseModel):
    """
    One support message document.

    Stored under the user's messages path (``MESSAGES_PATH``). The chat client
    writes message and role (status may be left unset, which reads as PENDING);
    the relay sets status, slack_thread_ts, raw_message and error. created_at
    is assigned by the database server when MessageStore inserts. Field
    names on disk are camelCase so the app's client reads the same shape it
    writes.

    Lifecycle:
    - USER messages start PENDING and move once to SENT or FAILED
    - INTERNAL messages are created SENT (Slack already delivered them)
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    message: str
    role: MessageRole
    status: MessageStatus = MessageStatus.PENDING
    slack_thread_ts: Optional[str] = Field(default=None, alias="slackThreadTs")
    raw_message: Optional[str] = Field(default=None, alias="rawMessage")
    error: Optional[ErrorType] = None

    def to_document(self) -> Dict[str, Any]:
        """Serialize for MongoDB, dropping unset optional fields."""
        document = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("role", "status", "error"):
            if key in document:
                document[key] = document[key].value
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "SupportMessage":
        return cls.model_validate(document)
