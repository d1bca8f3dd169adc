from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, ConfigDict, Field

from support_bridge.models.message import utcnow


class ThreadBinding(BaseModel):
    """
    Maps a user to their Slack support thread.

    Stored at the user's ``CONFIG_PATH`` document. Written once, the first
    time the user writes in, and never changed afterwards.
    """
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    slack_thread_ts: str = Field(..., alias="slackThreadTs")
    thread_created_at: datetime = Field(default_factory=utcnow, alias="threadCreatedAt")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ThreadBinding":
        return cls.model_validate(document)
