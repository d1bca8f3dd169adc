from pydantic_settings import BaseSettings
from pydantic import ConfigDict, model_validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Support Bridge"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # API
    HOST: str = "0.0.0.0"
    PORT: int = 8001
    ENABLE_DOCS: bool = True

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "support_db"

    # ========== Slack ==========
    SLACK_BOT_TOKEN: str = ""
    SLACK_SIGNING_SECRET: str = ""
    SLACK_CHANNEL_ID: str = ""  # Channel that receives support threads
    SLACK_BOT_ID: str = ""  # Member ID of the bot, used for mentions and loop guard

    # ========== Project ==========
    PROJECT_ID: str = ""
    GCP_PROJECT: str = ""  # Legacy name for PROJECT_ID
    # Link rendered as a button on new threads; {projectId} and {userId} are substituted
    DASHBOARD_URL_TEMPLATE: str = ""

    # ========== Document paths ==========
    # Document holding the user's thread binding
    CONFIG_PATH: str = "users/{userId}/support/default"
    # Collection holding the user's support messages
    MESSAGES_PATH: str = "users/{userId}/support/default/messages"

    # ========== Relay ==========
    ENABLE_MESSAGE_WATCHER: bool = True  # Requires MongoDB replica set (change streams)
    WATCHER_RETRY_SECONDS: float = 5.0

    # ========== Install ==========
    PROVISION_INDEX_ON_STARTUP: bool = False
    INDEX_MAX_ATTEMPTS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON_FORMAT: bool = False  # Force JSON output outside production

    @model_validator(mode="after")
    def apply_project_fallback(self) -> "Settings":
        if not self.PROJECT_ID and self.GCP_PROJECT:
            self.PROJECT_ID = self.GCP_PROJECT
        return self

    @property
    def project_id(self) -> Optional[str]:
        return self.PROJECT_ID or None

    @property
    def bot_id(self) -> Optional[str]:
        return self.SLACK_BOT_ID or None


settings = Settings()
