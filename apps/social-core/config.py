from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Broadcast channel for follow/unfollow events
    FOLLOW_EVENT_CHANNEL: str = "followUpdate"

    # Mention suggestion settings
    MENTION_DEFAULT_LIMIT: int = 5  # Empty query: people you follow
    MENTION_SEARCH_LIMIT: int = 5  # Per entity kind
    MENTION_MIN_QUERY_LENGTH: int = 2

    # Connections
    CONNECTIONS_PAGE_SIZE: int = 50

    # Notification retention
    NOTIFICATION_RETENTION_DAYS: int = 30
    NOTIFICATION_RECENT_DAYS: int = 7
    NOTIFICATION_CLEANUP_HOUR: int = 3  # 3 AM
    NOTIFICATION_CLEANUP_MINUTE: int = 0

    # Scheduler Settings
    ENABLE_SCHEDULER: bool = False

    # Cron API Key for external trigger
    CRON_API_KEY: str = "change-me-in-production"

    class Config:
        env_file = ".env"


settings = Settings()
