"""
Configuration settings for the ReachFlow engine.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    # Application
    APP_NAME: str = "ReachFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # Job queue
    WORKER_CONCURRENCY: int = 5
    JOB_ATTEMPTS: int = 3
    JOB_BACKOFF_SECONDS: float = 2.0  # Doubles on every failed attempt
    PAUSE_DELAY_SECONDS: float = 86400.0
    COMPLETED_JOB_RETENTION_SECONDS: float = 86400.0
    FAILED_JOB_RETENTION_SECONDS: float = 604800.0
    QUEUE_POLL_INTERVAL: float = 0.1
    SHUTDOWN_GRACE_SECONDS: float = 10.0
    
    # Job store ("redis" or "memory"; memory jobs do not survive a restart)
    JOB_STORE: str = "redis"
    REDIS_URL: str = "redis://localhost:6379"
    JOB_STORE_PREFIX: str = "reachflow:jobs"
    
    # AI generation
    AI_MODEL: str = "mistralai/mistral-7b-instruct"
    AI_TEMPERATURE: float = 0.7
    AI_MAX_TOKENS: int = 500
    
    # Outbound providers
    HTTP_TIMEOUT_SECONDS: float = 30.0
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    DEFAULT_FROM_EMAIL: str = "noreply@omnireach.app"
    DEFAULT_FROM_NAME: str = "OmniReach"
    
    # Message defaults
    DEFAULT_EMAIL_SUBJECT: str = "Message from OmniReach"
    DEFAULT_MESSAGE_CONTENT: str = "Hello!"
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
