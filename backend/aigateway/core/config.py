"""
Application configuration.
All sensitive values loaded from environment variables.
"""
from typing import Any, Dict, List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # AI Provider Configuration
    # Generic key used when a provider-specific key is not set
    AI_API_KEY: str = ""
    AI_REQUEST_TIMEOUT: float = 300.0

    # Provider-specific API keys (optional, falls back to AI_API_KEY)
    OPENAI_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    CLAUDE_API_KEY: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[str] = None

    # Provider-specific base URLs (optional, falls back to built-in endpoints)
    OPENAI_BASE_URL: Optional[str] = None
    GEMINI_BASE_URL: Optional[str] = None
    CLAUDE_BASE_URL: Optional[str] = None
    DEEPSEEK_BASE_URL: Optional[str] = None

    # Retry policy applied to every provider client
    RETRY_MAX_RETRIES: int = 3
    RETRY_BACKOFF_STRATEGY: str = "exponential"  # exponential, linear or fixed
    RETRY_BASE_DELAY_MS: int = 1000
    RETRY_MAX_DELAY_MS: int = 30000

    # Rate limiting - every rule must pass for a call to be admitted
    RATE_LIMIT_RULES: List[Dict[str, Any]] = [
        {"requests": 60, "period": 60},
        {"requests": 1000, "period": 3600},
    ]
    RATE_LIMIT_CLEANUP_INTERVAL: float = 60.0  # seconds

    # Simulated streaming for providers without native streaming
    STREAM_CHUNK_SIZE: int = 10  # characters per chunk
    STREAM_CHUNK_DELAY_MS: int = 50  # 0 disables pacing

    # Conversation context
    CONTEXT_MAX_TOKENS: int = 4000
    CONTEXT_RESPONSE_RESERVE: float = 0.2  # share of the budget kept for the reply

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console

    # AI Debug Logging - enables detailed message content logging
    # WARNING: Set to True only for debugging, logs may contain sensitive data
    AI_DEBUG_LOG: bool = False
    # Maximum length of message content to log (0 = unlimited)
    AI_DEBUG_LOG_MAX_LENGTH: int = 2000

    def get_api_key(self, provider: str) -> str:
        """Get API key for a specific provider."""
        provider_keys = {
            "openai": self.OPENAI_API_KEY,
            "dall-e": self.OPENAI_API_KEY,
            "gemini": self.GEMINI_API_KEY,
            "claude": self.CLAUDE_API_KEY,
            "deepseek": self.DEEPSEEK_API_KEY,
        }
        # Return provider-specific key if set, otherwise fall back to AI_API_KEY
        return provider_keys.get(provider.lower()) or self.AI_API_KEY

    def get_base_url(self, provider: str) -> Optional[str]:
        """Get the base URL override for a provider, if any."""
        provider_urls = {
            "openai": self.OPENAI_BASE_URL,
            "dall-e": self.OPENAI_BASE_URL,
            "gemini": self.GEMINI_BASE_URL,
            "claude": self.CLAUDE_BASE_URL,
            "deepseek": self.DEEPSEEK_BASE_URL,
        }
        return provider_urls.get(provider.lower())

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
