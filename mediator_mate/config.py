"""
Configuration for MediatorMate Service
======================================

Environment variables:
- OPENAI_API_KEY: API key for the chat completion API (chat returns 500 without it)
- OPENAI_BASE_URL: Completion API base URL (default: https://api.openai.com/v1)
- CHAT_MODEL: Model to use (default: gpt-3.5-turbo)
- CHAT_TEMPERATURE: Sampling temperature (default: 0.7)
- LLM_TIMEOUT: Optional request timeout in seconds (default: httpx default)
- CHAT_CONTEXT_MAX_CHARS: Optional per-section cap for the assembled context
- DATABASE_URL: SQLAlchemy URL for the record store, read by db.session at call
  time (default: sqlite:///./mediator_mate.db)
- BACKEND_PORT: Port used by `python -m mediator_mate.run` (default: 3001)
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Chat completion API
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-3.5-turbo"
    chat_temperature: float = 0.7

    # None keeps the transport default
    llm_timeout: Optional[float] = None

    # Context assembly; None means no cap
    chat_context_max_chars: Optional[int] = None

    # Server
    backend_port: int = 3001
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def validate_chat_config(self) -> List[str]:
        """Validate chat configuration, return list of warnings"""
        warnings = []

        if not self.openai_api_key:
            warnings.append("OPENAI_API_KEY not set; /api/chat will return 500")

        if not 0 <= self.chat_temperature <= 2:
            warnings.append(f"CHAT_TEMPERATURE={self.chat_temperature} is outside 0..2")

        if self.chat_context_max_chars is not None and self.chat_context_max_chars <= 0:
            warnings.append("CHAT_CONTEXT_MAX_CHARS must be positive; ignoring cap")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
