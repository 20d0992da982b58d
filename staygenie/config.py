"""
StayGenie Service Configuration
Loads settings from environment variables
"""

import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment"""

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Ollama Configuration (used when no OpenAI key is set)
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.2")

    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
    # No LLM calls at all; enrichment always uses fallback narrative
    USE_STUB_LLM: bool = _env_flag("USE_STUB_LLM", "false")

    # Hotel rates provider (LiteAPI)
    LITEAPI_KEY: str = os.getenv("LITEAPI_KEY", "")
    LITEAPI_BASE_URL: str = os.getenv("LITEAPI_BASE_URL", "https://api.liteapi.travel/v3.0")
    LITEAPI_TIMEOUT_SECONDS: float = float(os.getenv("LITEAPI_TIMEOUT_SECONDS", "20"))
    # Static catalogue instead of LiteAPI; on by default when no key is configured
    USE_STUB_PROVIDERS: bool = _env_flag("USE_STUB_PROVIDERS", "false" if os.getenv("LITEAPI_KEY") else "true")

    # Matching
    HOTEL_SEARCH_LIMIT: int = int(os.getenv("HOTEL_SEARCH_LIMIT", "50"))
    MAX_MATCH_RESULTS: int = int(os.getenv("MAX_MATCH_RESULTS", "10"))
    MIN_CANDIDATES_AFTER_FILTER: int = int(os.getenv("MIN_CANDIDATES_AFTER_FILTER", "20"))

    # Enrichment / streaming
    ENRICHMENT_CONCURRENCY: int = int(os.getenv("ENRICHMENT_CONCURRENCY", "4"))
    SESSION_DEADLINE_SECONDS: float = float(os.getenv("SESSION_DEADLINE_SECONDS", "45"))

    # Redis Configuration
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    SEARCH_TTL_SECONDS: int = int(os.getenv("SEARCH_TTL_SECONDS", "3600"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "3003"))
    API_ENV: str = os.getenv("API_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Client (consumer side)
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:3003")
    CLIENT_CONNECT_TIMEOUT: float = float(os.getenv("CLIENT_CONNECT_TIMEOUT", "10"))
    CLIENT_SESSION_TIMEOUT: float = float(os.getenv("CLIENT_SESSION_TIMEOUT", "60"))
    CLIENT_REQUEST_TIMEOUT: float = float(os.getenv("CLIENT_REQUEST_TIMEOUT", "90"))
    PLACEHOLDER_COUNT: int = int(os.getenv("PLACEHOLDER_COUNT", "3"))

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def use_openai(self) -> bool:
        return bool(self.OPENAI_API_KEY) and not self.OPENAI_API_KEY.startswith("sk-your")


# Global settings instance
settings = Settings()
