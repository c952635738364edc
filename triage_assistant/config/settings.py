"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "triage-assistant"
    triage_assistant_port: int = 8005
    environment: str = "development"
    cors_origins: List[str] = ["http://localhost:5173"]

    # Conversation Store
    conversation_store_backend: str = "mongodb"  # "mongodb" | "memory"

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "triage_assistant"
    mongodb_collection_conversations: str = "triage_conversations"

    # Reasoning service (OpenAI-compatible endpoint)
    llm_api_key: str = ""
    llm_endpoint: str = "https://models.inference.ai.azure.com"
    model_name: str = "Llama-3.3-70B-Instruct"
    model_temperature: float = 0.2
    model_max_tokens: int = 1000
    llm_invoke_timeout: float = 30.0
    max_hypotheses: int = 5

    # JWT Configuration
    jwt_public_key_path: str = "keys/public_key.pem"
    jwt_secret: Optional[str] = None  # used with HS* algorithms
    jwt_issuer: str = "telemed-auth-service"
    jwt_algorithm: str = "RS256"
    jwt_access_cookie_name: str = "access_token"

    # Triage Settings
    max_message_chars: int = 2000
    turn_lock_timeout: float = 10.0
    urgency_medium_score: float = 2.0
    urgency_high_score: float = 4.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        protected_namespaces = ("settings_",)


# Global settings instance
settings = Settings()
