"""Configuration management using Pydantic Settings."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ollama backend (embeddings + judgment)
    ollama_base_url: str = Field("http://localhost:11434", description="Ollama server URL")
    ollama_model: str = Field("openthinker", description="Generation model used for judgment")
    ollama_embedding_model: str = Field("nomic-embed-text", description="Embedding model")
    ollama_request_timeout: float = Field(180.0, gt=0)

    # Gemini backend, used when llm_provider is "gemini"
    llm_provider: str = Field("ollama", pattern="^(ollama|gemini)$", description="Embedding and judgment backend")
    gemini_api_key: Optional[str] = Field(None, description="Google AI Studio API key")
    gemini_base_url: str = Field("https://generativelanguage.googleapis.com/v1beta")
    gemini_model: str = Field("gemini-2.0-flash", description="Generation model used for judgment")
    gemini_embedding_model: str = Field("text-embedding-004", description="Embedding model")
    gemini_request_timeout: float = Field(60.0, gt=0)

    # PubMed candidate source
    ncbi_api_key: Optional[str] = Field(None, description="NCBI E-utilities API key")
    ncbi_email: Optional[str] = Field(None, description="Contact email sent to NCBI")
    pubmed_rate_limit: float = Field(3.0, gt=0, description="Requests per second")

    # Per-query threshold defaults
    default_vector_min: float = Field(0.59, ge=-1.0, le=1.0)
    default_composite_min: float = Field(0.60)
    default_probability_min: float = Field(5.0, ge=0.0)

    # Speedup / fail-fast policy
    speedup_sample_size: int = Field(10, ge=1)
    speedup_qualify_rate: float = Field(0.7, ge=0.0, le=1.0)
    fail_fast: bool = True

    # Cycle orchestration
    page_size: int = Field(20, ge=1, le=200)
    default_start_offset: int = Field(0, ge=0)
    default_stop_offset: int = Field(1000, ge=1)
    embed_chunk_size: int = Field(5, ge=1)
    embed_chunk_delay: float = Field(0.1, ge=0.0, description="Seconds between embedding chunks")
    judgment_timeout: float = Field(60.0, gt=0, description="Ceiling for one judgment call")

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")

    # Retry configuration
    max_retries: int = Field(3, ge=1, le=10)
    retry_backoff_factor: float = Field(1.0, gt=0)
    retry_max_wait: float = Field(30.0, gt=0)


# Instantiate global settings
settings = Settings()
