"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat API. Leave empty to use "
            "OpenAI cloud."
        ),
    )
    llm_temperature: float = 0.0
    llm_timeout: float = Field(default=60.0, description="Seconds before a chat completion request is abandoned")
    llm_max_retries: int = 2

    # Embedding
    voyage_api_key: str = Field(default="", description="Voyage AI API key used for embeddings")
    embedding_model: str = "voyage-3"
    embedding_api_url: str = "https://api.voyageai.com/v1/embeddings"
    embedding_timeout: float = 60.0

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "product_chunks"

    # Catalog (products, documents, step results)
    database_url: str = "sqlite:///./sales_rag.db"

    # Raw uploaded files
    storage_root: str = "./storage"

    # Orchestration
    max_steps: int = Field(default=5, ge=1, description="Maximum model rounds per orchestration")
    match_count: int = 5
    match_threshold: float = 0.3
    org_name: str = Field(default="", description="Company name used in the assistant persona")

    # Ingestion
    max_step_attempts: int = 3
    insert_batch_size: int = 100
    enable_tagging: bool = False

    # Logging
    log_level: str = "INFO"

    # Kubeflow
    kfp_host: str = "http://localhost:8888"
    kfp_namespace: str = "kubeflow-user"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton: import `settings` wherever needed.
settings = Settings()
