"""Runtime configuration for the support assistant."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing environment variables: {', '.join(missing)}")


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(
        env_prefix="supportrag_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: Literal["dev", "test", "prod"] = "prod"

    # Provider credentials keep the deployment's unprefixed variable names
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    pinecone_api_key: str | None = Field(default=None, validation_alias="PINECONE_API_KEY")
    pinecone_index_name: str | None = Field(default=None, validation_alias="PINECONE_INDEX_NAME")
    magento_base_url: str | None = Field(default=None, validation_alias="MAGENTO_BASE_URL")
    magento_admin_token: str | None = Field(default=None, validation_alias="MAGENTO_ADMIN_TOKEN")

    chat_model: str = "gpt-3.5-turbo"
    chat_temperature: float | None = None

    # text-embedding-004 produces 768-dim vectors
    embedding_model: str = "models/text-embedding-004"
    embedding_dim: int = 768

    vector_backend: Literal["pinecone", "chroma"] = "pinecone"
    pinecone_namespace: str | None = None
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "supportrag"

    top_k: int = 10
    max_history_turns: int = 20

    pdf_path: Path = Path("./dsa.pdf")
    chunk_size: int = 1000
    chunk_overlap: int = 200
    upsert_batch_size: int = 100

    order_id_width: int = 9
    magento_timeout_seconds: float = 30.0

    log_rewrite_failures: bool = True

    @property
    def is_dev(self) -> bool:
        return self.environment == "dev"

    def required_for_chat(self) -> tuple[str, ...]:
        names = ["openai_api_key", "gemini_api_key", "magento_base_url", "magento_admin_token"]
        if self.vector_backend == "pinecone":
            names += ["pinecone_api_key", "pinecone_index_name"]
        return tuple(names)

    def required_for_ingest(self) -> tuple[str, ...]:
        names = ["gemini_api_key"]
        if self.vector_backend == "pinecone":
            names += ["pinecone_api_key", "pinecone_index_name"]
        return tuple(names)

    def require(self, *names: str) -> None:
        """Raise ``ConfigurationError`` listing every blank field in ``names``."""

        missing = [name.upper() for name in names if not str(getattr(self, name, None) or "").strip()]
        if missing:
            raise ConfigurationError(missing)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
