"""Configuration model with validation."""

import os
import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# Environment variable -> config field
ENV_VARS = {
    "PGHOST": "postgres_host",
    "PGPORT": "postgres_port",
    "PGDATABASE": "postgres_database",
    "PGUSER": "postgres_user",
    "PGPASSWORD": "postgres_password",
    "QDRANT_URL": "qdrant_url",
    "QDRANT_API_KEY": "qdrant_api_key",
    "OLLAMA_URL": "ollama_url",
    "EMBEDDING_PROVIDER": "embedding_provider",
    "EMBEDDING_MODEL": "embedding_model",
    "OPENAI_API_KEY": "openai_api_key",
    "FILE_HASH_BACKEND": "file_hash_backend",
}


class IndexerConfig(BaseModel):
    """Global configuration model with validation."""

    # PostgreSQL + Apache AGE
    postgres_host: str = Field(default="localhost")
    postgres_port: int = Field(default=5433, ge=1, le=65535)
    postgres_database: str = Field(default="rag_db")
    postgres_user: str = Field(default="postgres")
    postgres_password: str = Field(default="postgres")
    pool_min_size: int = Field(default=1, ge=1, le=50)
    pool_max_size: int = Field(default=5, ge=1, le=100)
    command_timeout: float = Field(default=60.0, gt=0)

    # Graph layout
    graph_prefix: str = Field(default="code_graph")
    file_hash_backend: Literal["graph", "table"] = Field(default="graph")

    # Vector storage
    qdrant_url: str = Field(default="http://localhost:6333")
    qdrant_api_key: str | None = Field(default=None)
    qdrant_collection: str = Field(default="code_embeddings")

    # Embeddings
    embedding_provider: Literal["ollama", "openai"] = Field(default="ollama")
    ollama_url: str = Field(default="http://localhost:11434")
    embedding_model: str = Field(default="nomic-embed-text")
    embedding_dimensions: int = Field(default=768, ge=1)
    openai_api_key: str = Field(default="")
    embedding_timeout: float = Field(default=30.0, gt=0)
    max_body_chars: int = Field(default=1000, ge=1)

    # Scanning
    exclude_dirs: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            ".git",
            "dist",
            "target",
            "build",
            "out",
            "__pycache__",
            ".venv",
        ]
    )
    max_file_size: int = Field(default=1048576, ge=1024)

    # Queries
    default_call_depth: int = Field(default=3, ge=1, le=10)
    max_call_depth: int = Field(default=10, ge=1, le=50)

    @field_validator("graph_prefix")
    @classmethod
    def validate_graph_prefix(cls, v: str) -> str:
        if not _IDENTIFIER.match(v):
            raise ValueError(
                "graph_prefix must be lowercase letters, digits and underscores"
            )
        return v

    @field_validator("qdrant_api_key")
    @classmethod
    def blank_api_key_is_none(cls, v: str | None) -> str | None:
        return v or None

    @property
    def postgres_dsn(self) -> str:
        """Connection string without the password, for logs and errors."""
        return (
            f"postgresql://{self.postgres_user}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_database}"
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "IndexerConfig":
        """Create config with environment variable overrides."""
        values: dict[str, Any] = {}
        for env_var, field_name in ENV_VARS.items():
            value = os.environ.get(env_var)
            if value is not None:
                values[field_name] = value
        values.update(overrides)
        return cls(**values)
