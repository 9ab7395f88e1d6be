"""settings.txt parsing (key=value lines)."""

import contextlib
from pathlib import Path
from typing import Any

from ..indexer_logging import get_logger
from .models import ENV_VARS

logger = get_logger()


def load_settings_file(settings_file: Path) -> dict[str, Any]:
    """Load configuration from a settings.txt file.

    Uppercase keys use the environment variable names (``PGHOST``,
    ``QDRANT_URL``...); anything else is taken as a field name as-is.
    Inline ``#`` comments are stripped.
    """
    settings: dict[str, Any] = {}

    if not settings_file.exists():
        return settings

    try:
        with open(settings_file) as f:
            for line in f:
                line = line.split("#", 1)[0].strip()
                if not line or "=" not in line:
                    continue

                key, raw_value = line.split("=", 1)
                key = key.strip()
                raw_value = raw_value.strip()
                value: Any = raw_value

                if not key:
                    continue

                if value.lower() in ("true", "false"):
                    value = value.lower() == "true"
                elif value.replace(".", "", 1).replace("-", "", 1).isdigit():
                    with contextlib.suppress(ValueError):
                        value = float(raw_value) if "." in raw_value else int(raw_value)

                settings[ENV_VARS.get(key, key.lower())] = value
    except OSError as e:
        logger.warning(f"Failed to load {settings_file}: {e}")

    return settings


def create_default_settings_file(path: Path) -> None:
    """Create a default settings.txt file template."""
    template = """# code-context configuration
# Lines starting with # are comments

# PostgreSQL with the Apache AGE extension
PGHOST=localhost
PGPORT=5433
PGDATABASE=rag_db
PGUSER=postgres
PGPASSWORD=postgres

# File hash storage: graph (File vertices) or table (public.file_hashes)
file_hash_backend=graph

# Qdrant vector storage
QDRANT_URL=http://localhost:6333
qdrant_collection=code_embeddings

# Embeddings: ollama or openai
EMBEDDING_PROVIDER=ollama
OLLAMA_URL=http://localhost:11434
EMBEDDING_MODEL=nomic-embed-text
embedding_dimensions=768
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(template)
    logger.info(f"Created default settings file: {path}")
