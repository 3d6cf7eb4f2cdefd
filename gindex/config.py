import logging
import os
from collections.abc import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

log = logging.getLogger(__name__)

MB = 1024 * 1024

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "openai/text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "openai/text-embedding-3-large": 3072,
}


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository_store: str = "/data/repos"
    key: str = ""                         # shared with GIN web for request signatures
    text_max: int = 10 * MB               # bytes
    pdf_max: int = 100 * MB               # bytes
    timeout: int = 60                     # seconds, whole reindex pass
    host: str = "0.0.0.0"
    port: int = 8099
    workers: int = 1
    gin_url: str = "http://localhost:3000"
    qdrant_url: str = "http://localhost:6333"
    embedding_model: str = "text-embedding-3-small"
    api_key: str = ""
    embed_max_chars: int = 5000
    mcp_transport: str = "stdio"
    mcp_port: int = 8080


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.error("Error while parsing %s=%r, using default: %d", name, raw, default)
        return default
    if value < minimum:
        log.error("%s=%d is below %d, using default: %d", name, value, minimum, default)
        return default
    return value


def load_config(env: Mapping[str, str] | None = None) -> Config:
    """Read the process configuration once.

    Numeric values that cannot be parsed fall back to their defaults
    instead of aborting startup.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    port = _int(env, "GINDEX_PORT", 8099, minimum=1)
    if port > 65535:
        log.error("GINDEX_PORT=%d is out of range, using default: 8099", port)
        port = 8099

    model = env.get("EMBEDDING_MODEL") or "text-embedding-3-small"
    if model not in MODEL_DIMENSIONS:
        log.error(
            "Unknown model '%s'. Supported: %s. Using default: text-embedding-3-small",
            model, ", ".join(MODEL_DIMENSIONS),
        )
        model = "text-embedding-3-small"

    return Config(
        repository_store=env.get("GINDEX_REPOSITORY_STORE") or "/data/repos",
        key=env.get("GINDEX_KEY", ""),
        text_max=_int(env, "GINDEX_TEXT_MAX", 10) * MB,
        pdf_max=_int(env, "GINDEX_PDF_MAX", 100) * MB,
        timeout=_int(env, "GINDEX_TIMEOUT", 60, minimum=1),
        host=env.get("GINDEX_HOST") or "0.0.0.0",
        port=port,
        workers=_int(env, "GINDEX_WORKERS", 1, minimum=1),
        gin_url=(env.get("GIN_URL") or "http://localhost:3000").rstrip("/"),
        qdrant_url=env.get("QDRANT_URL") or "http://localhost:6333",
        embedding_model=model,
        api_key=env.get("OPENROUTER_API_KEY", ""),
        embed_max_chars=_int(env, "EMBED_MAX_CHARS", 5000, minimum=1),
        mcp_transport=env.get("MCP_TRANSPORT") or "stdio",
        mcp_port=_int(env, "MCP_PORT", 8080, minimum=1),
    )
