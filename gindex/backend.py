import logging
from collections.abc import Iterable

import httpx
import openai
from llama_index.core.base.embeddings.base import BaseEmbedding
from llama_index.embeddings.openai import OpenAIEmbedding
from qdrant_client import QdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from .config import MODEL_DIMENSIONS, Config
from .errors import BackendRejected, BackendUnavailable
from .identity import point_id
from .models import COLLECTIONS, IndexDocument, SearchHit

log = logging.getLogger(__name__)

# Never a valid repository id. Used so an empty permitted set still yields a
# filter that matches nothing instead of no filter at all.
NO_REPOSITORY = ""

SNIPPET_CHARS = 500


def make_embed_model(cfg: Config) -> OpenAIEmbedding:
    return OpenAIEmbedding(
        model=cfg.embedding_model,
        dimensions=MODEL_DIMENSIONS[cfg.embedding_model],
        api_base="https://openrouter.ai/api/v1",
        api_key=cfg.api_key,
        # submissions are not retried
        max_retries=0,
        default_headers={
            "HTTP-Referer": "https://github.com/G-Node/gin-dex",
            "X-Title": "gindex",
        },
    )


def repo_filter(repo_ids: Iterable[str]) -> models.Filter:
    ids = sorted(repo_ids) or [NO_REPOSITORY]
    return models.Filter(
        must=[models.FieldCondition(key="repo_id", match=models.MatchAny(any=ids))]
    )


class SearchBackend:
    """Qdrant collections ``commits`` and ``blobs``, one point per object."""

    def __init__(self, cfg: Config, client: QdrantClient | None = None,
                 embed_model: BaseEmbedding | None = None):
        self.cfg = cfg
        self.client = client or QdrantClient(url=cfg.qdrant_url)
        self.embed_model = embed_model or make_embed_model(cfg)

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except UnexpectedResponse as e:
            raise BackendRejected(e.status_code, e.content.decode(errors="replace")) from e
        except (ResponseHandlingException, httpx.TransportError, OSError) as e:
            raise BackendUnavailable(f"Cannot reach Qdrant at {self.cfg.qdrant_url}: {e}") from e

    def _embed(self, fn, text: str) -> list[float]:
        try:
            return fn(text[: self.cfg.embed_max_chars])
        except openai.APIStatusError as e:
            raise BackendRejected(e.status_code, e.response.text) from e
        except openai.APIError as e:
            raise BackendUnavailable(f"embedding failed: {e}") from e

    def init(self) -> None:
        """Create missing collections and payload indexes."""
        existing = [c.name for c in self._call(self.client.get_collections).collections]
        for name in COLLECTIONS.values():
            if name in existing:
                continue
            log.info("Creating collection '%s'", name)
            self._call(
                self.client.create_collection,
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=MODEL_DIMENSIONS[self.cfg.embedding_model],
                    distance=models.Distance.COSINE,
                ),
            )
            self._call(
                self.client.create_payload_index,
                collection_name=name,
                field_name="repo_id",
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
            self._call(
                self.client.create_payload_index,
                collection_name=name,
                field_name="suggest",
                field_schema=models.TextIndexParams(
                    type=models.TextIndexType.TEXT,
                    tokenizer=models.TokenizerType.PREFIX,
                    lowercase=True,
                ),
            )

    def put(self, doc: IndexDocument) -> None:
        vector = self._embed(self.embed_model.get_text_embedding, f"{doc.source_path}\n{doc.text}")
        point = models.PointStruct(
            id=point_id(doc.identity),
            vector=vector,
            payload=doc.model_dump(),
        )
        self._call(self.client.upsert, collection_name=doc.collection, points=[point], wait=True)

    def search(self, query: str, repo_ids: set[str], top_k: int) -> list[SearchHit]:
        vector = self._embed(self.embed_model.get_query_embedding, query)
        query_filter = repo_filter(repo_ids)
        hits: list[SearchHit] = []
        for name in COLLECTIONS.values():
            response = self._call(
                self.client.query_points,
                collection_name=name,
                query=vector,
                query_filter=query_filter,
                limit=top_k,
                with_payload=True,
            )
            for point in response.points:
                payload = point.payload or {}
                hits.append(SearchHit(
                    identity=payload.get("identity", ""),
                    repo_id=payload.get("repo_id", ""),
                    kind=payload.get("kind", "blob"),
                    source_path=payload.get("source_path", ""),
                    score=round(point.score, 4) if point.score is not None else None,
                    content=payload.get("text", "")[:SNIPPET_CHARS],
                ))
        hits.sort(key=lambda h: h.score or 0.0, reverse=True)
        return hits[:top_k]

    def suggest(self, partial: str, repo_ids: set[str], limit: int) -> list[str]:
        scroll_filter = repo_filter(repo_ids)
        scroll_filter.must.append(
            models.FieldCondition(key="suggest", match=models.MatchText(text=partial))
        )
        suggestions: dict[str, None] = {}
        for name in COLLECTIONS.values():
            points, _ = self._call(
                self.client.scroll,
                collection_name=name,
                scroll_filter=scroll_filter,
                limit=limit,
                with_payload=["suggest"],
                with_vectors=False,
            )
            for point in points:
                value = (point.payload or {}).get("suggest")
                if value:
                    suggestions[value] = None
        return list(suggestions)[:limit]
