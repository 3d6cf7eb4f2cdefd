from typing import Literal

from pydantic import BaseModel, Field

Kind = Literal["commit", "blob"]
Visibility = Literal["public", "private"]
ExtractionStatus = Literal["ok", "skipped-too-large", "skipped-unsupported", "failed"]
ReindexStatus = Literal["completed", "timed_out", "failed"]

# Backend collection per document kind.
COLLECTIONS: dict[str, str] = {"commit": "commits", "blob": "blobs"}


class Repository(BaseModel):
    id: str
    storage_path: str
    visibility: Visibility
    owner_scope: str                  # owner login on the GIN server
    full_name: str                    # <owner>/<name>


class IndexableObject(BaseModel):
    repo_id: str
    object_id: str                    # raw git sha
    kind: Kind
    source_path: str
    size: int | None = None           # declared size from the tree listing


class ExtractedContent(BaseModel):
    text: str = ""
    status: ExtractionStatus = "ok"
    reason: str | None = None


class IndexDocument(BaseModel):
    identity: str                     # hex ObjectIdentity
    repo_id: str
    kind: Kind
    text: str
    source_path: str
    suggest: str = ""

    @property
    def collection(self) -> str:
        return COLLECTIONS[self.kind]


class ObjectOutcome(BaseModel):
    repo_id: str
    object_id: str
    kind: Kind
    source_path: str
    reason: str


class RepositoryOutcome(BaseModel):
    full_name: str
    repo_id: str | None = None
    complete: bool = True
    error: str | None = None


class ReindexReport(BaseModel):
    status: ReindexStatus = "completed"
    repositories: list[RepositoryOutcome] = Field(default_factory=list)
    indexed: int = 0
    skipped: list[ObjectOutcome] = Field(default_factory=list)
    failed: list[ObjectOutcome] = Field(default_factory=list)
    error: str | None = None


# Wire models of the GIN / Gogs API.

class GinOwner(BaseModel):
    login: str = ""


class GinRepository(BaseModel):
    id: int
    full_name: str = ""
    private: bool = False
    owner: GinOwner = Field(default_factory=GinOwner)


class GinSearchResult(BaseModel):
    data: list[GinRepository] = Field(default_factory=list)


# Service requests and responses.

class ReindexRequest(BaseModel):
    token: str | None = None          # empty or missing means anonymous
    path: str | None = None           # subpath of the repository store
    signature: str | None = None


class IndexRequest(BaseModel):
    token: str | None = None
    repo_path: str                    # <owner>/<name>.git under the store
    signature: str | None = None


class SearchRequest(BaseModel):
    token: str | None = None
    query: str
    top_k: int = 10


class SuggestRequest(BaseModel):
    token: str | None = None
    query: str
    limit: int = 10


class SearchHit(BaseModel):
    identity: str
    repo_id: str
    kind: Kind
    source_path: str
    score: float | None = None
    content: str = ""


class SearchResponse(BaseModel):
    hits: list[SearchHit]


class SuggestResponse(BaseModel):
    suggestions: list[str]
