"""
Shared fixtures: bare git repositories in a temporary store, a fake GIN
server on an httpx MockTransport and an in-memory search backend.
"""
import subprocess
from pathlib import Path

import httpx
import pytest

from gindex.config import Config
from gindex.errors import BackendUnavailable
from gindex.indexing import Indexer
from gindex.permissions import PermissionResolver
from gindex.reindex import Reindexer

GIN_URL = "http://gin.test"


def git(cwd: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
         "-c", "init.defaultBranch=master", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


def gin_repo(repo_id: int, full_name: str, private: bool = False) -> dict:
    owner = full_name.split("/")[0]
    return {"id": repo_id, "full_name": full_name, "private": private, "owner": {"login": owner}}


class FakeGin:
    """Minimal GIN API: public search, the caller's repos and single repo lookups."""

    def __init__(self, repos: list[dict], tokens: dict[str, list[str]] | None = None):
        self.repos = {r["full_name"]: r for r in repos}
        self.tokens = tokens or {}
        self.down = False
        self.requests: list[httpx.Request] = []

    def visible(self, token: str) -> list[str]:
        return self.tokens.get(token, [])

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        token = request.headers.get("Authorization", "").removeprefix("token ")
        path = request.url.path
        if path == "/api/v1/repos/search":
            public = [r for r in self.repos.values() if not r["private"]]
            return httpx.Response(200, json={"data": public, "ok": True})
        if path == "/api/v1/user/repos":
            if token not in self.tokens:
                return httpx.Response(401)
            return httpx.Response(200, json=[self.repos[n] for n in self.visible(token)])
        name = path.removeprefix("/api/v1/repos/")
        repo = self.repos.get(name)
        if repo is None or (repo["private"] and name not in self.visible(token)):
            return httpx.Response(404)
        return httpx.Response(200, json=repo)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


class FakeBackend:
    """In-memory stand-in for the Qdrant collections, keyed like the real one."""

    def __init__(self):
        self.docs = {}
        self.puts = 0
        self.fail_paths: set[str] = set()
        self.on_put = None
        self.searches: list[tuple[str, set[str]]] = []

    def put(self, doc):
        if doc.source_path in self.fail_paths:
            raise BackendUnavailable("connection reset")
        self.puts += 1
        self.docs[(doc.collection, doc.identity)] = doc
        if self.on_put is not None:
            self.on_put(doc)

    def search(self, query, repo_ids, top_k):
        self.searches.append((query, set(repo_ids)))
        return []

    def suggest(self, partial, repo_ids, limit):
        self.searches.append((partial, set(repo_ids)))
        return [d.suggest for d in self.docs.values() if d.repo_id in repo_ids][:limit]


@pytest.fixture
def store(tmp_path) -> Path:
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def make_repo(tmp_path, store):
    """Create ``<store>/<owner>/<name>.git`` holding one commit with ``files``."""

    def _make(full_name: str, files: dict[str, bytes], message: str = "Add files\n\nInitial import") -> Path:
        work = tmp_path / "work" / full_name
        work.mkdir(parents=True)
        git(work, "init")
        for name, data in files.items():
            target = work / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        git(work, "add", "-A")
        git(work, "commit", "-m", message)
        bare = store / f"{full_name}.git"
        bare.parent.mkdir(parents=True, exist_ok=True)
        git(tmp_path, "clone", "--bare", str(work), str(bare))
        return bare

    return _make


@pytest.fixture
def cfg(store) -> Config:
    return Config(repository_store=str(store), gin_url=GIN_URL, text_max=1024, pdf_max=64 * 1024)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_reindexer(backend):
    def _make(cfg: Config, gin: FakeGin, clock=None) -> Reindexer:
        resolver = PermissionResolver(cfg, gin.client())
        kwargs = {"clock": clock} if clock is not None else {}
        return Reindexer(cfg, resolver, Indexer(backend), **kwargs)

    return _make
