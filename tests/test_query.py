import pytest

from conftest import GIN_URL, FakeGin, gin_repo
from gindex.config import Config
from gindex.errors import AuthorizationServiceUnavailable, MalformedRequest
from gindex.models import IndexDocument
from gindex.permissions import PermissionResolver
from gindex.query import MAX_TOP_K, QueryGateway


@pytest.fixture
def gin():
    return FakeGin(
        [gin_repo(1, "alice/public"), gin_repo(2, "alice/private", private=True),
         gin_repo(3, "bob/private", private=True)],
        tokens={"alice-token": ["alice/private"], "nobody-token": []},
    )


@pytest.fixture
def gateway(gin, backend):
    return QueryGateway(PermissionResolver(Config(gin_url=GIN_URL), gin.client()), backend)


def test_anonymous_search_is_scoped_to_public_repositories(gateway, backend):
    gateway.search(None, "spike sorting")
    assert backend.searches == [("spike sorting", {"1"})]


def test_search_with_token_adds_own_repositories(gateway, backend):
    gateway.search("alice-token", "spike sorting")
    assert backend.searches == [("spike sorting", {"1", "2"})]


def test_empty_permitted_set_still_queries_with_restriction(gin, backend):
    gin.repos = {"bob/private": gin_repo(3, "bob/private", private=True)}
    gateway = QueryGateway(PermissionResolver(Config(gin_url=GIN_URL), gin.client()), backend)
    gateway.search("nobody-token", "anything")
    assert backend.searches == [("anything", set())]


def test_authorization_failure_never_queries_the_backend(gateway, gin, backend):
    gin.down = True
    with pytest.raises(AuthorizationServiceUnavailable):
        gateway.search("alice-token", "anything")
    with pytest.raises(AuthorizationServiceUnavailable):
        gateway.suggest("alice-token", "any")
    assert backend.searches == []


def test_top_k_is_capped(gateway):
    captured = {}

    def search(query, repo_ids, top_k):
        captured["top_k"] = top_k
        return []

    gateway.backend.search = search
    gateway.search(None, "q", top_k=500)
    assert captured["top_k"] == MAX_TOP_K


def test_empty_query_is_rejected(gateway):
    with pytest.raises(MalformedRequest):
        gateway.search(None, "   ")


def test_suggest_only_returns_permitted_documents(gateway, backend):
    for repo_id, path in [("1", "analysis/spikes.py"), ("3", "secret/plan.txt")]:
        doc = IndexDocument(identity=repo_id * 40, repo_id=repo_id, kind="blob",
                            text="", source_path=path, suggest=path)
        backend.docs[(doc.collection, doc.identity)] = doc
    assert gateway.suggest(None, "s") == ["analysis/spikes.py"]
