import logging

from .backend import SearchBackend
from .errors import MalformedRequest
from .models import SearchHit
from .permissions import PermissionResolver

log = logging.getLogger(__name__)

MAX_TOP_K = 20


class QueryGateway:
    """Search and suggest, restricted to the repositories the caller may read.

    The restriction is always applied, also when the caller may read
    nothing; authorization failures propagate to the caller.
    """

    def __init__(self, resolver: PermissionResolver, backend: SearchBackend):
        self.resolver = resolver
        self.backend = backend

    def search(self, token: str | None, query: str, top_k: int = 10) -> list[SearchHit]:
        if not query.strip():
            raise MalformedRequest("empty query")
        top_k = max(1, min(top_k, MAX_TOP_K))
        permitted = self.resolver.permitted_repositories(token)
        log.debug("Searching %d permitted repositories for %r", len(permitted), query)
        return self.backend.search(query, permitted, top_k)

    def suggest(self, token: str | None, partial: str, limit: int = 10) -> list[str]:
        if not partial.strip():
            raise MalformedRequest("empty query")
        limit = max(1, min(limit, MAX_TOP_K))
        permitted = self.resolver.permitted_repositories(token)
        return self.backend.suggest(partial, permitted, limit)
