import hashlib
import hmac
import logging
import os
from collections.abc import Callable, Iterable

import httpx
from pydantic import TypeAdapter, ValidationError

from .config import Config
from .errors import AuthorizationDenied, AuthorizationServiceUnavailable
from .models import GinRepository, GinSearchResult, Repository

log = logging.getLogger(__name__)

PUBLIC_SEARCH_LIMIT = 10000

_REPO_LIST = TypeAdapter(list[GinRepository])

Lookup = Callable[[str], Repository | None]


def unique_str(values: Iterable[str]) -> set[str]:
    return set(values)


def sign(key: str, token: str) -> str:
    return hmac.new(key.encode(), token.encode(), hashlib.sha256).hexdigest()


def verify_signature(key: str, token: str | None, signature: str | None) -> None:
    """Check that a trigger request was issued by the GIN web service."""
    if not key:
        log.warning("No shared key configured, request signatures are not verified")
        return
    if not signature or not hmac.compare_digest(sign(key, token or ""), signature):
        raise AuthorizationDenied("invalid request signature")


def _headers(token: str | None) -> dict[str, str]:
    return {"Authorization": f"token {token}"} if token else {}


class PermissionResolver:
    """Single source of truth for which repositories a caller may read.

    Both the reindex path and the query path resolve permissions here.
    Nothing is cached: every call asks the GIN server again.
    """

    def __init__(self, cfg: Config, client: httpx.Client | None = None):
        self.base_url = cfg.gin_url
        self.client = client or httpx.Client(timeout=30.0)

    def _get(self, path: str, token: str | None) -> bytes:
        url = f"{self.base_url}{path}"
        try:
            resp = self.client.get(url, headers=_headers(token))
        except httpx.HTTPError as e:
            log.debug("Failed to query GIN server: %s", e)
            raise AuthorizationServiceUnavailable(f"GET {url}: {e}") from e
        if resp.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN, httpx.codes.NOT_FOUND):
            raise AuthorizationDenied(f"GET {url}: {resp.status_code}")
        if resp.status_code != httpx.codes.OK:
            raise AuthorizationServiceUnavailable(f"GET {url}: {resp.status_code} {resp.text[:200]}")
        return resp.content

    def user_repositories(self, token: str) -> list[GinRepository]:
        body = self._get("/api/v1/user/repos", token)
        try:
            return _REPO_LIST.validate_json(body)
        except ValidationError as e:
            raise AuthorizationServiceUnavailable(f"unexpected user repos response: {e}") from e

    def public_repositories(self) -> list[GinRepository]:
        body = self._get(f"/api/v1/repos/search?limit={PUBLIC_SEARCH_LIMIT}", None)
        try:
            return GinSearchResult.model_validate_json(body).data
        except ValidationError as e:
            raise AuthorizationServiceUnavailable(f"unexpected repo search response: {e}") from e

    def permitted_repositories(self, token: str | None) -> set[str]:
        repos: list[GinRepository] = []
        if token:
            repos.extend(self.user_repositories(token))
        repos.extend(self.public_repositories())
        return unique_str(str(r.id) for r in repos)

    def lookup(self, storage_root: str, path: str, token: str | None) -> Repository:
        """Describe the repository stored at ``path`` as the GIN server sees it.

        Repositories live at ``<root>/<owner>/<name>.git``.
        """
        rel = os.path.relpath(path, storage_root).replace(os.sep, "/")
        owner, _, name = rel.partition("/")
        if not name or "/" in name:
            raise AuthorizationDenied(f"{rel} is not an <owner>/<name> repository path")
        name = name.removesuffix(".git")
        resp = self._get(f"/api/v1/repos/{owner}/{name}", token)
        try:
            repo = GinRepository.model_validate_json(resp)
        except ValidationError as e:
            raise AuthorizationServiceUnavailable(f"unexpected repo response: {e}") from e
        return Repository(
            id=str(repo.id),
            storage_path=path,
            visibility="private" if repo.private else "public",
            owner_scope=repo.owner.login or owner,
            full_name=repo.full_name or f"{owner}/{name}",
        )

    def authorizer(self, storage_root: str, token: str | None) -> Lookup:
        """Per-repository predicate for the enumerator.

        The permitted set is resolved once, up front, so an unreachable
        GIN server fails the whole request before anything is indexed.
        """
        permitted = self.permitted_repositories(token)

        def check(path: str) -> Repository | None:
            repo = self.lookup(storage_root, path, token)
            if repo.id not in permitted:
                log.debug("Repository %s (%s) not permitted for caller", repo.full_name, repo.id)
                return None
            return repo

        return check