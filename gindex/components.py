from dataclasses import dataclass

import httpx

from .backend import SearchBackend
from .config import Config
from .indexing import Indexer
from .permissions import PermissionResolver
from .query import QueryGateway
from .reindex import Reindexer


@dataclass(frozen=True)
class Components:
    cfg: Config
    backend: SearchBackend
    reindexer: Reindexer
    gateway: QueryGateway


def build(cfg: Config, backend: SearchBackend | None = None,
          http_client: httpx.Client | None = None) -> Components:
    """Wire every component from one configuration value.

    The backend client and the GIN http client are shared by all requests.
    """
    backend = backend or SearchBackend(cfg)
    resolver = PermissionResolver(cfg, http_client)
    return Components(
        cfg=cfg,
        backend=backend,
        reindexer=Reindexer(cfg, resolver, Indexer(backend)),
        gateway=QueryGateway(resolver, backend),
    )
