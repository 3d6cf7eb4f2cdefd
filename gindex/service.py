import asyncio
import logging

import restate
from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from .components import Components
from .errors import (
    AuthorizationDenied,
    AuthorizationServiceUnavailable,
    BackendRejected,
    BackendUnavailable,
    GindexError,
    MalformedRequest,
)
from .models import (
    IndexRequest,
    ReindexReport,
    ReindexRequest,
    SearchRequest,
    SearchResponse,
    SuggestRequest,
    SuggestResponse,
)
from .permissions import verify_signature

log = logging.getLogger(__name__)

STATUS_CODES: dict[type[GindexError], int] = {
    MalformedRequest: 400,
    AuthorizationDenied: 403,
    BackendRejected: 502,
    AuthorizationServiceUnavailable: 503,
    BackendUnavailable: 503,
}


def terminal(e: GindexError) -> restate.TerminalError:
    # None of these get better by retrying the invocation.
    status = next((code for cls, code in STATUS_CODES.items() if isinstance(e, cls)), 500)
    return restate.TerminalError(str(e), status_code=status)


def make_service(components: Components) -> restate.Service:
    cfg = components.cfg
    service = restate.Service("Gindex")

    @service.handler("Reindex")
    async def reindex(ctx: restate.Context, req: ReindexRequest) -> ReindexReport:
        try:
            verify_signature(cfg.key, req.token, req.signature)
            return await asyncio.to_thread(components.reindexer.run, req.token, req.path)
        except (MalformedRequest, AuthorizationDenied) as e:
            raise terminal(e) from e

    @service.handler("Index")
    async def index(ctx: restate.Context, req: IndexRequest) -> ReindexReport:
        try:
            verify_signature(cfg.key, req.token, req.signature)
            return await asyncio.to_thread(components.reindexer.index_repository, req.token, req.repo_path)
        except (MalformedRequest, AuthorizationDenied) as e:
            raise terminal(e) from e

    @service.handler("Search")
    async def search(ctx: restate.Context, req: SearchRequest) -> SearchResponse:
        try:
            hits = await asyncio.to_thread(components.gateway.search, req.token, req.query, req.top_k)
        except GindexError as e:
            raise terminal(e) from e
        return SearchResponse(hits=hits)

    @service.handler("Suggest")
    async def suggest(ctx: restate.Context, req: SuggestRequest) -> SuggestResponse:
        try:
            suggestions = await asyncio.to_thread(components.gateway.suggest, req.token, req.query, req.limit)
        except GindexError as e:
            raise terminal(e) from e
        return SuggestResponse(suggestions=suggestions)

    return service


def make_app(components: Components):
    return restate.app([make_service(components)])


def run(components: Components) -> None:
    cfg = components.cfg
    config = HypercornConfig()
    config.bind = [f"{cfg.host}:{cfg.port}"]
    log.info("Listening for connections on port %d", cfg.port)
    asyncio.run(serve(make_app(components), config))
