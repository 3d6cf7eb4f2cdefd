from fastmcp import FastMCP

from .components import Components


def make_server(components: Components) -> FastMCP:
    gateway = components.gateway

    mcp = FastMCP(
        name="gindex-search",
        instructions=(
            "Search over indexed GIN repositories (commits and files). "
            "Results only cover repositories the given token may read; "
            "without a token only public repositories are searched."
        ),
    )

    @mcp.tool()
    def search(query: str, token: str | None = None, top_k: int = 10) -> list[dict]:
        """Search commits and files semantically similar to the query.

        Args:
            query: Natural language search query.
            token: GIN access token of the caller, empty for anonymous.
            top_k: Number of results to return (max 20).
        """
        return [hit.model_dump() for hit in gateway.search(token, query, top_k)]

    @mcp.tool()
    def suggest(query: str, token: str | None = None, limit: int = 10) -> list[str]:
        """Complete a partial query with file paths and commit subjects."""
        return gateway.suggest(token, query, limit)

    return mcp


def run(components: Components) -> None:
    cfg = components.cfg
    kwargs = {}
    if cfg.mcp_transport != "stdio":
        kwargs["host"] = cfg.host
        kwargs["port"] = cfg.mcp_port
    make_server(components).run(transport=cfg.mcp_transport, **kwargs)
