"""Static file server with URL rewrites and an automatic sitemap.

Serves a directory under a base URL. Request paths go through the
configured rewrite rules before being looked up on disk, and in
clean-URL mode ``/about`` serves ``about.html`` (or ``about/index.html``).
``GET /sitemap.xml`` lists every served HTML file by its public URL.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import Scope

from percycore.server.middleware import JSONErrorMiddleware, http_error_handler
from percycore.server.rewrites import Rewriter, rules_from_mapping
from percycore.server.sitemap import create_url_resolver, generate_sitemap

logger = logging.getLogger(__name__)


@dataclass
class StaticServerOptions:
    serve: Path
    base_url: str = "/"
    rewrites: Mapping[str, str] = field(default_factory=dict)
    clean_urls: bool = False

    def __post_init__(self) -> None:
        self.serve = Path(self.serve)
        if not self.base_url.startswith("/"):
            self.base_url = "/" + self.base_url


class RewriteStaticFiles(StaticFiles):
    """StaticFiles that rewrites request paths before looking them up."""

    def __init__(self, *, directory: Path | str, rewriter: Rewriter, clean_urls: bool = False) -> None:
        super().__init__(directory=directory, html=True, check_dir=False)
        self.rewriter = rewriter
        self.clean_urls = clean_urls

    def get_path(self, scope: Scope) -> str:
        path = super().get_path(scope).replace(os.sep, "/")
        if path == ".":
            path = ""
        rewritten = self.rewriter("/" + path).lstrip("/")
        return os.path.normpath(rewritten) if rewritten else "."

    def lookup_path(self, path: str) -> tuple[str, os.stat_result | None]:
        full_path, stat_result = super().lookup_path(path)
        if stat_result is None and self.clean_urls and path not in ("", ".") and not path.endswith(".html"):
            return super().lookup_path(path + ".html")
        return full_path, stat_result


def create_static_server(options: StaticServerOptions) -> FastAPI:
    """Create a static file server with an automatic ``/sitemap.xml``."""
    resolve_url = create_url_resolver(options.rewrites, options.base_url, options.clean_urls)

    app = FastAPI(
        title="Percy Static Server",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.static = options

    @app.get("/sitemap.xml")
    async def sitemap(request: Request) -> Response:
        content = await generate_sitemap(options.serve, resolve_url, str(request.base_url))
        return Response(content, media_type="application/xml")

    # Mounted last so the sitemap route takes precedence
    app.mount(
        options.base_url.rstrip("/") or "/",
        RewriteStaticFiles(
            directory=options.serve,
            rewriter=Rewriter(rules_from_mapping(options.rewrites)),
            clean_urls=options.clean_urls,
        ),
        name="static",
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_middleware(JSONErrorMiddleware)
    logger.debug("Created static server for %s at %s", options.serve, options.base_url)
    return app
